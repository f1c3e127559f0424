"""
Persisted catalog configuration and runtime lookup settings.

The catalog file stores, per dictionary type, the directory name, enabled
flag and order of each dictionary, plus a free-form stylesheet string used
by the reader's popup. Decoding is lenient: missing optional fields take
defaults and malformed records are skipped.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from hoshi_lookup.models import DictionaryType

logger = logging.getLogger(__name__)

CONFIG_FILE = "dictionaries.json"

# JSON key for each dictionary type
CONFIG_KEYS: Dict[DictionaryType, str] = {
    DictionaryType.TERM: "termDictionaries",
    DictionaryType.FREQUENCY: "frequencyDictionaries",
    DictionaryType.PITCH: "pitchDictionaries",
}

# ============================================================================
# Lookup Defaults
# ============================================================================

MAX_RESULTS = 16
MAX_RESULTS_RANGE = (1, 50)
MAX_LOOKUP_LENGTH = 16
MAX_DEINFLECTION_DEPTH = 10


@dataclass(frozen=True)
class LookupSettings:
    """Runtime knobs supplied by the host application."""
    max_results: int = MAX_RESULTS
    max_lookup_length: int = MAX_LOOKUP_LENGTH
    max_deinflection_depth: int = MAX_DEINFLECTION_DEPTH

    def __post_init__(self):
        low, high = MAX_RESULTS_RANGE
        object.__setattr__(self, "max_results", min(max(self.max_results, low), high))
        if self.max_lookup_length < 1:
            raise ValueError("max_lookup_length must be >= 1")
        if self.max_deinflection_depth < 0:
            raise ValueError("max_deinflection_depth must be >= 0")


# ============================================================================
# Catalog Records
# ============================================================================

@dataclass
class DictionaryConfigEntry:
    file_name: str
    is_enabled: bool = True
    order: int = 0

    def to_dict(self) -> dict:
        return {"fileName": self.file_name, "isEnabled": self.is_enabled, "order": self.order}


@dataclass
class DictionaryConfig:
    term_dictionaries: List[DictionaryConfigEntry] = field(default_factory=list)
    frequency_dictionaries: List[DictionaryConfigEntry] = field(default_factory=list)
    pitch_dictionaries: List[DictionaryConfigEntry] = field(default_factory=list)
    custom_css: str = ""

    def entries(self, dict_type: DictionaryType) -> List[DictionaryConfigEntry]:
        return {
            DictionaryType.TERM: self.term_dictionaries,
            DictionaryType.FREQUENCY: self.frequency_dictionaries,
            DictionaryType.PITCH: self.pitch_dictionaries,
        }[dict_type]

    def encode(self) -> bytes:
        data = {key: [e.to_dict() for e in self.entries(t)] for t, key in CONFIG_KEYS.items()}
        data["customCSS"] = self.custom_css
        return json.dumps(data, ensure_ascii=False, indent=2).encode("utf-8")

    @classmethod
    def decode(cls, data: bytes) -> "DictionaryConfig":
        """
        Decode a catalog file.

        Raises:
            ValueError: If the payload is not a JSON object
        """
        try:
            raw = json.loads(data.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise ValueError(f"Catalog is not UTF-8: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError("Catalog root must be a JSON object")

        config = cls()
        for dict_type, key in CONFIG_KEYS.items():
            records = raw.get(key, [])
            if not isinstance(records, list):
                logger.warning(f"Ignoring {key}: expected a list, got {type(records).__name__}")
                continue
            target = config.entries(dict_type)
            for position, record in enumerate(records):
                entry = _decode_entry(record, position)
                if entry is None:
                    logger.warning(f"Skipping malformed {key} record #{position}: {record!r}")
                    continue
                target.append(entry)

        css = raw.get("customCSS", "")
        config.custom_css = css if isinstance(css, str) else ""
        return config


def _decode_entry(record, position: int) -> Optional[DictionaryConfigEntry]:
    if not isinstance(record, dict):
        return None
    file_name = record.get("fileName")
    if not isinstance(file_name, str) or not file_name:
        return None
    is_enabled = record.get("isEnabled", True)
    if not isinstance(is_enabled, bool):
        is_enabled = True
    order = record.get("order", position)
    if isinstance(order, bool) or not isinstance(order, int):
        order = position
    return DictionaryConfigEntry(file_name=file_name, is_enabled=is_enabled, order=order)


# ============================================================================
# Persistence
# ============================================================================

def load_config(path: Path) -> DictionaryConfig:
    """Read the catalog file. A missing or unreadable file yields an empty config."""
    if not path.exists():
        return DictionaryConfig()
    try:
        return DictionaryConfig.decode(path.read_bytes())
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read catalog {path}: {e}")
        return DictionaryConfig()


def write_atomic(path: Path, data: bytes) -> None:
    """
    Write data by creating a sibling temp file and replacing the target.

    A crash at any point leaves either the old or the new file in place.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def save_config(path: Path, config: DictionaryConfig) -> None:
    write_atomic(path, config.encode())
