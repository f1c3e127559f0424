"""
On-disk index for a single imported dictionary.

Each dictionary directory holds:
- index.json: a copy of the archive manifest
- entries.json: parsed rows, one JSON list per entry
- keys.marisa: a marisa_trie.RecordTrie mapping lookup keys to row numbers
- styles.css: the archive's glossary CSS, only when it shipped one

The trie is memory-mapped on load, so opening a large dictionary is cheap.
Rows are decoded once and never mutated afterwards.
"""

import json
import logging
from pathlib import Path
from typing import Generic, List, Sequence, Tuple, Type, TypeVar

import marisa_trie

from hoshi_lookup.models import ENTRY_CLASSES, DictionaryType

logger = logging.getLogger(__name__)

# ============================================================================
# Record Schema
# ============================================================================
# Each trie value is a single little-endian uint32: the row number in
# entries.json. A key may map to several rows.

RECORD_FORMAT = "<I"

MANIFEST_FILE = "index.json"
ENTRIES_FILE = "entries.json"
KEYS_FILE = "keys.marisa"
STYLES_FILE = "styles.css"

E = TypeVar("E")


class DictionaryIndex(Generic[E]):
    """
    Exact-match index over the entries of one dictionary.

    Args:
        trie: RecordTrie of key -> (row,)
        entries: Decoded entries, addressed by row number
    """

    def __init__(self, trie: marisa_trie.RecordTrie, entries: Sequence[E]):
        self._trie = trie
        self._entries = tuple(entries)

    @classmethod
    def build(cls, entries: Sequence[E]) -> "DictionaryIndex[E]":
        """Build an in-memory index from parsed entries."""
        records = []
        for row, entry in enumerate(entries):
            for key in entry.index_keys():
                records.append((key, (row,)))
        trie = marisa_trie.RecordTrie(RECORD_FORMAT, records)
        return cls(trie, entries)

    def save(self, directory: Path) -> None:
        """Write entries and trie into an existing directory."""
        with open(directory / ENTRIES_FILE, "w", encoding="utf-8") as f:
            json.dump([entry.to_row() for entry in self._entries], f, ensure_ascii=False)
        self._trie.save(str(directory / KEYS_FILE))

    @classmethod
    def load(cls, directory: Path, dict_type: DictionaryType) -> "DictionaryIndex":
        """
        Open a saved index.

        Raises:
            OSError: If a file is missing or unreadable
            ValueError: If the entries file is not valid JSON rows
        """
        entry_class: Type = ENTRY_CLASSES[dict_type]

        with open(directory / ENTRIES_FILE, "r", encoding="utf-8") as f:
            rows = json.load(f)
        if not isinstance(rows, list):
            raise ValueError(f"{directory / ENTRIES_FILE} does not contain a list of rows")
        try:
            entries = [entry_class.from_row(row) for row in rows]
        except (TypeError, ValueError) as e:
            raise ValueError(f"Malformed row in {directory / ENTRIES_FILE}: {e}") from e

        trie = marisa_trie.RecordTrie(RECORD_FORMAT)
        trie.mmap(str(directory / KEYS_FILE))
        return cls(trie, entries)

    def lookup(self, key: str) -> List[Tuple[int, E]]:
        """
        Look up an exact key.

        Returns:
            (row, entry) pairs in row order
        """
        rows = sorted({record[0] for record in self._trie.get(key, [])})
        return [(row, self._entries[row]) for row in rows if row < len(self._entries)]

    def __contains__(self, key: str) -> bool:
        return key in self._trie

    def __len__(self) -> int:
        return len(self._entries)


def read_manifest(directory: Path) -> dict:
    """Read the manifest copy stored next to an index."""
    with open(directory / MANIFEST_FILE, "r", encoding="utf-8") as f:
        manifest = json.load(f)
    if not isinstance(manifest, dict):
        raise ValueError(f"{directory / MANIFEST_FILE} is not a JSON object")
    return manifest


def write_manifest(directory: Path, manifest: dict) -> None:
    with open(directory / MANIFEST_FILE, "w", encoding="utf-8") as f:
        json.dump(manifest, f, ensure_ascii=False, indent=2)


def read_styles(directory: Path) -> str:
    """Read the stored glossary CSS; "" when the dictionary has none."""
    path = directory / STYLES_FILE
    if not path.is_file():
        return ""
    return path.read_text(encoding="utf-8")


def write_styles(directory: Path, styles: str) -> None:
    if styles:
        (directory / STYLES_FILE).write_text(styles, encoding="utf-8")
