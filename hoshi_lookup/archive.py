"""
Reader for Yomitan dictionary archives.

An archive is a zip file with an index.json manifest and numbered banks:
- term_bank_N.json: [headword, reading, definitionTags, ruleTags, score,
  glossary, sequence, termTags]
- term_meta_bank_N.json: [headword, "freq", value] or
  [headword, "pitch", {reading, pitches}] records
- styles.css: optional CSS for the dictionary's glossary content

Parsing is all-or-nothing. The first malformed record aborts the whole
archive with a typed error and nothing is written anywhere.
"""

import json
import logging
import re
import threading
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Tuple

from hoshi_lookup.errors import (
    BankParseFailure,
    ImportCancelled,
    InvalidArchive,
    MissingOrMalformedManifest,
    UnsupportedSchemaVersion,
)
from hoshi_lookup.models import DictionaryType, FrequencyEntry, PitchEntry, TermEntry

logger = logging.getLogger(__name__)

MANIFEST_NAME = "index.json"
STYLES_NAME = "styles.css"
SUPPORTED_FORMATS = frozenset([3])

TERM_BANK_PATTERN = re.compile(r"^term_bank_(\d+)\.json$")
META_BANK_PATTERN = re.compile(r"^term_meta_bank_(\d+)\.json$")

# Meta bank mode for each non-term dictionary type
META_MODES = {
    DictionaryType.FREQUENCY: "freq",
    DictionaryType.PITCH: "pitch",
}

_LEADING_NUMBER = re.compile(r"-?\d+")


@dataclass
class ParsedDictionary:
    """Everything read from an archive, ready to be indexed."""
    title: str
    revision: str
    manifest: dict
    type: DictionaryType
    entries: list
    styles: str = ""


# ============================================================================
# Manifest
# ============================================================================

def parse_manifest(raw: bytes) -> dict:
    """
    Decode and validate index.json.

    Raises:
        MissingOrMalformedManifest: Undecodable, not an object, or no title
        UnsupportedSchemaVersion: Format version is not supported
    """
    try:
        manifest = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MissingOrMalformedManifest(f"index.json is not valid JSON: {e}") from e

    if not isinstance(manifest, dict):
        raise MissingOrMalformedManifest("index.json must be a JSON object")

    title = manifest.get("title")
    if not isinstance(title, str) or not title.strip():
        raise MissingOrMalformedManifest("index.json has no title")

    version = manifest.get("format", manifest.get("version"))
    if isinstance(version, bool) or not isinstance(version, int):
        raise MissingOrMalformedManifest(f"index.json has no usable format version: {version!r}")
    if version not in SUPPORTED_FORMATS:
        raise UnsupportedSchemaVersion(
            f"Dictionary format {version} is not supported "
            f"(supported: {', '.join(str(v) for v in sorted(SUPPORTED_FORMATS))})"
        )

    return manifest


# ============================================================================
# Record Parsers
# ============================================================================

def _split_tags(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, str):
        raise ValueError(f"tags must be a string, got {type(value).__name__}")
    return tuple(value.split())


def parse_term_record(record: Any) -> TermEntry:
    """Parse one term bank record."""
    if not isinstance(record, list) or len(record) < 8:
        raise ValueError("term record must be a list of 8 fields")

    expression, reading, def_tags, rules, score, glossary, sequence, term_tags = record[:8]
    if not isinstance(expression, str) or not expression:
        raise ValueError("headword must be a non-empty string")
    if not isinstance(reading, str):
        raise ValueError("reading must be a string")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ValueError("score must be a number")
    if not isinstance(glossary, list):
        raise ValueError("glossary must be a list")
    if isinstance(sequence, bool) or not isinstance(sequence, int):
        raise ValueError("sequence must be an integer")

    return TermEntry(
        expression=expression,
        reading=reading or expression,
        rule_classes=_split_tags(rules),
        glossary=tuple(glossary),
        definition_tags=_split_tags(def_tags),
        term_tags=_split_tags(term_tags),
        score=score,
        sequence=sequence,
    )


def _frequency_value(data: Any) -> Tuple[int, str]:
    """Normalize the many shapes a frequency value can take."""
    if isinstance(data, bool):
        raise ValueError("frequency must not be a boolean")
    if isinstance(data, (int, float)):
        return int(data), str(int(data)) if float(data).is_integer() else str(data)
    if isinstance(data, str):
        match = _LEADING_NUMBER.search(data)
        return (int(match.group()) if match else 0), data
    if isinstance(data, dict) and "value" in data:
        value, display = _frequency_value(data["value"])
        shown = data.get("displayValue")
        return value, shown if isinstance(shown, str) else display
    raise ValueError(f"unrecognized frequency value: {data!r}")


def parse_frequency_record(record: Any) -> FrequencyEntry:
    """Parse one [headword, "freq", data] record."""
    expression, data = record[0], record[2]
    if not isinstance(expression, str) or not expression:
        raise ValueError("headword must be a non-empty string")

    reading = None
    if isinstance(data, dict) and "frequency" in data:
        reading = data.get("reading")
        if reading is not None and not isinstance(reading, str):
            raise ValueError("frequency reading must be a string")
        data = data["frequency"]

    value, display = _frequency_value(data)
    return FrequencyEntry(expression=expression, reading=reading, value=value, display_value=display)


def _pitch_positions(pitches: Any) -> Tuple[int, ...]:
    if not isinstance(pitches, list):
        raise ValueError("pitches must be a list")
    positions: List[int] = []
    for pitch in pitches:
        if not isinstance(pitch, dict):
            raise ValueError("pitch must be an object")
        position = pitch.get("position")
        if isinstance(position, bool) or not isinstance(position, int):
            raise ValueError(f"pitch position must be an integer, got {position!r}")
        if position not in positions:
            positions.append(position)
    return tuple(positions)


def parse_pitch_record(record: Any) -> PitchEntry:
    """Parse [headword, "pitch", {reading, pitches}] or [headword, reading, pitches]."""
    expression = record[0]
    if not isinstance(expression, str) or not expression:
        raise ValueError("headword must be a non-empty string")

    if record[1] == "pitch" and isinstance(record[2], dict):
        reading = record[2].get("reading")
        pitches = record[2].get("pitches")
    else:
        reading, pitches = record[1], record[2]
    if not isinstance(reading, str) or not reading:
        raise ValueError("pitch reading must be a non-empty string")

    return PitchEntry(expression=expression, reading=reading, positions=_pitch_positions(pitches))


def _meta_mode(record: Any) -> Optional[str]:
    if not isinstance(record, list) or len(record) < 3:
        raise ValueError("meta record must be a list of 3 fields")
    mode = record[1]
    if mode == "freq":
        return "freq"
    if mode == "pitch" or isinstance(record[2], list):
        return "pitch"
    return None


# ============================================================================
# Archive
# ============================================================================

# Failures zipfile raises for damaged, encrypted or unsupported members
MEMBER_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError, OSError)

def _bank_names(names: List[str], pattern: re.Pattern) -> List[str]:
    banks = []
    for name in names:
        match = pattern.match(name.rsplit("/", 1)[-1])
        if match:
            banks.append((int(match.group(1)), name))
    return [name for _, name in sorted(banks)]


def _read_member(archive: zipfile.ZipFile, name: str) -> bytes:
    """Read one member, mapping decompression failures to InvalidArchive."""
    try:
        return archive.read(name)
    except MEMBER_ERRORS as e:
        raise InvalidArchive(f"Could not read {name}: {e}") from e


def _read_styles(archive: zipfile.ZipFile) -> str:
    names = [n for n in archive.namelist() if n.rsplit("/", 1)[-1] == STYLES_NAME]
    if not names:
        return ""
    name = min(names, key=len)
    try:
        return _read_member(archive, name).decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise InvalidArchive(f"{name} is not UTF-8: {e}") from e


def _read_bank(archive: zipfile.ZipFile, name: str) -> list:
    data = _read_member(archive, name)
    try:
        records = json.loads(data.decode("utf-8-sig"))
    except (UnicodeDecodeError, ValueError) as e:
        raise BankParseFailure(f"{name} is not valid JSON: {e}") from e
    if not isinstance(records, list):
        raise BankParseFailure(f"{name} must contain a JSON list")
    return records


def _iter_entries(
    archive: zipfile.ZipFile,
    dict_type: DictionaryType,
    check_cancelled: Callable[[], None],
) -> Iterator[Any]:
    if dict_type == DictionaryType.TERM:
        banks = _bank_names(archive.namelist(), TERM_BANK_PATTERN)
        if not banks:
            raise BankParseFailure("Archive contains no term banks")
        for bank in banks:
            check_cancelled()
            for position, record in enumerate(_read_bank(archive, bank)):
                try:
                    yield parse_term_record(record)
                except ValueError as e:
                    raise BankParseFailure(f"{bank} record #{position}: {e}") from e
        return

    wanted = META_MODES[dict_type]
    parser = parse_frequency_record if dict_type == DictionaryType.FREQUENCY else parse_pitch_record
    banks = _bank_names(archive.namelist(), META_BANK_PATTERN)
    found = False
    for bank in banks:
        check_cancelled()
        for position, record in enumerate(_read_bank(archive, bank)):
            try:
                if _meta_mode(record) != wanted:
                    continue
                found = True
                yield parser(record)
            except ValueError as e:
                raise BankParseFailure(f"{bank} record #{position}: {e}") from e
    if not found:
        raise BankParseFailure(f"Archive contains no {wanted} data")


def read_archive(
    archive_path: Path,
    dict_type: DictionaryType,
    cancel_event: Optional[threading.Event] = None,
) -> ParsedDictionary:
    """
    Read and validate a dictionary archive.

    Args:
        archive_path: Path to the .zip file
        dict_type: Type the caller wants to import it as
        cancel_event: Checked between banks; when set the read is abandoned

    Returns:
        ParsedDictionary with every entry decoded

    Raises:
        InvalidArchive, MissingOrMalformedManifest, UnsupportedSchemaVersion,
        BankParseFailure, ImportCancelled
    """
    def check_cancelled():
        if cancel_event is not None and cancel_event.is_set():
            raise ImportCancelled(f"Import of {archive_path} was cancelled")

    try:
        archive = zipfile.ZipFile(archive_path)
    except (OSError, zipfile.BadZipFile) as e:
        raise InvalidArchive(f"{archive_path} is not a readable zip archive: {e}") from e

    with archive:
        manifest_names = [n for n in archive.namelist() if n.rsplit("/", 1)[-1] == MANIFEST_NAME]
        if not manifest_names:
            raise MissingOrMalformedManifest(f"{archive_path} has no {MANIFEST_NAME}")
        manifest = parse_manifest(_read_member(archive, min(manifest_names, key=len)))

        check_cancelled()
        entries = list(_iter_entries(archive, dict_type, check_cancelled))
        styles = _read_styles(archive)
        check_cancelled()

    title = manifest["title"].strip()
    logger.info(f"Parsed {len(entries)} {dict_type.value} entries from {title!r}")
    return ParsedDictionary(
        title=title,
        revision=str(manifest.get("revision", "")),
        manifest=manifest,
        type=dict_type,
        entries=entries,
        styles=styles,
    )
