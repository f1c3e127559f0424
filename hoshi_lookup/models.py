"""
Data structures shared by the store, the deinflector and the lookup engine.

Imported entries are immutable. Each entry type knows how to turn itself
into a compact JSON row for on-disk storage and back.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Tuple


class DictionaryType(str, Enum):
    """The three independent kinds of user dictionaries."""
    TERM = "term"
    FREQUENCY = "frequency"
    PITCH = "pitch"


# =============================================================================
# Catalog
# =============================================================================

@dataclass(frozen=True, slots=True)
class DictionaryInfo:
    """
    One imported dictionary as seen by the catalog.

    Attributes:
        name: Display name (the manifest title)
        path: Directory holding the parsed data
        type: Which list this dictionary belongs to
        is_enabled: Disabled dictionaries keep their slot but are not queried
        order: Position within its type, always contiguous 0..N-1
        revision: Manifest revision string, informational
        styles: Glossary CSS shipped with the archive, "" if none
        id: Opaque identity, stable for the lifetime of the process
    """
    name: str
    path: Path
    type: DictionaryType
    is_enabled: bool = True
    order: int = 0
    revision: str = ""
    styles: str = field(default="", repr=False)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def file_name(self) -> str:
        """Directory name used in the persisted catalog."""
        return self.path.name


# =============================================================================
# Imported entries
# =============================================================================

@dataclass(frozen=True, slots=True)
class TermEntry:
    """
    A term bank record.

    Attributes:
        expression: Headword
        reading: Kana reading (equal to expression for kana-only words)
        rule_classes: Inflection families, e.g. ("v1",) or ("adj-i",)
        glossary: Definition blocks, plain strings or structured content
        definition_tags: Tags attached to the definitions
        term_tags: Tags attached to the term itself
        score: Popularity score from the bank
        sequence: Intra-dictionary sequence number
    """
    expression: str
    reading: str
    rule_classes: Tuple[str, ...]
    glossary: Tuple[Any, ...]
    definition_tags: Tuple[str, ...] = ()
    term_tags: Tuple[str, ...] = ()
    score: float = 0
    sequence: int = 0

    def to_row(self) -> list:
        return [
            self.expression, self.reading, list(self.rule_classes),
            list(self.glossary), list(self.definition_tags),
            list(self.term_tags), self.score, self.sequence,
        ]

    @classmethod
    def from_row(cls, row: list) -> "TermEntry":
        expression, reading, rules, glossary, def_tags, term_tags, score, sequence = row
        return cls(
            expression=expression,
            reading=reading,
            rule_classes=tuple(rules),
            glossary=tuple(glossary),
            definition_tags=tuple(def_tags),
            term_tags=tuple(term_tags),
            score=score,
            sequence=sequence,
        )

    def index_keys(self) -> List[str]:
        if self.reading and self.reading != self.expression:
            return [self.expression, self.reading]
        return [self.expression]


@dataclass(frozen=True, slots=True)
class FrequencyEntry:
    """Frequency rank for a headword, optionally restricted to one reading."""
    expression: str
    reading: Optional[str]
    value: int
    display_value: str

    def applies_to(self, reading: str) -> bool:
        return self.reading is None or self.reading == reading

    def to_row(self) -> list:
        return [self.expression, self.reading, self.value, self.display_value]

    @classmethod
    def from_row(cls, row: list) -> "FrequencyEntry":
        expression, reading, value, display_value = row
        return cls(expression, reading, value, display_value)

    def index_keys(self) -> List[str]:
        return [self.expression]


@dataclass(frozen=True, slots=True)
class PitchEntry:
    """Pitch-drop positions for a (headword, reading) pair."""
    expression: str
    reading: str
    positions: Tuple[int, ...]

    def applies_to(self, reading: str) -> bool:
        return self.reading == reading

    def to_row(self) -> list:
        return [self.expression, self.reading, list(self.positions)]

    @classmethod
    def from_row(cls, row: list) -> "PitchEntry":
        expression, reading, positions = row
        return cls(expression, reading, tuple(positions))

    def index_keys(self) -> List[str]:
        return [self.expression]


ENTRY_CLASSES = {
    DictionaryType.TERM: TermEntry,
    DictionaryType.FREQUENCY: FrequencyEntry,
    DictionaryType.PITCH: PitchEntry,
}


# =============================================================================
# Lookup results
# =============================================================================

@dataclass(frozen=True, slots=True)
class DeinflectionTag:
    name: str
    description: str

    def to_dict(self) -> dict:
        return {"name": self.name, "description": self.description}


@dataclass(slots=True)
class GlossaryData:
    """Definitions contributed by one term dictionary."""
    dictionary: str
    content: List[Any]
    definition_tags: List[str] = field(default_factory=list)
    term_tags: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "dictionary": self.dictionary,
            "content": self.content,
            "definitionTags": " ".join(self.definition_tags),
            "termTags": " ".join(self.term_tags),
        }


@dataclass(frozen=True, slots=True)
class FrequencyTag:
    value: int
    display_value: str

    def to_dict(self) -> dict:
        return {"value": self.value, "displayValue": self.display_value}


@dataclass(slots=True)
class FrequencyData:
    """Frequency ranks contributed by one frequency dictionary."""
    dictionary: str
    frequencies: List[FrequencyTag]

    def to_dict(self) -> dict:
        return {
            "dictionary": self.dictionary,
            "frequencies": [f.to_dict() for f in self.frequencies],
        }


@dataclass(slots=True)
class PitchData:
    """Pitch positions contributed by one pitch dictionary."""
    dictionary: str
    pitch_positions: List[int]

    def to_dict(self) -> dict:
        return {"dictionary": self.dictionary, "pitchPositions": self.pitch_positions}


@dataclass(slots=True)
class EntryData:
    """
    One fully assembled lookup result.

    Attributes:
        expression: Headword of the matched entry
        reading: Reading of the matched entry
        matched: The literal text span that produced the match
        deinflection_trace: Rules applied to reach the headword, oldest first
        glossaries: One block per contributing term dictionary
        frequencies: One block per contributing frequency dictionary
        pitches: One block per contributing pitch dictionary
        definition_tags: Union of definition tags across glossaries
    """
    expression: str
    reading: str
    matched: str
    deinflection_trace: List[DeinflectionTag]
    glossaries: List[GlossaryData]
    frequencies: List[FrequencyData] = field(default_factory=list)
    pitches: List[PitchData] = field(default_factory=list)
    definition_tags: List[str] = field(default_factory=list)

    @property
    def trace_names(self) -> List[str]:
        return [tag.name for tag in self.deinflection_trace]

    def to_dict(self) -> dict:
        return {
            "expression": self.expression,
            "reading": self.reading,
            "matched": self.matched,
            "deinflectionTrace": [t.to_dict() for t in self.deinflection_trace],
            "glossaries": [g.to_dict() for g in self.glossaries],
            "frequencies": [f.to_dict() for f in self.frequencies],
            "pitches": [p.to_dict() for p in self.pitches],
            "definitionTags": self.definition_tags,
        }
