"""
Ranking and assembly of lookup results.

Matches are ordered by the catalog order of their term dictionary, then by
the entry's sequence number inside that dictionary. Matches sharing the same
(expression, reading) are folded into one EntryData carrying one glossary
block per contributing dictionary, plus frequency and pitch annotations from
every enabled frequency and pitch dictionary.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from hoshi_lookup.deinflect import Deinflection, Deinflector
from hoshi_lookup.models import (
    EntryData,
    FrequencyData,
    FrequencyTag,
    GlossaryData,
    PitchData,
    TermEntry,
)
from hoshi_lookup.store import InstalledDictionary

logger = logging.getLogger(__name__)

# Failures a damaged index can raise while being read
INDEX_ERRORS = (OSError, ValueError, KeyError, IndexError, TypeError)


@dataclass(slots=True)
class TermMatch:
    """A term entry found for one deinflection candidate."""
    dictionary: InstalledDictionary
    row: int
    entry: TermEntry
    candidate: Deinflection


def query_index(dictionary: InstalledDictionary, key: str) -> list:
    """
    Query a dictionary's index, treating any failure as no result.

    Returns:
        (row, entry) pairs, empty when the index is missing or broken
    """
    if dictionary.index is None:
        return []
    try:
        return dictionary.index.lookup(key)
    except INDEX_ERRORS as e:
        logger.warning(f"Lookup of {key!r} in {dictionary.info.name!r} failed: {e}")
        return []


def rank_key(match: TermMatch) -> Tuple[int, int, int]:
    return (match.dictionary.info.order, match.entry.sequence, match.row)


def rank_matches(matches: Sequence[TermMatch]) -> List[TermMatch]:
    return sorted(matches, key=rank_key)


# ============================================================================
# Annotations
# ============================================================================

def frequency_annotations(
    expression: str,
    reading: str,
    dictionaries: Sequence[InstalledDictionary],
) -> List[FrequencyData]:
    """Collect frequency ranks in catalog order; dictionaries without data are omitted."""
    annotations = []
    for dictionary in dictionaries:
        tags = [
            FrequencyTag(entry.value, entry.display_value)
            for _, entry in query_index(dictionary, expression)
            if entry.applies_to(reading)
        ]
        if tags:
            annotations.append(FrequencyData(dictionary=dictionary.info.name, frequencies=tags))
    return annotations


def pitch_annotations(
    expression: str,
    reading: str,
    dictionaries: Sequence[InstalledDictionary],
) -> List[PitchData]:
    """Collect pitch positions in catalog order; dictionaries without data are omitted."""
    annotations = []
    for dictionary in dictionaries:
        positions: List[int] = []
        for _, entry in query_index(dictionary, expression):
            if entry.applies_to(reading):
                positions.extend(p for p in entry.positions if p not in positions)
        if positions:
            annotations.append(PitchData(dictionary=dictionary.info.name, pitch_positions=positions))
    return annotations


# ============================================================================
# Assembly
# ============================================================================

def _add_glossary(data: EntryData, match: TermMatch) -> None:
    name = match.dictionary.info.name
    entry = match.entry
    for glossary in data.glossaries:
        if glossary.dictionary == name:
            break
    else:
        glossary = GlossaryData(dictionary=name, content=[])
        data.glossaries.append(glossary)

    glossary.content.extend(entry.glossary)
    for tag in entry.definition_tags:
        if tag not in glossary.definition_tags:
            glossary.definition_tags.append(tag)
        if tag not in data.definition_tags:
            data.definition_tags.append(tag)
    for tag in entry.term_tags:
        if tag not in glossary.term_tags:
            glossary.term_tags.append(tag)


def assemble_entries(
    ranked: Sequence[TermMatch],
    matched: str,
    frequency_dictionaries: Sequence[InstalledDictionary],
    pitch_dictionaries: Sequence[InstalledDictionary],
    deinflector: Deinflector,
) -> List[EntryData]:
    """
    Fold ranked matches into EntryData, keeping rank order.

    The first (highest ranked) match of an (expression, reading) pair
    decides its position and its deinflection trace.
    """
    grouped: Dict[Tuple[str, str], EntryData] = {}
    for match in ranked:
        entry = match.entry
        key = (entry.expression, entry.reading)
        data = grouped.get(key)
        if data is None:
            data = EntryData(
                expression=entry.expression,
                reading=entry.reading,
                matched=matched,
                deinflection_trace=deinflector.describe(match.candidate.trace),
                glossaries=[],
                frequencies=frequency_annotations(entry.expression, entry.reading, frequency_dictionaries),
                pitches=pitch_annotations(entry.expression, entry.reading, pitch_dictionaries),
            )
            grouped[key] = data
        _add_glossary(data, match)
    return list(grouped.values())


def truncate(entries: Sequence[EntryData], max_results: int) -> List[EntryData]:
    """Keep the first max_results whole entries."""
    if max_results < 1:
        return []
    return list(entries[:max_results])
