"""
Cursor lookup: turn "text + offset" into ranked dictionary entries.

For every window length from longest to shortest, the window is deinflected
and each candidate is looked up in every enabled term dictionary. The first
length that yields any match wins; shorter windows are never consulted.
"""

import logging
from typing import List, Set, Tuple

from hoshi_lookup.characters import lookup_window
from hoshi_lookup.config import MAX_LOOKUP_LENGTH
from hoshi_lookup.deinflect import Deinflector
from hoshi_lookup.models import DictionaryType, EntryData
from hoshi_lookup.ranking import TermMatch, assemble_entries, query_index, rank_matches, truncate
from hoshi_lookup.store import DictionaryStore, InstalledDictionary

logger = logging.getLogger(__name__)


class LookupEngine:
    """
    Longest-match dictionary lookup.

    Args:
        store: Catalog to read dictionaries from
        deinflector: Produces base-form candidates
        max_length: Longest window, in characters
    """

    def __init__(
        self,
        store: DictionaryStore,
        deinflector: Deinflector,
        max_length: int = MAX_LOOKUP_LENGTH,
    ):
        self.store = store
        self.deinflector = deinflector
        self.max_length = max_length

    def lookup(self, text: str, offset: int, max_results: int) -> List[EntryData]:
        """
        Look up the word starting at offset.

        Args:
            text: Plain chapter text
            offset: Character index of the cursor
            max_results: Maximum number of entries to return

        Returns:
            Ranked entries, a prefix of the full ranking, possibly empty
        """
        if max_results < 1:
            return []

        window = lookup_window(text, offset, self.max_length)
        if not window:
            return []

        # One snapshot for the whole call; a concurrent commit is not observed halfway
        catalog = self.store.snapshot()
        term_dictionaries = catalog.enabled(DictionaryType.TERM)
        if not term_dictionaries:
            return []

        for length in range(len(window), 0, -1):
            surface = window[:length]
            matches = self.find_matches(surface, term_dictionaries)
            if not matches:
                continue
            logger.debug(f"Matched {surface!r} with {len(matches)} entries")
            entries = assemble_entries(
                rank_matches(matches),
                surface,
                catalog.enabled(DictionaryType.FREQUENCY),
                catalog.enabled(DictionaryType.PITCH),
                self.deinflector,
            )
            return truncate(entries, max_results)

        return []

    def find_matches(
        self,
        surface: str,
        term_dictionaries: List[InstalledDictionary],
    ) -> List[TermMatch]:
        """All term entries reachable from surface through deinflection."""
        candidates = self.deinflector.deinflect(surface)
        matches: List[TermMatch] = []
        seen: Set[Tuple[str, int]] = set()

        for dictionary in term_dictionaries:
            for candidate in candidates:
                for row, entry in query_index(dictionary, candidate.term):
                    if not candidate.accepts(entry.rule_classes):
                        continue
                    key = (dictionary.info.id, row)
                    # Candidates are breadth-first, so the first hit has the shortest trace
                    if key in seen:
                        continue
                    seen.add(key)
                    matches.append(TermMatch(dictionary, row, entry, candidate))

        return matches
