"""
Suffix-stripping deinflector for Japanese verbs and adjectives.

Rules come from a static tab-separated table (data/deinflect.tsv). Each rule
rewrites a surface suffix into a base suffix and is only applicable when the
candidate's current word classes allow it, which keeps chains such as
past → negative → ichidan sensible.

Word classes:
    v1, v5, vs, vk, vz, adj-i   inflection families of dictionary forms
    te, ta, masu                intermediate forms produced by other rules

Search is a breadth-first frontier expansion with a hard depth bound and
deduplication by candidate text, so every input terminates.
"""

import csv
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from hoshi_lookup.config import MAX_DEINFLECTION_DEPTH
from hoshi_lookup.models import DeinflectionTag

logger = logging.getLogger(__name__)

RULES_TSV = Path(__file__).parent / "data" / "deinflect.tsv"


# ============================================================================
# Rule Descriptions
# ============================================================================

RULE_DESCRIPTIONS = {
    'past': 'Past tense: did',
    '-te': 'Te-form: and..., connective',
    '-tara': 'Conditional: if/when ... happened',
    '-tari': 'Representative listing: doing things like...',
    'negative': 'Negative: not',
    'polite': 'Polite form (masu)',
    'volitional': "Volitional: let's / intend to",
    'potential': 'Potential: can do',
    'potential or passive': 'Potential or passive: can do / is done',
    'passive': 'Passive: is done (to)',
    'causative': 'Causative: make/let do',
    'imperative': 'Imperative: do!',
    '-ba': 'Provisional conditional: if',
    '-tai': 'Desiderative: want to',
    '-zu': 'Negative continuative: without doing',
    '-nagara': 'Simultaneous action: while doing',
    'masu stem': 'Continuative stem',
    'adv': 'Adverbial form of an adjective',
    'noun': 'Nominalized adjective: -ness',
    '-sou': 'Appearance: looks like',
    'progressive or perfect': 'Progressive or perfect: is doing / has done',
    '-shimau': 'Completion or regret: end up doing',
}

# JMdict style part-of-speech tags folded into deinflection families
_CLASS_PREFIXES = (
    ('v5', 'v5'),
    ('v1', 'v1'),
    ('vs', 'vs'),
    ('vk', 'vk'),
    ('vz', 'vz'),
    ('adj-i', 'adj-i'),
)


def normalize_rule_class(tag: str) -> Optional[str]:
    """
    Map a term bank rule tag onto a deinflection family.

    Example:
        >>> normalize_rule_class("v5k-s")
        'v5'
        >>> normalize_rule_class("adj-ix")
        'adj-i'
    """
    for prefix, family in _CLASS_PREFIXES:
        if tag.startswith(prefix):
            return family
    return None


def rule_families(tags: Iterable[str]) -> FrozenSet[str]:
    families = set()
    for tag in tags:
        family = normalize_rule_class(tag)
        if family is not None:
            families.add(family)
    return frozenset(families)


# ============================================================================
# Data Structures
# ============================================================================

@dataclass(frozen=True, slots=True)
class DeinflectionRule:
    """One row of the rule table."""
    name: str
    kana_in: str
    kana_out: str
    rules_in: FrozenSet[str]
    rules_out: FrozenSet[str]

    def applies_to(self, candidate: "Deinflection") -> bool:
        if not candidate.term.endswith(self.kana_in):
            return False
        if len(candidate.term) - len(self.kana_in) + len(self.kana_out) <= 0:
            return False
        # An identity candidate has no class yet, so any rule may start a chain
        return not candidate.rules or bool(candidate.rules & self.rules_in)

    def apply(self, candidate: "Deinflection") -> "Deinflection":
        stem = candidate.term[:len(candidate.term) - len(self.kana_in)]
        return Deinflection(
            term=stem + self.kana_out,
            rules=self.rules_out,
            trace=candidate.trace + (self.name,),
        )


@dataclass(frozen=True, slots=True)
class Deinflection:
    """
    A base-form candidate.

    Attributes:
        term: Candidate dictionary form
        rules: Word classes the candidate must belong to (empty for identity)
        trace: Rule names applied, oldest first
    """
    term: str
    rules: FrozenSet[str] = frozenset()
    trace: Tuple[str, ...] = ()

    @property
    def depth(self) -> int:
        return len(self.trace)

    def accepts(self, rule_classes: Iterable[str]) -> bool:
        """Check whether a term entry with these rule tags can be this candidate."""
        if not self.rules:
            return True
        return bool(self.rules & rule_families(rule_classes))


# ============================================================================
# Rule Table
# ============================================================================

def _split_classes(value: str) -> FrozenSet[str]:
    return frozenset(value.split())


def parse_rules(lines: Iterable[str], source: str = "<rules>") -> List[DeinflectionRule]:
    """
    Parse a tab-separated rule table.

    Malformed rows are logged and skipped.
    """
    rules = []
    reader = csv.reader(lines, delimiter='\t')
    next(reader, None)  # Skip header
    for line_no, row in enumerate(reader, start=2):
        if not row or not any(cell.strip() for cell in row):
            continue
        if len(row) < 5 or not row[0].strip() or not row[1]:
            logger.warning(f"Skipping malformed deinflection rule at {source}:{line_no}: {row!r}")
            continue
        name, kana_in, kana_out, rules_in, rules_out = row[:5]
        rules.append(DeinflectionRule(
            name=name.strip(),
            kana_in=kana_in,
            kana_out=kana_out,
            rules_in=_split_classes(rules_in),
            rules_out=_split_classes(rules_out),
        ))
    return rules


_DEFAULT_RULES: Optional[Tuple[DeinflectionRule, ...]] = None


def load_rules(path: Optional[Path] = None) -> Tuple[DeinflectionRule, ...]:
    """
    Load the rule table.

    The bundled table is read once and cached; an explicit path is always
    read fresh.
    """
    global _DEFAULT_RULES

    if path is None and _DEFAULT_RULES is not None:
        return _DEFAULT_RULES

    source = path or RULES_TSV
    with open(source, 'r', encoding='utf-8', newline='') as f:
        rules = tuple(parse_rules(f, source=str(source)))

    if path is None:
        _DEFAULT_RULES = rules
    return rules


# ============================================================================
# Deinflector
# ============================================================================

class Deinflector:
    """
    Breadth-first deinflection over a fixed rule table.

    Args:
        rules: Rule table; the bundled one is used when omitted
        max_depth: Maximum number of rules applied in one chain
        descriptions: Human-readable text per rule name
    """

    def __init__(
        self,
        rules: Optional[Iterable[DeinflectionRule]] = None,
        max_depth: int = MAX_DEINFLECTION_DEPTH,
        descriptions: Optional[Dict[str, str]] = None,
    ):
        self.rules = tuple(rules) if rules is not None else load_rules()
        self.max_depth = max_depth
        self.descriptions = RULE_DESCRIPTIONS if descriptions is None else descriptions

        # Bucket rules by their final character for cheap suffix filtering
        self._by_last_char: Dict[str, List[DeinflectionRule]] = {}
        for rule in self.rules:
            self._by_last_char.setdefault(rule.kana_in[-1], []).append(rule)

    def deinflect(self, text: str) -> List[Deinflection]:
        """
        Produce every base-form candidate of text.

        The identity candidate is always first. Later candidates appear in
        breadth-first order, so a shorter trace always precedes a longer one.

        Example:
            >>> [d.term for d in Deinflector().deinflect("食べた")][:2]
            ['食べた', '食べる']
        """
        if not text:
            return []

        identity = Deinflection(term=text)
        # Insertion ordered: identity first, then breadth-first discovery order
        found: Dict[str, Deinflection] = {text: identity}
        frontier = [text]
        depth = 0

        while frontier and depth < self.max_depth:
            next_frontier = []
            for term in frontier:
                candidate = found[term]
                for rule in self._by_last_char.get(term[-1], ()):
                    if not rule.applies_to(candidate):
                        continue
                    derived = rule.apply(candidate)
                    existing = found.get(derived.term)
                    if existing is None:
                        found[derived.term] = derived
                        next_frontier.append(derived.term)
                    elif existing.depth == derived.depth and not derived.rules <= existing.rules:
                        # Same base form at the same depth: keep the first trace, widen the classes
                        found[derived.term] = replace(existing, rules=existing.rules | derived.rules)
            frontier = next_frontier
            depth += 1

        return list(found.values())

    def describe(self, trace: Iterable[str]) -> List[DeinflectionTag]:
        return [DeinflectionTag(name, self.descriptions.get(name, name)) for name in trace]
