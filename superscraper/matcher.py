"""Algorithmic classifier: fuzzy token matching against the official catalog.

Every catalog entry is scored against the raw name by token overlap. Entries
at or above the acceptance threshold become candidates; redundant candidates
(one name contained in another) collapse to the longer name. The number of
surviving names decides the outcome:

- none: the raw name is kept as-is
- one: the catalog name, prefixed with ``Combo N`` for multi-unit listings
- several: a ``A + B`` combo of distinct products
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from superscraper.catalog import Catalog, default_catalog, lookup_category
from superscraper.config import MATCH_THRESHOLD, PARTIAL_MATCH_CREDIT
from superscraper.models import (
    COMBO_CATEGORY,
    COMBO_SUB_CATEGORY,
    OTHER_CATEGORY,
    SINGLE_LABEL,
    Classification,
)
from superscraper.text import extract_quantity, has_bundle_keyword, looks_like_bundle, normalize

__all__ = [
    "MatchSettings",
    "Candidate",
    "ProductMatcher",
    "classify",
    "RAW_COMBO_LABEL",
]

RAW_COMBO_LABEL = "Combo (Raw)"


@dataclass(frozen=True)
class MatchSettings:
    """Scoring knobs.

    Attributes:
        threshold: Minimum score for a catalog entry to count as a match.
        partial_credit: Credit for a catalog token found only as a substring.
    """

    threshold: float = MATCH_THRESHOLD
    partial_credit: float = PARTIAL_MATCH_CREDIT


@dataclass(frozen=True)
class Candidate:
    name: str
    score: float


@dataclass(frozen=True)
class _Entry:
    name: str
    slug: str
    tokens: Tuple[str, ...]
    patterns: Tuple["re.Pattern[str]", ...]


class ProductMatcher:
    """Scores raw names against a catalog and classifies them."""

    def __init__(self, catalog: Optional[Catalog] = None, settings: Optional[MatchSettings] = None):
        self.catalog = catalog or default_catalog()
        self.settings = settings or MatchSettings()
        self._entries: List[_Entry] = []
        self._by_name: Dict[str, _Entry] = {}
        for name in self.catalog:
            entry = self._prepare(name)
            if entry.tokens:
                self._entries.append(entry)
                self._by_name[name] = entry

    @staticmethod
    def _prepare(name: str) -> _Entry:
        slug = normalize(name)
        tokens = tuple(slug.split())
        patterns = tuple(re.compile(rf"\b{re.escape(t)}\b") for t in tokens)
        return _Entry(name=name, slug=slug, tokens=tokens, patterns=patterns)

    def _score_entry(self, raw_slug: str, entry: _Entry) -> float:
        total = 0.0
        for token, pattern in zip(entry.tokens, entry.patterns):
            if pattern.search(raw_slug):
                total += 1.0
            elif token in raw_slug:
                total += self.settings.partial_credit
        return total / len(entry.tokens)

    def score(self, raw_name: str, official_name: str) -> float:
        """Token-overlap score of ``official_name`` inside ``raw_name`` (0..1)."""
        entry = self._by_name.get(official_name) or self._prepare(official_name)
        if not entry.tokens:
            return 0.0
        return self._score_entry(normalize(raw_name), entry)

    def find_candidates(self, raw_name: str) -> List[Candidate]:
        """Catalog entries at or above the threshold, best first."""
        raw_slug = normalize(raw_name)
        if not raw_slug:
            return []
        found = []
        for entry in self._entries:
            value = self._score_entry(raw_slug, entry)
            if value >= self.settings.threshold:
                found.append(Candidate(entry.name, value))
        found.sort(key=lambda c: (-c.score, -len(c.name)))
        return found

    def _redundant(self, a: str, b: str) -> bool:
        if a in b or b in a:
            return True
        ea = self._by_name.get(a) or self._prepare(a)
        eb = self._by_name.get(b) or self._prepare(b)
        if ea.slug in eb.slug or eb.slug in ea.slug:
            return True
        ta, tb = set(ea.tokens), set(eb.tokens)
        return ta <= tb or tb <= ta

    def resolve_overlaps(self, candidates: List[Candidate]) -> List[str]:
        """Drop candidates that restate a kept one, keeping the longer name."""
        kept: List[str] = []
        for candidate in candidates:
            for i, existing in enumerate(kept):
                if self._redundant(existing, candidate.name):
                    if len(candidate.name) > len(existing):
                        kept[i] = candidate.name
                    break
            else:
                kept.append(candidate.name)
        return kept

    def classify(self, raw_name: str) -> Classification:
        """Map a raw listing name to its canonical identity and labels."""
        products = self.resolve_overlaps(self.find_candidates(raw_name))

        if not products:
            bundle = SINGLE_LABEL
            if looks_like_bundle(raw_name) or extract_quantity(raw_name) > 1:
                bundle = RAW_COMBO_LABEL
            return Classification(
                canonical_name=raw_name,
                bundle_label=bundle,
                category_top=OTHER_CATEGORY,
                category_sub=OTHER_CATEGORY,
            )

        if len(products) == 1:
            name = products[0]
            top, sub = lookup_category(name)
            qty = extract_quantity(raw_name)
            if qty > 1:
                prefix = f"Combo {qty}"
                return Classification(
                    canonical_name=f"{prefix} {name}",
                    bundle_label=prefix,
                    category_top=COMBO_CATEGORY,
                    category_sub=COMBO_SUB_CATEGORY,
                )
            if has_bundle_keyword(raw_name):
                return Classification(
                    canonical_name=f"Combo {name}",
                    bundle_label="Combo",
                    category_top=COMBO_CATEGORY,
                    category_sub=sub,
                )
            return Classification(
                canonical_name=name,
                bundle_label=SINGLE_LABEL,
                category_top=top,
                category_sub=sub,
            )

        ordered = sorted(products)
        return Classification(
            canonical_name=" + ".join(ordered),
            bundle_label=f"Combo {len(ordered)}",
            category_top=COMBO_CATEGORY,
            category_sub=COMBO_SUB_CATEGORY,
        )


_default_matcher: Optional[ProductMatcher] = None


def classify(raw_name: str) -> Classification:
    """Classify with the bundled catalog and default settings."""
    global _default_matcher
    if _default_matcher is None:
        _default_matcher = ProductMatcher()
    return _default_matcher.classify(raw_name)
