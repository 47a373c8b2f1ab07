"""Cross-source reconciliation: one row per canonical product, one price per source.

Effective prices include the source voucher where the marketplace supports
it. The voucher price is rounded to the nearest 100 VND for display; this is
lossy and not meant for accounting.
"""

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from superscraper.config import PRICE_ROUNDING_STEP
from superscraper.models import (
    OTHER_CATEGORY,
    RAW_LABEL,
    SINGLE_LABEL,
    UNPROCESSED,
    CanonicalGroup,
    RawProductRecord,
    SourceConfig,
    gap_percent,
)

__all__ = [
    "effective_price",
    "reconcile",
    "gap_percent",
    "filter_groups",
    "SourceStats",
    "ReconciliationReport",
    "summarize",
    "KIND_ALL",
    "KIND_RETAIL",
    "KIND_COMBO",
]

KIND_ALL = "all"
KIND_RETAIL = "retail"
KIND_COMBO = "combo"

CATEGORY_PLACEHOLDERS = frozenset({OTHER_CATEGORY, UNPROCESSED})
BUNDLE_PLACEHOLDERS = frozenset({RAW_LABEL})

TOP_N = 5


def _round_half_up(value: float, step: int = PRICE_ROUNDING_STEP) -> float:
    return float(math.floor(value / step + 0.5) * step)


def _source_for(record: RawProductRecord, sources: Sequence[SourceConfig]) -> Optional[SourceConfig]:
    idx = record.source_index - 1
    if 0 <= idx < len(sources):
        return sources[idx]
    return None


def effective_price(record: RawProductRecord, sources: Sequence[SourceConfig]) -> float:
    """Price after the source voucher, when the marketplace takes vouchers.

    Examples:
        A SHOPEE source with a 10% voucher turns 100000 into 90000.0.
    """
    source = _source_for(record, sources)
    price = record.price or 0
    if source is None or not source.discount_eligible or source.voucher_percent <= 0:
        return float(price)
    return _round_half_up(price * (1 - source.voucher_percent / 100))


def reconcile(
    records: Sequence[RawProductRecord], sources: Sequence[SourceConfig]
) -> List[CanonicalGroup]:
    """Fold records into canonical groups.

    Per source the minimum positive effective price wins (first seen on ties)
    along with its URL. Category and bundle labels follow the last specific
    value seen; placeholders never overwrite. Groups come out in first-seen
    order, unsorted.
    """
    groups: Dict[str, CanonicalGroup] = {}

    for record in records:
        key = record.group_key
        group = groups.get(key)
        if group is None:
            group = CanonicalGroup(
                canonical_name=key,
                display_name=record.canonical_name or record.raw_name,
                category=record.category_top or OTHER_CATEGORY,
                sub_category=record.category_sub or OTHER_CATEGORY,
                bundle_label=record.bundle_label or SINGLE_LABEL,
            )
            groups[key] = group

        price = effective_price(record, sources)
        src = record.source_index
        current = group.prices.get(src)
        if not current or (price > 0 and price < current):
            group.prices[src] = price
            group.urls[src] = record.product_url

        if record.category_top and record.category_top not in CATEGORY_PLACEHOLDERS:
            group.category = record.category_top
        if record.category_sub and record.category_sub not in CATEGORY_PLACEHOLDERS:
            group.sub_category = record.category_sub
        if record.bundle_label and record.bundle_label not in BUNDLE_PLACEHOLDERS:
            group.bundle_label = record.bundle_label

    return list(groups.values())


def _is_retail(label: str) -> bool:
    lower = label.lower()
    return "lẻ" in lower or ("combo" not in lower and "bộ" not in lower)


def filter_groups(
    groups: Sequence[CanonicalGroup],
    search: str = "",
    kind: str = KIND_ALL,
    duplicates_only: bool = False,
) -> List[CanonicalGroup]:
    """Comparison-table view: search, retail/combo filter, multi-source only.

    Sorted by display name.
    """
    result = list(groups)
    if search:
        needle = search.lower()
        result = [g for g in result if needle in g.display_name.lower()]
    if kind == KIND_RETAIL:
        result = [g for g in result if _is_retail(g.bundle_label)]
    elif kind == KIND_COMBO:
        result = [g for g in result if g.is_combo]
    elif kind != KIND_ALL:
        raise ValueError(f"Unknown group kind: {kind!r}")
    if duplicates_only:
        result = [g for g in result if len(g.active_prices) > 1]
    return sorted(result, key=lambda g: g.display_name.lower())


@dataclass
class SourceStats:
    name: str
    total: int
    bundle_counts: Dict[str, int]

    @property
    def active(self) -> bool:
        return self.total > 0


@dataclass
class ReconciliationReport:
    """Dashboard numbers for one set of results."""

    total_raw: int
    total_groups: int
    avg_gap: int
    top_category: Optional[str]
    categories: List[Tuple[str, int]] = field(default_factory=list)
    top_gaps: List[CanonicalGroup] = field(default_factory=list)
    source_stats: List[SourceStats] = field(default_factory=list)


def _bundle_bucket(label: str) -> str:
    if "lẻ" in label.lower() or "Combo" not in label:
        return SINGLE_LABEL
    if "2" in label:
        return "Combo 2"
    if "3" in label:
        return "Combo 3"
    return "Combo 4+"


def summarize(
    records: Sequence[RawProductRecord],
    groups: Sequence[CanonicalGroup],
    sources: Sequence[SourceConfig],
) -> ReconciliationReport:
    """Totals, average and top price gaps, top categories and per-source mix."""
    gaps = []
    for group in groups:
        active = list(group.active_prices.values())
        if len(active) > 1:
            low, high = min(active), max(active)
            gaps.append(100 * (high - low) / low)
    avg_gap = int(math.floor(sum(gaps) / len(gaps) + 0.5)) if gaps else 0

    top_gaps = sorted(
        (g for g in groups if (g.gap_percent or 0) > 0),
        key=lambda g: g.gap_percent,
        reverse=True,
    )[:TOP_N]

    categories = Counter(r.category_top for r in records if r.category_top)
    top_categories = categories.most_common(TOP_N)

    source_stats = []
    for idx, source in enumerate(sources, start=1):
        counts = {SINGLE_LABEL: 0, "Combo 2": 0, "Combo 3": 0, "Combo 4+": 0}
        own = [r for r in records if r.source_index == idx]
        for record in own:
            counts[_bundle_bucket(record.bundle_label or SINGLE_LABEL)] += 1
        source_stats.append(SourceStats(name=source.name, total=len(own), bundle_counts=counts))

    return ReconciliationReport(
        total_raw=len(records),
        total_groups=len(groups),
        avg_gap=avg_gap,
        top_category=top_categories[0][0] if top_categories else None,
        categories=top_categories,
        top_gaps=top_gaps,
        source_stats=source_stats,
    )
