"""Tests for cross-source reconciliation and reporting."""

import pytest

from superscraper.classifier import classify_records_algorithmically
from superscraper.models import CanonicalGroup, RawProductRecord, SourceConfig
from superscraper.reconcile import (
    KIND_COMBO,
    KIND_RETAIL,
    effective_price,
    filter_groups,
    gap_percent,
    reconcile,
    summarize,
)


def record(name, price, source, url="", top="Khác", sub="Khác", bundle="Lẻ"):
    return RawProductRecord(
        raw_name=name,
        price=price,
        source_index=source,
        product_url=url,
        canonical_name=name,
        category_top=top,
        category_sub=sub,
        bundle_label=bundle,
    )


class TestEffectivePrice:
    """Test voucher application."""

    def test_voucher_on_discount_marketplace(self, sources):
        assert effective_price(record("x", 100000, 1), sources) == 90000

    def test_voucher_ignored_elsewhere(self, sources):
        # LAZADA carries a voucher but does not take it
        assert effective_price(record("x", 100000, 2), sources) == 100000

    def test_rounds_half_up_to_hundred(self):
        sources = [SourceConfig(name="TIKTOK", voucher_percent=7)]
        # 123450 * 0.93 = 114808.5
        assert effective_price(record("x", 123450, 1), sources) == 114800
        sources = [SourceConfig(name="TIKTOK", voucher_percent=50)]
        assert effective_price(record("x", 500, 1), sources) == 300

    def test_unknown_source_index(self, sources):
        assert effective_price(record("x", 5000, 9), sources) == 5000


class TestReconcile:
    """Test folding records into canonical groups."""

    def test_minimum_price_per_source(self):
        sources = [SourceConfig(name="SHOP A")]
        records = [
            record("P", 100000, 1, "u100"),
            record("P", 80000, 1, "u80"),
            record("P", 120000, 1, "u120"),
        ]
        (group,) = reconcile(records, sources)
        assert group.prices == {1: 80000}
        assert group.urls == {1: "u80"}

    def test_ties_keep_first_seen(self):
        sources = [SourceConfig(name="A")]
        (group,) = reconcile([record("P", 5000, 1, "first"), record("P", 5000, 1, "second")], sources)
        assert group.urls[1] == "first"

    def test_zero_price_replaced(self):
        sources = [SourceConfig(name="A")]
        (group,) = reconcile([record("P", 0, 1, "none"), record("P", 7000, 1, "real")], sources)
        assert group.prices[1] == 7000
        assert group.urls[1] == "real"

    def test_voucher_price_used(self, sources):
        (group,) = reconcile([record("P", 100000, 1)], sources)
        assert group.prices[1] == 90000

    def test_category_does_not_regress(self):
        sources = [SourceConfig(name="A"), SourceConfig(name="B")]
        records = [
            record("P", 1000, 1, top="Làm sạch", sub="Tẩy trang"),
            record("P", 2000, 2, top="Khác", sub="Chưa xử lý", bundle="Raw"),
        ]
        (group,) = reconcile(records, sources)
        assert (group.category, group.sub_category, group.bundle_label) == ("Làm sạch", "Tẩy trang", "Lẻ")

    def test_placeholder_first_then_specific(self):
        sources = [SourceConfig(name="A")]
        records = [record("P", 1000, 1, top="Khác"), record("P", 1000, 1, top="Dưỡng da")]
        (group,) = reconcile(records, sources)
        assert group.category == "Dưỡng da"

    def test_first_seen_order(self):
        groups = reconcile([record("Z", 1, 1), record("A", 1, 1), record("Z", 1, 1)], [SourceConfig(name="A")])
        assert [g.canonical_name for g in groups] == ["Z", "A"]

    def test_end_to_end_bundle_is_its_own_group(self, sample_records, sources):
        """A bundle of two is a different product from the single unit."""
        classify_records_algorithmically(sample_records[:2])
        groups = reconcile(sample_records[:2], sources)

        names = sorted(g.canonical_name for g in groups)
        assert names == [
            "Combo 2 Nước tẩy trang sen Hậu Giang 140ml",
            "Nước tẩy trang sen Hậu Giang 140ml",
        ]
        by_name = {g.canonical_name: g for g in groups}
        assert by_name["Nước tẩy trang sen Hậu Giang 140ml"].prices == {1: 45000}
        assert by_name["Combo 2 Nước tẩy trang sen Hậu Giang 140ml"].prices == {2: 90000}


class TestGap:
    def test_gap_percent(self):
        assert gap_percent({1: 100000, 2: 150000}) == 50
        assert gap_percent({1: 100000}) is None
        assert gap_percent({1: 100000, 2: 0}) is None

    def test_group_gap(self):
        group = CanonicalGroup("P", "P", prices={1: 3, 2: 4})
        # 33.33 rounds to 33
        assert group.gap_percent == 33


class TestFilterGroups:
    """Test the comparison-table view."""

    @pytest.fixture
    def groups(self):
        return [
            CanonicalGroup("b", "beta serum", bundle_label="Lẻ", prices={1: 10, 2: 12}),
            CanonicalGroup("a", "Alpha set", bundle_label="Combo 2", prices={1: 10}),
            CanonicalGroup("c", "Gamma", bundle_label="Bộ quà", prices={1: 0, 2: 5}),
        ]

    def test_sorted_by_display_name(self, groups):
        assert [g.display_name for g in filter_groups(groups)] == ["Alpha set", "beta serum", "Gamma"]

    def test_search_case_insensitive(self, groups):
        assert [g.canonical_name for g in filter_groups(groups, search="SERUM")] == ["b"]

    def test_kind_filters(self, groups):
        assert [g.canonical_name for g in filter_groups(groups, kind=KIND_RETAIL)] == ["b"]
        assert [g.canonical_name for g in filter_groups(groups, kind=KIND_COMBO)] == ["a", "c"]

    def test_duplicates_only(self, groups):
        assert [g.canonical_name for g in filter_groups(groups, duplicates_only=True)] == ["b"]

    def test_unknown_kind(self, groups):
        with pytest.raises(ValueError):
            filter_groups(groups, kind="bundles")


class TestSummarize:
    def test_report(self, sources):
        records = [
            record("P", 100, 3, top="Làm sạch"),
            record("P", 150, 4, top="Làm sạch"),
            record("Q", 100, 3, top="Dưỡng da", bundle="Combo 2"),
            record("Q", 110, 4, top="Dưỡng da", bundle="Combo 3"),
            record("R", 50, 3, top="Làm sạch", bundle="Combo 6"),
        ]
        groups = reconcile(records, sources)

        report = summarize(records, groups, sources)

        assert report.total_raw == 5
        assert report.total_groups == 3
        # mean of 50 and 10
        assert report.avg_gap == 30
        assert [g.canonical_name for g in report.top_gaps] == ["P", "Q"]
        assert report.top_category == "Làm sạch"
        assert report.categories == [("Làm sạch", 3), ("Dưỡng da", 2)]

        tiktok, tiki = report.source_stats[2], report.source_stats[3]
        assert tiktok.total == 3
        assert tiktok.bundle_counts == {"Lẻ": 1, "Combo 2": 1, "Combo 3": 0, "Combo 4+": 1}
        assert tiki.bundle_counts["Combo 3"] == 1
        assert not report.source_stats[0].active

    def test_empty(self, sources):
        report = summarize([], [], sources)
        assert report.avg_gap == 0
        assert report.top_category is None
        assert report.top_gaps == []
