"""Tests for source configuration, task building and extension capture."""

import pytest

from superscraper.models import MarketplaceType, SourceConfig
from superscraper.sources import (
    ExtensionPayload,
    apply_extension_payload,
    build_tasks,
    default_sources,
)

LONG_HTML = "<div>" + "sản phẩm " * 20 + "</div>"


class TestSourceConfig:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("SHOPEE", MarketplaceType.SHOPEE),
            ("Tiktok Shop", MarketplaceType.TIKTOK),
            ("tiki trading", MarketplaceType.TIKI),
            ("Hasaki.vn", MarketplaceType.HASAKI),
            ("Cửa hàng riêng", MarketplaceType.OTHER),
        ],
    )
    def test_marketplace_inferred(self, name, expected):
        assert SourceConfig(name=name).marketplace == expected

    def test_discount_eligibility(self):
        assert SourceConfig(name="SHOPEE").discount_eligible
        assert SourceConfig(name="Kênh phụ", marketplace="TIKTOK").discount_eligible
        assert not SourceConfig(name="LAZADA").discount_eligible

    def test_voucher_clamped(self):
        assert SourceConfig(name="x", voucher_percent=150).voucher_percent == 100
        assert SourceConfig(name="x", voucher_percent=-3).voucher_percent == 0

    def test_defaults(self):
        assert [s.name for s in default_sources()] == ["SHOPEE", "LAZADA", "TIKTOK", "TIKI", "HASAKI"]


class TestBuildTasks:
    """Test expanding sources into extraction tasks."""

    def test_one_task_per_url_hint_on_last(self):
        sources = [SourceConfig(name="SHOPEE", urls=["https://shopee.vn/a", " ", "https://shopee.vn/b"], html_hint=LONG_HTML)]
        tasks = build_tasks(sources)
        assert [(t.source_index, t.url) for t in tasks] == [(1, "https://shopee.vn/a"), (1, "https://shopee.vn/b")]
        assert tasks[0].html == ""
        assert tasks[1].html == LONG_HTML

    def test_manual_html_task(self):
        sources = [SourceConfig(name="SHOPEE"), SourceConfig(name="LAZADA", html_hint=LONG_HTML)]
        (task,) = build_tasks(sources)
        assert task.is_manual
        assert task.source_index == 2

    def test_short_hint_ignored(self):
        assert build_tasks([SourceConfig(name="SHOPEE", html_hint="<p>x</p>")]) == []

    def test_source_order(self):
        sources = [
            SourceConfig(name="A", urls=["https://a.vn/1"]),
            SourceConfig(name="B"),
            SourceConfig(name="C", urls=["https://c.vn/1"]),
        ]
        assert [t.source_index for t in build_tasks(sources)] == [1, 3]


class TestExtensionPayload:
    """Test routing a captured page to a source."""

    def test_focused_source_wins(self):
        sources = default_sources()
        idx = apply_extension_payload(sources, ExtensionPayload(LONG_HTML, "https://shopee.vn/x"), focused_index=4)
        assert idx == 4
        assert sources[3].urls == ["https://shopee.vn/x"]
        assert sources[3].html_hint == LONG_HTML

    def test_marketplace_from_url(self):
        sources = default_sources()
        assert apply_extension_payload(sources, ExtensionPayload(LONG_HTML, "https://www.lazada.vn/shop/x")) == 2

    def test_first_empty_source(self):
        sources = default_sources()
        sources[0].urls = ["https://shopee.vn/a"]
        assert apply_extension_payload(sources, ExtensionPayload(LONG_HTML, "https://brand.vn/p")) == 2

    def test_all_full_falls_back_to_first(self):
        sources = [SourceConfig(name="A", urls=["https://a.vn"]), SourceConfig(name="B", html_hint="x")]
        assert apply_extension_payload(sources, ExtensionPayload(LONG_HTML, "https://brand.vn/p")) == 1

    def test_repeat_capture_moves_url_last(self):
        sources = [SourceConfig(name="SHOPEE", urls=["https://shopee.vn/a", "https://shopee.vn/b"])]
        apply_extension_payload(sources, ExtensionPayload(LONG_HTML, "https://shopee.vn/a"))
        assert sources[0].urls == ["https://shopee.vn/b", "https://shopee.vn/a"]
        assert build_tasks(sources)[-1].html == LONG_HTML

    def test_no_sources(self):
        with pytest.raises(ValueError):
            apply_extension_payload([], ExtensionPayload("", ""))
