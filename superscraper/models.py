"""Data models for raw records, sources and reconciled groups."""

import math
import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from superscraper.config import DISCOUNT_MARKETPLACES

__all__ = [
    "RecordStatus",
    "MarketplaceType",
    "Classification",
    "RawProductRecord",
    "SourceConfig",
    "CanonicalGroup",
    "StoreResult",
    "gap_percent",
    "SINGLE_LABEL",
    "RAW_LABEL",
    "COMBO_CATEGORY",
    "COMBO_SUB_CATEGORY",
    "OTHER_CATEGORY",
    "UNPROCESSED",
]

SINGLE_LABEL = "Lẻ"
RAW_LABEL = "Raw"
COMBO_CATEGORY = "Combo"
COMBO_SUB_CATEGORY = "Bộ sản phẩm"
OTHER_CATEGORY = "Khác"
UNPROCESSED = "Chưa xử lý"


class RecordStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class MarketplaceType(str, Enum):
    """Marketplace a source belongs to, decoupled from its display name."""

    SHOPEE = "SHOPEE"
    LAZADA = "LAZADA"
    TIKTOK = "TIKTOK"
    TIKI = "TIKI"
    HASAKI = "HASAKI"
    OTHER = "OTHER"

    @classmethod
    def from_name(cls, text: Optional[str]) -> "MarketplaceType":
        """Infer the marketplace from a free-text name or URL by substring.

        TIKTOK is tested before TIKI since the latter is a prefix of it.
        """
        upper = (text or "").upper()
        for candidate in (cls.SHOPEE, cls.LAZADA, cls.TIKTOK, cls.TIKI, cls.HASAKI):
            if candidate.value in upper:
                return candidate
        return cls.OTHER


@dataclass
class Classification:
    """Canonical identity and labels assigned to one raw name."""

    canonical_name: str
    bundle_label: str = SINGLE_LABEL
    category_top: str = OTHER_CATEGORY
    category_sub: str = OTHER_CATEGORY

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class RawProductRecord:
    """One product observation from one source.

    Until classified, ``canonical_name`` mirrors ``raw_name`` and the labels
    hold the ``Raw`` / ``Chưa xử lý`` sentinels.
    """

    # Required fields
    raw_name: str
    price: float
    source_index: int

    product_url: str = ""
    page_url: str = ""
    status: RecordStatus = RecordStatus.PENDING

    # Classification fields
    canonical_name: str = ""
    bundle_label: str = RAW_LABEL
    category_top: str = UNPROCESSED
    category_sub: str = UNPROCESSED

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:9])
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if not self.canonical_name:
            self.canonical_name = self.raw_name
        if not isinstance(self.status, RecordStatus):
            self.status = RecordStatus(self.status)
        if self.price is None or self.price < 0:
            self.price = 0

    @property
    def is_classified(self) -> bool:
        return self.status == RecordStatus.SUCCESS

    @property
    def group_key(self) -> str:
        return (self.canonical_name or self.raw_name).strip()

    def apply(self, classification: Classification) -> None:
        """Copy classification fields onto the record and mark it successful."""
        self.canonical_name = (classification.canonical_name or "").strip() or self.raw_name
        self.bundle_label = classification.bundle_label or SINGLE_LABEL
        self.category_top = classification.category_top or OTHER_CATEGORY
        self.category_sub = classification.category_sub or OTHER_CATEGORY
        self.status = RecordStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawProductRecord":
        """Create from a dict; accepts the legacy camelCase field names too."""
        return cls(
            raw_name=data.get("raw_name") or data.get("sanPham") or "",
            price=float(data.get("price", data.get("gia", 0)) or 0),
            source_index=int(data.get("source_index", data.get("sourceIndex", 1))),
            product_url=data.get("product_url", data.get("productUrl", "")) or "",
            page_url=data.get("page_url", data.get("url", "")) or "",
            status=data.get("status", RecordStatus.PENDING.value),
            canonical_name=data.get("canonical_name", data.get("normalizedName", "")) or "",
            bundle_label=data.get("bundle_label", data.get("plCombo", RAW_LABEL)) or RAW_LABEL,
            category_top=data.get("category_top", data.get("phanLoaiTong", UNPROCESSED)) or UNPROCESSED,
            category_sub=data.get("category_sub", data.get("phanLoaiChiTiet", UNPROCESSED)) or UNPROCESSED,
            id=data.get("id") or uuid.uuid4().hex[:9],
            timestamp=float(data.get("timestamp") or time.time()),
        )


@dataclass
class SourceConfig:
    """One configured retail source, referenced by its 1-based position."""

    name: str
    urls: List[str] = field(default_factory=list)
    html_hint: str = ""
    voucher_percent: float = 0.0
    marketplace: Optional[MarketplaceType] = None

    def __post_init__(self) -> None:
        if self.marketplace is None:
            self.marketplace = MarketplaceType.from_name(self.name)
        elif not isinstance(self.marketplace, MarketplaceType):
            self.marketplace = MarketplaceType(self.marketplace)
        self.voucher_percent = min(max(float(self.voucher_percent or 0), 0.0), 100.0)

    @property
    def discount_eligible(self) -> bool:
        return self.marketplace.value in DISCOUNT_MARKETPLACES

    @property
    def has_input(self) -> bool:
        return any(u.strip() for u in self.urls) or bool(self.html_hint.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "urls": list(self.urls),
            "html_hint": self.html_hint,
            "voucher_percent": self.voucher_percent,
            "marketplace": self.marketplace.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceConfig":
        return cls(
            name=data.get("name", ""),
            urls=list(data.get("urls") or []),
            html_hint=data.get("html_hint", data.get("htmlHint", "")) or "",
            voucher_percent=data.get("voucher_percent", data.get("voucherPercent", 0)) or 0,
            marketplace=data.get("marketplace"),
        )


def gap_percent(prices: Dict[int, float]) -> Optional[int]:
    """Percent spread between the cheapest and dearest active source.

    None unless at least two sources have a positive price.
    """
    active = [p for p in prices.values() if p and p > 0]
    if len(active) < 2:
        return None
    low, high = min(active), max(active)
    return int(math.floor(100 * (high - low) / low + 0.5))


@dataclass
class CanonicalGroup:
    """All observations of one canonical product, one price per source."""

    canonical_name: str
    display_name: str
    category: str = OTHER_CATEGORY
    sub_category: str = OTHER_CATEGORY
    bundle_label: str = SINGLE_LABEL
    prices: Dict[int, float] = field(default_factory=dict)
    urls: Dict[int, str] = field(default_factory=dict)

    @property
    def active_prices(self) -> Dict[int, float]:
        return {src: p for src, p in self.prices.items() if p and p > 0}

    @property
    def min_price(self) -> Optional[float]:
        active = self.active_prices
        return min(active.values()) if active else None

    @property
    def max_price(self) -> Optional[float]:
        active = self.active_prices
        return max(active.values()) if active else None

    @property
    def gap_percent(self) -> Optional[int]:
        return gap_percent(self.prices)

    @property
    def is_combo(self) -> bool:
        label = self.bundle_label.lower()
        return "combo" in label or "bộ" in label

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["gap_percent"] = self.gap_percent
        return data


@dataclass
class StoreResult:
    """A physical or online store found by the store search."""

    store_name: str
    address: str = ""
    phone: str = ""
    price_estimate: str = ""
    is_open: str = ""
    link: str = ""
    province: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoreResult":
        return cls(
            store_name=str(data.get("storeName") or data.get("store_name") or data.get("name") or ""),
            address=str(data.get("address") or ""),
            phone=str(data.get("phone") or ""),
            price_estimate=str(data.get("priceEstimate") or data.get("price_estimate") or ""),
            is_open=str(data.get("isOpen") or data.get("is_open") or ""),
            link=str(data.get("link") or ""),
            province=str(data.get("province") or ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)
