"""Text normalization and quantity/bundle inference for raw product names."""

import re
import unicodedata

__all__ = [
    "normalize",
    "tokenize",
    "extract_quantity",
    "has_bundle_keyword",
    "looks_like_bundle",
]

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")

# Quantity signals, tried in this order
_PREFIX_QTY_RE = re.compile(r"\b(combo|bộ|set|mua|sl|số lượng)\s*[:.\-]*\s*(\d+)")
_BOGO_TAIL_RE = re.compile(r"\s*(tặng|tang)\s*1\b")
_X_QTY_RE = re.compile(r"[\s(\[]x\s*(\d+)\b")
_BOGO_PHRASES = ("mua 1 tặng 1", "mua 1 tang 1")
_LEADING_UNIT_RE = re.compile(r"^(\d+)\s*(chai|lọ|hộp|túi|miếng|cái)")

_BUNDLE_KEYWORD_RE = re.compile(r"\b(combo|bộ|set)\b", re.IGNORECASE)
_BUNDLE_HINT_RE = re.compile(r"combo|bộ|set|mua.*tặng", re.IGNORECASE)


def normalize(text: str) -> str:
    """Canonicalize a string for matching.

    Lowercases, strips diacritics (``đ`` becomes ``d``), replaces anything that
    is not ``a-z0-9`` or whitespace with a space, and collapses whitespace.
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    stripped = stripped.replace("đ", "d")
    cleaned = _NON_ALNUM_RE.sub(" ", stripped)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def tokenize(text: str) -> list:
    """Normalize and split on whitespace."""
    return normalize(text).split()


def extract_quantity(raw_name: str) -> int:
    """Infer how many units a listing sells from its free-text name.

    Returns at least 1.

    Examples:
        >>> extract_quantity("Combo 3 Nước tẩy trang sen Hậu Giang 140ml")
        3
        >>> extract_quantity("Mua 1 tặng 1 nước hoa hồng")
        2
    """
    clean = unicodedata.normalize("NFC", raw_name or "").lower().strip()

    for match in _PREFIX_QTY_RE.finditer(clean):
        # "mua 1 tặng 1" is a buy-one-get-one offer, not "buy quantity 1"
        if (
            match.group(1) == "mua"
            and int(match.group(2)) == 1
            and _BOGO_TAIL_RE.match(clean, match.end())
        ):
            continue
        return max(1, int(match.group(2)))

    x_match = _X_QTY_RE.search(clean)
    if x_match:
        return max(1, int(x_match.group(1)))

    if any(phrase in clean for phrase in _BOGO_PHRASES):
        return 2

    unit_match = _LEADING_UNIT_RE.match(clean)
    if unit_match:
        return max(1, int(unit_match.group(1)))

    return 1


def has_bundle_keyword(raw_name: str) -> bool:
    """True when the name carries a bare combo/bộ/set word."""
    return bool(_BUNDLE_KEYWORD_RE.search(unicodedata.normalize("NFC", raw_name or "")))


def looks_like_bundle(raw_name: str) -> bool:
    """Looser check used when nothing in the catalog matched."""
    return bool(_BUNDLE_HINT_RE.search(unicodedata.normalize("NFC", raw_name or "")))
