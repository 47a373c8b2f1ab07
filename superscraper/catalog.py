"""Reference catalog of official product names and the category lookup table."""

from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from superscraper.models import OTHER_CATEGORY
from superscraper.text import normalize

__all__ = [
    "OFFICIAL_NAMES",
    "CATEGORY_RULES",
    "OTHER_CATEGORY",
    "Catalog",
    "default_catalog",
    "lookup_category",
]

OFFICIAL_NAMES: List[str] = [
    "Nước tẩy trang sen Hậu Giang 140ml",
    "Nước tẩy trang sen Hậu Giang 500ml",
    "Dầu tẩy trang hoa hồng 310ml",
    "Nước tẩy trang hoa hồng 310ml",
    "Nước tẩy trang hoa hồng 140ml",
    "Dầu tẩy trang hoa hồng 140ml",
    "Nước tẩy trang bí đao 500ml",
    "Nước tẩy trang bí đao 140ml",
    "Sữa rửa mặt sen Hậu Giang 310ml",
    "Gel rửa mặt cà phê Đắk Lắk 310ml",
    "Gel rửa mặt cà phê Đắk Lắk 140ml",
    "Sữa rửa mặt nghệ Hưng Yên 310ml",
    "Sữa rửa mặt nghệ Hưng Yên 140ml",
    "Gel rửa mặt hoa hồng 140ml",
    "Gel bí đao rửa mặt 310ml",
    "Gel bí đao rửa mặt 140ml",
    "Nước sen Hậu Giang 500ml",
    "Nước sen Hậu Giang 310ml",
    "Nước sen Hậu Giang 140ml",
    "Nước nghệ Hưng Yên 310ml",
    "Nước nghệ Hưng Yên 140ml",
    "Nước bí đao cân bằng da 310ml",
    "Nước bí đao cân bằng da 140ml",
    "Mặt nạ nghệ Hưng Yên 100ml",
    "Mặt nạ nghệ Hưng Yên 30ml",
    "Mặt nạ bí đao 100ml",
    "Mặt nạ bí đao 30ml",
    "Tinh chất bí đao N15 70ml",
    "Tinh chất nghệ Hưng Yên C22 30ml",
    "Tinh chất nghệ Hưng Yên C10 30ml",
    "Tinh chất hoa hồng 30ml",
    "Dung dịch chấm mụn bí đao 5ml",
    "Tinh chất bí đao N7 70ml",
    "Cà phê Đắk Lắk làm sạch da chết mặt 150ml",
    "Sáp dưỡng ẩm đa năng sen Hậu Giang 30ml",
    "Thạch nghệ Hưng Yên 100ml",
    "Thạch nghệ Hưng Yên 30ml",
    "Thạch hoa hồng dưỡng ẩm 100ml",
    "Thạch hoa hồng dưỡng ẩm 30ml",
    "Thạch bí đao 100ml",
    "Thạch bí đao 30ml",
    "Xịt khoáng nghệ Hưng Yên 130ml",
    "Sữa chống nắng bí đao 15ml",
    "Sữa chống nắng bí đao 50ml",
    "Kem chống nắng bí đao 50ml",
    "Túi Refill Đường Thốt Nốt An Giang Làm Sạch Da Chết Cơ Thể 200ML",
    "Túi Refill Cà Phê Đắk Lắk Làm Sạch Da Chết Cơ Thể 200ML",
    "Đường thốt nốt An Giang làm sạch da chết cơ thể 200ml",
    "Cà phê Đắk Lắk làm sạch da chết 600ml",
    "Cà phê Đắk Lắk làm sạch da chết cơ thể 200ml",
    "Gel tắm đường thốt nốt An Giang 500ml",
    "Gel tắm khuynh diệp & bạc hà 500ml",
    "Gel tắm bí đao 310ml",
    "Bơ dưỡng thể cà phê Đắk Lắk 200ml",
    "Nước dưỡng da đầu bồ kết 140ml",
    "Nước dưỡng da đầu bồ kết 50ml",
    "Nước dưỡng tóc tinh dầu bưởi 310ml",
    "Nước dưỡng tóc tinh dầu bưởi 140ml",
    "Nước dưỡng tóc sa-chi 140ml",
    "Serum Sa-chi phục hồi tóc 70ml",
    "Dầu gội bưởi không sulfate 50ml",
    "Dầu gội bưởi refill không sulfate 500ml",
    "Dầu gội bưởi không sulfate 500ml",
    "Dầu gội bưởi không sulfate 310ml",
    "Dầu xả bưởi 50ml",
    "Dầu xả bưởi 310ml",
    "Kem ủ tóc bưởi 200ml",
    "Tẩy da chết da đầu bồ kết 200ml",
    "Tẩy da chết da đầu bồ kết 50ml",
    "Cà phê Đắk Lắk làm sạch da chết môi 5g",
    "Son dưỡng dầu dừa Bến Tre 5g",
]

# Ordered keyword -> (category, sub-category); first hit wins
CATEGORY_RULES: List[Tuple[str, str, str]] = [
    ("tẩy trang", "Làm sạch", "Tẩy trang"),
    ("rửa mặt", "Làm sạch", "Sữa rửa mặt"),
    ("mặt nạ", "Dưỡng da", "Mặt nạ"),
    ("tinh chất", "Dưỡng da", "Serum"),
    ("serum", "Dưỡng da", "Serum"),
    ("chấm mụn", "Dưỡng da", "Trị mụn"),
    ("chống nắng", "Chống nắng", "Chống nắng"),
    ("tẩy da chết", "Làm sạch", "Tẩy da chết"),
    ("làm sạch da chết", "Làm sạch", "Tẩy da chết"),
    ("thạch", "Dưỡng da", "Dưỡng ẩm"),
    ("xịt khoáng", "Dưỡng da", "Xịt khoáng"),
    ("gel tắm", "Chăm sóc cơ thể", "Sữa tắm"),
    ("dưỡng thể", "Chăm sóc cơ thể", "Dưỡng thể"),
    ("dầu gội", "Chăm sóc tóc", "Dầu gội"),
    ("dầu xả", "Chăm sóc tóc", "Dầu xả"),
    ("tóc", "Chăm sóc tóc", "Dưỡng tóc"),
    ("da đầu", "Chăm sóc tóc", "Dưỡng da đầu"),
    ("son dưỡng", "Chăm sóc môi", "Son dưỡng"),
    ("nước sen", "Dưỡng da", "Toner"),
    ("nước nghệ", "Dưỡng da", "Toner"),
    ("cân bằng da", "Dưỡng da", "Toner"),
    ("sáp dưỡng", "Dưỡng da", "Dưỡng ẩm"),
]

_NORMALIZED_RULES = [(normalize(keyword), top, sub) for keyword, top, sub in CATEGORY_RULES]


def lookup_category(name: str) -> Tuple[str, str]:
    """Return (category, sub-category) for a product name, or ("Khác", "Khác")."""
    slug = f" {normalize(name)} "
    for keyword, top, sub in _NORMALIZED_RULES:
        if f" {keyword} " in slug:
            return top, sub
    return OTHER_CATEGORY, OTHER_CATEGORY


class Catalog:
    """Ordered, de-duplicated list of official product names."""

    def __init__(self, names: Iterable[str]):
        seen = set()
        self._names: List[str] = []
        for name in names:
            name = (name or "").strip()
            if name and name not in seen:
                seen.add(name)
                self._names.append(name)

    @property
    def names(self) -> Sequence[str]:
        return tuple(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def as_prompt_block(self) -> str:
        """One name per line, for embedding in LLM prompts."""
        return "\n".join(self._names)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Catalog":
        """Load a catalog from a text file, one name per line.

        Blank lines and lines starting with '#' are ignored.
        """
        lines = Path(path).read_text(encoding="utf-8").splitlines()
        return cls(line for line in lines if line.strip() and not line.lstrip().startswith("#"))


_default: Optional[Catalog] = None


def default_catalog() -> Catalog:
    """The bundled catalog (built once)."""
    global _default
    if _default is None:
        _default = Catalog(OFFICIAL_NAMES)
    return _default
