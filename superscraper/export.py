"""Spreadsheet export of the price matrix and the raw records."""

from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd

from superscraper.logging_config import get_logger
from superscraper.models import CanonicalGroup, RawProductRecord, SourceConfig
from superscraper.reconcile import effective_price, reconcile

__all__ = [
    "MISSING_PRICE",
    "MATRIX_SHEET",
    "RECORDS_SHEET",
    "matrix_frame",
    "records_frame",
    "export_report",
]

logger = get_logger("export")

MISSING_PRICE = "N/A"
MATRIX_SHEET = "Ma trận giá"
RECORDS_SHEET = "Dữ liệu thô"


def _source_name(sources: Sequence[SourceConfig], index: int) -> str:
    if 1 <= index <= len(sources):
        return sources[index - 1].name
    return f"Source {index}"


def matrix_frame(groups: Sequence[CanonicalGroup], sources: Sequence[SourceConfig]) -> pd.DataFrame:
    """One row per canonical product, a price and link column per source.

    Groups are sorted by display name; sources without a price show "N/A".
    """
    columns = ["Phân loại tổng", "Phân loại chi tiết", "PL COMBO", "Sản phẩm"]
    for src in sources:
        columns += [f"Giá [{src.name}]", f"Link [{src.name}]"]
    columns.append("Chênh lệch (%)")

    rows = []
    for group in sorted(groups, key=lambda g: g.display_name.lower()):
        row = {
            "Phân loại tổng": group.category,
            "Phân loại chi tiết": group.sub_category,
            "PL COMBO": group.bundle_label,
            "Sản phẩm": group.display_name,
        }
        for idx, src in enumerate(sources, start=1):
            price = group.prices.get(idx)
            row[f"Giá [{src.name}]"] = price if price and price > 0 else MISSING_PRICE
            row[f"Link [{src.name}]"] = group.urls.get(idx, "")
        row["Chênh lệch (%)"] = group.gap_percent
        rows.append(row)

    return pd.DataFrame(rows, columns=columns)


def records_frame(records: Sequence[RawProductRecord], sources: Sequence[SourceConfig]) -> pd.DataFrame:
    """Raw rows with original and after-voucher price."""
    rows = [
        {
            "ID": r.id,
            "Tên chuẩn hóa": r.canonical_name or r.raw_name,
            "Tên gốc (Raw)": r.raw_name,
            "Giá gốc": r.price,
            "Giá sau voucher": effective_price(r, sources),
            "Nguồn": _source_name(sources, r.source_index),
            "Phân loại (Tổng)": r.category_top,
            "Phân loại (Chi tiết)": r.category_sub,
            "Loại Combo": r.bundle_label,
            "Link gốc": r.product_url or r.page_url,
            "Trạng thái": r.status.value,
        }
        for r in records
    ]
    return pd.DataFrame(
        rows,
        columns=[
            "ID", "Tên chuẩn hóa", "Tên gốc (Raw)", "Giá gốc", "Giá sau voucher", "Nguồn",
            "Phân loại (Tổng)", "Phân loại (Chi tiết)", "Loại Combo", "Link gốc", "Trạng thái",
        ],
    )


def export_report(
    path: Union[str, Path],
    records: Sequence[RawProductRecord],
    sources: Sequence[SourceConfig],
    groups: Optional[Sequence[CanonicalGroup]] = None,
) -> Path:
    """Write the report. ``.xlsx`` gets both sheets, ``.csv`` the matrix only.

    Raises:
        ValueError: For any other file extension.
    """
    path = Path(path)
    if groups is None:
        groups = reconcile(records, sources)
    matrix = matrix_frame(groups, sources)

    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()
    if suffix == ".xlsx":
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            matrix.to_excel(writer, sheet_name=MATRIX_SHEET, index=False)
            records_frame(records, sources).to_excel(writer, sheet_name=RECORDS_SHEET, index=False)
    elif suffix == ".csv":
        # BOM so spreadsheet apps read the Vietnamese headers correctly
        matrix.to_csv(path, index=False, encoding="utf-8-sig")
    else:
        raise ValueError(f"Unsupported export format: {path.suffix!r} (use .xlsx or .csv)")

    logger.info(f"Exported {len(matrix)} products to {path}")
    return path
