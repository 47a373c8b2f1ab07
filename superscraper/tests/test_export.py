"""Tests for spreadsheet export."""

import pandas as pd
import pytest

from superscraper.classifier import classify_records_algorithmically
from superscraper.export import (
    MATRIX_SHEET,
    MISSING_PRICE,
    RECORDS_SHEET,
    export_report,
    matrix_frame,
    records_frame,
)
from superscraper.reconcile import reconcile


@pytest.fixture
def classified(sample_records):
    return classify_records_algorithmically(sample_records)


class TestFrames:
    """Test the frame layouts."""

    def test_matrix_columns_and_values(self, classified, sources):
        frame = matrix_frame(reconcile(classified, sources), sources)

        assert list(frame.columns[:4]) == ["Phân loại tổng", "Phân loại chi tiết", "PL COMBO", "Sản phẩm"]
        assert "Giá [SHOPEE]" in frame.columns
        assert "Link [HASAKI]" in frame.columns
        assert frame.columns[-1] == "Chênh lệch (%)"
        # sorted by product name
        assert list(frame["Sản phẩm"]) == sorted(frame["Sản phẩm"], key=str.lower)

        single = frame[frame["Sản phẩm"] == "Nước tẩy trang sen Hậu Giang 140ml"].iloc[0]
        assert single["Giá [SHOPEE]"] == 45000
        assert single["Link [SHOPEE]"] == "https://shopee.vn/p/1"
        assert single["Giá [LAZADA]"] == MISSING_PRICE

    def test_records_frame(self, classified, sources):
        frame = records_frame(classified, sources)
        assert len(frame) == 3
        first = frame.iloc[0]
        assert first["Giá gốc"] == 50000
        assert first["Giá sau voucher"] == 45000
        assert first["Nguồn"] == "SHOPEE"
        assert first["Trạng thái"] == "success"


class TestExportReport:
    def test_csv(self, tmp_path, classified, sources):
        path = export_report(tmp_path / "out" / "matrix.csv", classified, sources)
        assert path.exists()
        assert path.read_bytes().startswith(b"\xef\xbb\xbf")
        frame = pd.read_csv(path, encoding="utf-8-sig")
        assert "Sản phẩm" in frame.columns
        assert len(frame) == 3

    def test_xlsx_has_both_sheets(self, tmp_path, classified, sources):
        path = export_report(tmp_path / "matrix.xlsx", classified, sources)
        sheets = pd.read_excel(path, sheet_name=None)
        assert set(sheets) == {MATRIX_SHEET, RECORDS_SHEET}
        assert len(sheets[RECORDS_SHEET]) == 3

    def test_unknown_format(self, tmp_path, classified, sources):
        with pytest.raises(ValueError):
            export_report(tmp_path / "matrix.pdf", classified, sources)
