"""
Unit tests for upload parsing.
"""

import io

import pandas as pd
import pytest

from procurement_ai.logic.file_loader import (
    FileParseError,
    dataframe_to_rows,
    file_extension,
    headers_of,
    load_dataframe,
    load_rows,
)


def _workbook(**sheets):
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for name, df in sheets.items():
            df.to_excel(writer, sheet_name=name, index=False)
    return buffer.getvalue()


class TestCsv:
    """Test CSV parsing."""

    def test_rows_in_file_order(self):
        rows = load_rows("PO,Amount\nPO-1,100\nPO-2,250.5\n", "orders.csv")

        assert [r["PO"] for r in rows] == ["PO-1", "PO-2"]
        assert rows[1]["Amount"] == 250.5

    def test_bytes_with_bom(self):
        rows = load_rows("\ufeffVendor,Amount\nAgro,10\n".encode("utf-8"), "orders.csv")
        assert list(rows[0].keys()) == ["Vendor", "Amount"]

    def test_cp1252_fallback(self):
        rows = load_rows("Vendor\nCaf\xe9\n".encode("cp1252"), "vendors.csv")
        assert rows[0]["Vendor"] == "Caf\xe9"

    def test_blank_cells_become_none(self):
        rows = load_rows("Vendor,Amount\n,10\nAgro,\n", "orders.csv")

        assert rows[0]["Vendor"] is None
        assert rows[1]["Amount"] is None

    def test_blank_lines_are_dropped(self):
        rows = load_rows("Vendor,Amount\nA,1\n,\n\nB,2\n", "orders.csv")
        assert [r["Vendor"] for r in rows] == ["A", "B"]

    def test_headers_are_stripped(self):
        df = load_dataframe(" Vendor , Amount\nA,1\n", "orders.csv")
        assert list(df.columns) == ["Vendor", "Amount"]

    def test_tab_separated(self):
        rows = load_rows("Vendor\tAmount\nA\t1\n", "orders.tsv")
        assert rows == [{"Vendor": "A", "Amount": 1}]

    def test_empty_file_yields_no_rows(self):
        assert load_rows("", "empty.csv") == []
        assert load_rows(b"   \n", "empty.csv") == []

    def test_header_only(self):
        df = load_dataframe("PO,Vendor\n", "orders.csv")

        assert dataframe_to_rows(df) == []
        assert headers_of([], df) == ["PO", "Vendor"]


class TestExcel:
    """Test workbook parsing."""

    def test_single_sheet(self):
        content = _workbook(Orders=pd.DataFrame({"PO": ["PO-1", "PO-2"], "Amount": [10, 20]}))
        rows = load_rows(content, "orders.xlsx")

        assert rows == [{"PO": "PO-1", "Amount": 10}, {"PO": "PO-2", "Amount": 20}]

    def test_largest_sheet_is_used(self):
        content = _workbook(
            Summary=pd.DataFrame({"Total": [30]}),
            Lines=pd.DataFrame({"PO": ["PO-1", "PO-2", "PO-3"]}),
        )
        rows = load_rows(content, "report.xlsx")
        assert [r["PO"] for r in rows] == ["PO-1", "PO-2", "PO-3"]

    def test_corrupt_workbook(self):
        with pytest.raises(FileParseError) as exc:
            load_rows(b"definitely not a zip archive", "broken.xlsx")
        assert exc.value.filename == "broken.xlsx"

    def test_text_content_rejected(self):
        with pytest.raises(FileParseError):
            load_rows("PO,Amount", "orders.xlsx")


class TestHelpers:
    """Test small helpers."""

    def test_unsupported_extension(self):
        with pytest.raises(FileParseError) as exc:
            load_rows(b"%PDF-1.4", "invoice.pdf")
        assert "unsupported" in exc.value.reason

    def test_file_extension(self):
        assert file_extension("Report.XLSX") == "xlsx"
        assert file_extension("noext") == ""

    def test_numpy_scalars_are_unboxed(self):
        rows = dataframe_to_rows(pd.DataFrame({"Qty": [1, 2]}))
        assert type(rows[0]["Qty"]) is int

    def test_headers_from_rows(self):
        assert headers_of([{"A": 1, "B": 2}]) == ["A", "B"]
        assert headers_of([]) == []
