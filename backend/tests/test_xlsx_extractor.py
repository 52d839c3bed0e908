"""Tests for worksheet flattening."""

import datetime as dt

import pytest
from openpyxl import Workbook

from app.core.constants import MimeType
from app.processing.extractors.xlsx_extractor import (
    XlsxExtractor,
    build_headers,
    flatten_rows,
    to_json_value,
)

pytestmark = pytest.mark.unit


class TestBuildHeaders:

    def test_plain_headers_kept(self):
        assert build_headers(["Ticker", "Qty", "Price"]) == ["Ticker", "Qty", "Price"]

    def test_blank_headers_get_placeholder_names(self):
        assert build_headers(["a", None, "", "b"]) == ["a", "__EMPTY", "__EMPTY_1", "b"]

    def test_duplicate_headers_are_suffixed(self):
        assert build_headers(["x", "x", "x"]) == ["x", "x_1", "x_2"]

    def test_non_string_headers_are_stringified(self):
        assert build_headers([2024, 2025.5]) == ["2024", "2025.5"]


class TestFlattenRows:

    def test_rows_keyed_by_header_with_nulls(self):
        rows = [
            ("ticker", "qty", "note"),
            ("AAPL", 10, None),
            ("MSFT", None, "  "),
        ]
        assert flatten_rows(rows) == [
            {"ticker": "AAPL", "qty": 10, "note": None},
            {"ticker": "MSFT", "qty": None, "note": None},
        ]

    def test_blank_rows_are_skipped(self):
        rows = [("a", "b"), (None, None), (1, 2), ("", None), (3, 4)]
        assert flatten_rows(rows) == [{"a": 1, "b": 2}, {"a": 3, "b": 4}]

    def test_short_and_long_rows_fit_headers(self):
        rows = [("a", "b"), (1,), (1, 2, 3)]
        assert flatten_rows(rows) == [{"a": 1, "b": None}, {"a": 1, "b": 2}]

    def test_header_only_and_empty_sheets(self):
        assert flatten_rows([("a", "b")]) == []
        assert flatten_rows([]) == []

    def test_table_below_title_gap_and_right_of_blank_column(self):
        rows = [
            (None, None, None),
            (None, None, None),
            (None, "ticker", "qty"),
            (None, "AAA", 1),
            (None, "BBB", 2),
        ]
        assert flatten_rows(rows) == [
            {"ticker": "AAA", "qty": 1},
            {"ticker": "BBB", "qty": 2},
        ]

    def test_leading_blank_header_kept_when_column_has_data(self):
        rows = [(None, "b"), ("x", 1)]
        assert flatten_rows(rows) == [{"__EMPTY": "x", "b": 1}]

    def test_dates_become_iso_strings(self):
        assert to_json_value(dt.datetime(2026, 1, 2, 3, 4, 5)) == "2026-01-02T03:04:05"
        assert to_json_value(dt.date(2026, 1, 2)) == "2026-01-02"
        assert to_json_value(True) is True


def test_extract_reads_every_sheet_in_order(tmp_path, make_workbook):
    data = make_workbook({
        "Positions": [["ticker", "as_of"], ["AAPL", dt.datetime(2026, 3, 31)], ["VOO", None]],
        "Empty": [],
        "Cash": [["currency", "amount"], ["USD", 1500.25]],
    })
    path = tmp_path / "book.xlsx"
    path.write_bytes(data)

    sheets = XlsxExtractor().extract(str(path))

    assert list(sheets) == ["Positions", "Empty", "Cash"]
    assert sheets["Positions"] == [
        {"ticker": "AAPL", "as_of": "2026-03-31T00:00:00"},
        {"ticker": "VOO", "as_of": None},
    ]
    assert sheets["Empty"] == []
    assert sheets["Cash"] == [{"currency": "USD", "amount": 1500.25}]


def test_supported_mime_types():
    extractor = XlsxExtractor()

    assert extractor.supports_mime(MimeType.XLSX)
    assert extractor.supports_mime("application/octet-stream")
    assert not extractor.supports_mime(MimeType.PDF)


def test_extract_keys_on_header_outside_a1(tmp_path):
    wb = Workbook()
    ws = wb.active
    ws.title = "Holdings"
    ws["B3"], ws["C3"] = "ticker", "qty"
    ws["B4"], ws["C4"] = "AAA", 1
    ws["B5"], ws["C5"] = "BBB", 2
    path = tmp_path / "offset.xlsx"
    wb.save(path)

    sheets = XlsxExtractor().extract(str(path))

    assert sheets["Holdings"] == [
        {"ticker": "AAA", "qty": 1},
        {"ticker": "BBB", "qty": 2},
    ]
