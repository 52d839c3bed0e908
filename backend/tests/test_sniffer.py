"""Tests for magic-byte content sniffing of uploads."""

import io
import zipfile

import pytest

from app.core.constants import MimeType
from app.ingestion.errors import MissingFileError, UnsupportedMediaTypeError
from app.ingestion.sniffer import has_xlsx_extension, sniff_mime, validate_spreadsheet

pytestmark = pytest.mark.unit


def _zip_with(names: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, body in names.items():
            archive.writestr(name, body)
    return buffer.getvalue()


class TestSniffMime:

    def test_real_workbook_sniffs_as_xlsx(self, two_sheet_workbook):
        assert sniff_mime(two_sheet_workbook) == MimeType.XLSX

    def test_content_types_declaring_spreadsheetml_is_xlsx(self):
        data = _zip_with({
            "[Content_Types].xml": (
                '<Types><Override PartName="/book.xml" ContentType='
                '"application/vnd.openxmlformats-officedocument.spreadsheetml.sheet.main+xml"/></Types>'
            ),
        })
        assert sniff_mime(data) == MimeType.XLSX

    def test_plain_zip_is_zip(self):
        assert sniff_mime(_zip_with({"notes.txt": "hello"})) == MimeType.ZIP

    @pytest.mark.parametrize(
        "data, expected",
        [
            (b"%PDF-1.7\n...", MimeType.PDF),
            (b"\x89PNG\r\n\x1a\n\x00\x00", MimeType.PNG),
            (b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1\x00", MimeType.CFB),
            (b"ticker,quantity\nAAPL,10\n", MimeType.OCTET_STREAM),
        ],
    )
    def test_other_signatures(self, data, expected):
        assert sniff_mime(data) == expected


class TestValidateSpreadsheet:

    def test_accepts_xlsx_regardless_of_name(self, two_sheet_workbook):
        assert validate_spreadsheet(two_sheet_workbook, "export.bin") == MimeType.XLSX

    def test_inconclusive_bytes_accepted_with_xlsx_extension(self):
        assert validate_spreadsheet(b"\x00\x01\x02garbage", "Holdings.XLSX") == MimeType.OCTET_STREAM

    def test_bare_zip_accepted_with_xlsx_extension(self):
        data = _zip_with({"notes.txt": "hello"})
        assert validate_spreadsheet(data, "book.xlsx") == MimeType.ZIP

    def test_unknown_bytes_without_extension_rejected(self):
        with pytest.raises(UnsupportedMediaTypeError) as exc_info:
            validate_spreadsheet(b"ticker,quantity\nAAPL,10\n", "holdings.csv")
        assert exc_info.value.sniffed_mime == MimeType.OCTET_STREAM
        assert "Unsupported file type" in str(exc_info.value)

    def test_pdf_named_xlsx_rejected(self):
        with pytest.raises(UnsupportedMediaTypeError):
            validate_spreadsheet(b"%PDF-1.4 fake", "statement.xlsx")

    def test_empty_payload_is_missing_file(self):
        with pytest.raises(MissingFileError):
            validate_spreadsheet(b"", "empty.xlsx")


@pytest.mark.parametrize(
    "filename, expected",
    [("a.xlsx", True), ("A.XLSX", True), ("a.xls", False), ("xlsx", False), (None, False), ("", False)],
)
def test_has_xlsx_extension(filename, expected):
    assert has_xlsx_extension(filename) is expected
