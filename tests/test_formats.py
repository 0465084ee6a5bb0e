"""Tests for statement format detection."""

import pytest

from statement_import.formats import FormatDetector
from statement_import.schemas import (
    CsvDocument,
    ImageDocument,
    OfxDocument,
    PdfDocument,
    QifDocument,
    UnknownDocument,
)


class TestContentDetection:
    """Content signatures win over the filename."""

    @pytest.fixture
    def detector(self):
        return FormatDetector()

    def test_pdf_magic(self, detector):
        """PDF magic bytes are detected regardless of extension."""
        assert detector.detect("statement.csv", b"%PDF-1.7\n...") == PdfDocument(None)

    def test_png_and_jpeg_magic(self, detector):
        """Image formats are detected from their headers."""
        assert detector.detect("scan", b"\x89PNG\r\n\x1a\nrest") == ImageDocument("PNG")
        assert detector.detect("scan", b"\xff\xd8\xff\xe0rest") == ImageDocument("JPEG")

    def test_ofx_with_version(self, detector, sample_ofx):
        """OFX header and version are read from the text."""
        assert detector.detect("export.txt", sample_ofx) == OfxDocument("102")

    def test_ofx_xml_without_version(self, detector):
        """An <OFX> element pair without a version defaults to 2.2."""
        content = b"<OFX><BANKMSGSRSV1></BANKMSGSRSV1></OFX>"
        assert detector.detect("x.dat", content) == OfxDocument("2.2")

    def test_qif_type(self, detector, sample_qif):
        """The QIF account type comes from the !Type header."""
        assert detector.detect("export.txt", sample_qif) == QifDocument("Bank")

    def test_qif_credit_card_type(self, detector):
        """Non-bank QIF types are preserved."""
        content = b"!Type:CCard\nD01/02/2024\nT-5.00\n^\n"
        assert detector.detect("cards.qif", content) == QifDocument("CCard")

    def test_csv_comma(self, detector, sample_csv):
        """Comma CSV is detected from consistent delimiter counts."""
        assert detector.detect("export.bin", sample_csv) == CsvDocument(",", "UTF-8")

    def test_csv_semicolon(self, detector, sample_csv_ru):
        """Semicolon CSV reports the semicolon delimiter."""
        assert detector.detect("export", sample_csv_ru) == CsvDocument(";", "UTF-8")

    def test_csv_with_utf8_bom(self, detector, sample_csv):
        """A UTF-8 BOM does not prevent detection."""
        assert detector.detect("a.csv", b"\xef\xbb\xbf" + sample_csv) == CsvDocument(",", "UTF-8")

    def test_content_beats_extension(self, detector, sample_ofx):
        """OFX content in a .csv file is still OFX."""
        assert isinstance(detector.detect("statement.csv", sample_ofx), OfxDocument)


class TestExtensionFallback:
    """Extension is consulted only when content is unrecognised."""

    @pytest.fixture
    def detector(self):
        return FormatDetector()

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("a.csv", CsvDocument(",", "UTF-8")),
            ("a.TSV", CsvDocument("\t", "UTF-8")),
            ("a.pdf", PdfDocument(None)),
            ("a.qfx", OfxDocument("2.2")),
            ("a.qif", QifDocument("Bank")),
            ("a.heic", ImageDocument("HEIC")),
            ("a.webp", ImageDocument("WEBP")),
        ],
    )
    def test_extension_map(self, detector, filename, expected):
        """Known extensions map to their document types."""
        assert detector.detect(filename, None) == expected

    def test_unknown_extension(self, detector):
        """Unknown extension and no content is Unknown."""
        assert detector.detect("notes.docx", b"") == UnknownDocument()

    def test_no_extension(self, detector):
        """A filename without a dot is Unknown."""
        assert detector.detect("README") == UnknownDocument()

    def test_garbage_content_never_raises(self, detector):
        """Undecodable bytes fall back to the extension."""
        assert detector.detect("a.csv", b"\x80\x81\xfe\x00garbage") == CsvDocument(",", "UTF-8")


class TestDelimiterAndEncoding:
    """Delimiter scoring, BOM handling and bank signatures."""

    @pytest.fixture
    def detector(self):
        return FormatDetector()

    def test_delimiter_prefers_consistent(self, detector):
        """The delimiter present on every line wins."""
        content = "a;b;c\n1;2,5;3\n4;5;6"
        assert detector.detect_delimiter(content) == ";"

    def test_delimiter_ignores_quoted(self, detector):
        """Delimiters inside quotes are not counted."""
        content = 'a;b\n"x, y, z";1\n"p, q";2'
        assert detector.detect_delimiter(content) == ";"

    def test_delimiter_tab(self, detector):
        """Tab-separated content is recognised."""
        assert detector.detect_delimiter("a\tb\n1\t2") == "\t"

    def test_delimiter_default(self, detector):
        """Empty content defaults to comma."""
        assert detector.detect_delimiter("") == ","

    def test_encoding_boms(self, detector):
        """BOMs map to encoding names, UTF-8 when absent."""
        assert detector.detect_encoding(b"\xef\xbb\xbfabc") == "UTF-8"
        assert detector.detect_encoding(b"\xff\xfea\x00") == "UTF-16LE"
        assert detector.detect_encoding(b"\xfe\xff\x00a") == "UTF-16BE"
        assert detector.detect_encoding(b"abc") == "UTF-8"

    def test_utf16_csv(self, detector):
        """UTF-16 content is decoded before analysis."""
        content = "Date,Amount\n2024-01-01,5.00\n".encode("utf-16")
        detected = detector.detect("x", content)
        assert isinstance(detected, CsvDocument)
        assert detected.delimiter == ","

    def test_bank_signature(self, detector):
        """Bank keywords are matched case-insensitively."""
        assert detector.detect_bank_signature("Выписка KASPI GOLD").id == "kaspi"
        assert detector.detect_bank_signature("Народный Банк Казахстана").id == "halyk"
        assert detector.detect_bank_signature("Some other bank") is None
        assert detector.detect_bank_signature("") is None
