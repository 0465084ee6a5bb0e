"""
Document format detection.

Classifies raw bytes and a filename into a DocumentType:
1. Binary magic bytes (PDF, PNG, JPEG)
2. Text signatures (OFX headers, QIF ``!Type:`` lines)
3. Delimiter-frequency analysis for CSV
4. Filename extension as the fallback
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from ..schemas.documents import (
    CsvDocument,
    DocumentType,
    ImageDocument,
    OfxDocument,
    PdfDocument,
    QifDocument,
    UnknownDocument,
)

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPEG_MAGIC = b"\xff\xd8\xff"

UTF8_BOM = b"\xef\xbb\xbf"
UTF16_LE_BOM = b"\xff\xfe"
UTF16_BE_BOM = b"\xfe\xff"

# Python codec for each reported encoding name
CODECS = {
    "UTF-8": "utf-8-sig",
    "UTF-16LE": "utf-16",
    "UTF-16BE": "utf-16",
}

CSV_DELIMITERS = [",", ";", "\t", "|"]

EXTENSION_MAP: dict[str, Callable[[], DocumentType]] = {
    "csv": lambda: CsvDocument(",", "UTF-8"),
    "tsv": lambda: CsvDocument("\t", "UTF-8"),
    "txt": lambda: CsvDocument(",", "UTF-8"),
    "pdf": lambda: PdfDocument(None),
    "ofx": lambda: OfxDocument("2.2"),
    "qfx": lambda: OfxDocument("2.2"),
    "qif": lambda: QifDocument("Bank"),
    "jpg": lambda: ImageDocument("JPEG"),
    "jpeg": lambda: ImageDocument("JPEG"),
    "png": lambda: ImageDocument("PNG"),
    "heic": lambda: ImageDocument("HEIC"),
    "heif": lambda: ImageDocument("HEIF"),
    "webp": lambda: ImageDocument("WEBP"),
}

OFX_VERSION_PATTERN = re.compile(r"VERSION[:\s=]+(\d+(?:\.\d+)?)", re.IGNORECASE)
QIF_TYPE_PATTERN = re.compile(r"!Type:(\w+)", re.IGNORECASE)


@dataclass(frozen=True)
class BankSignature:
    """Known institution with the parsing hints its statements need."""

    id: str
    keywords: tuple[str, ...]
    date_format: str = "DD.MM.YYYY"
    decimal_separator: str = ","


BANK_SIGNATURES = [
    BankSignature("kaspi", ("kaspi", "каспи")),
    BankSignature("halyk", ("halyk", "народный банк", "халык")),
    BankSignature("jusan", ("jusan", "жусан")),
    BankSignature("forte", ("forte", "fortebank", "форте")),
    BankSignature("sberbank", ("сбербанк", "sberbank")),
    BankSignature("tinkoff", ("тинькофф", "tinkoff", "тинькоф")),
    BankSignature("alfa", ("альфа-банк", "alfa-bank", "альфабанк")),
    BankSignature("vtb", ("втб", "vtb")),
    BankSignature("raiffeisen", ("райффайзен", "raiffeisen")),
    BankSignature("centerkredit", ("центркредит", "centerkredit", "bcc")),
]


def count_delimiter(line: str, delimiter: str) -> int:
    """Count delimiter occurrences outside double-quoted spans."""
    count = 0
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            count += 1
    return count


class FormatDetector:
    """
    Detects statement formats from content and filename.

    Content wins over the extension; the extension is only consulted when
    content is missing or unrecognised. Never raises on garbage input.
    """

    def detect(self, filename: str, content: Optional[bytes] = None) -> DocumentType:
        """Classify a file.

        Args:
            filename: Original filename (used for the extension fallback)
            content: Raw file bytes, if available

        Returns:
            Detected DocumentType (UnknownDocument when nothing matches)
        """
        if content:
            detected = self.detect_from_content(content)
            if not isinstance(detected, UnknownDocument):
                logger.debug(f"Detected {detected.kind} from content of {filename}")
                return detected

        detected = self.detect_from_extension(filename)
        logger.debug(f"Detected {detected.kind} from extension of {filename}")
        return detected

    def detect_from_extension(self, filename: str) -> DocumentType:
        if "." not in filename:
            return UnknownDocument()
        extension = filename.rsplit(".", 1)[-1].lower()
        factory = EXTENSION_MAP.get(extension)
        return factory() if factory else UnknownDocument()

    def detect_from_content(self, content: bytes) -> DocumentType:
        if not content:
            return UnknownDocument()

        if content.startswith(PDF_MAGIC):
            return PdfDocument(None)
        if content.startswith(PNG_MAGIC):
            return ImageDocument("PNG")
        if content.startswith(JPEG_MAGIC):
            return ImageDocument("JPEG")

        text = self.decode(content)
        if text is None:
            return UnknownDocument()
        return self._detect_from_text(text, self.detect_encoding(content))

    def decode(self, content: bytes) -> Optional[str]:
        """Decode bytes using the BOM-detected encoding, None if undecodable."""
        encoding = self.detect_encoding(content)
        try:
            return content.decode(CODECS[encoding])
        except UnicodeDecodeError:
            return None

    def _detect_from_text(self, text: str, encoding: str) -> DocumentType:
        trimmed = text.strip()

        if self._is_ofx(trimmed):
            match = OFX_VERSION_PATTERN.search(trimmed)
            return OfxDocument(match.group(1) if match else "2.2")

        if self._is_qif(trimmed):
            match = QIF_TYPE_PATTERN.search(trimmed)
            return QifDocument(match.group(1) if match else "Bank")

        if self._is_csv(trimmed):
            return CsvDocument(self.detect_delimiter(trimmed), encoding)

        return UnknownDocument()

    @staticmethod
    def _is_ofx(text: str) -> bool:
        upper = text.upper()
        return (
            "OFXHEADER" in upper
            or "<?OFX" in upper
            or ("<OFX>" in upper and "</OFX>" in upper)
        )

    @staticmethod
    def _is_qif(text: str) -> bool:
        lines = text.splitlines()[:5]
        return any(
            line.strip().startswith("!Type:") or line.strip().startswith("!Account")
            for line in lines
        )

    @staticmethod
    def _is_csv(text: str) -> bool:
        lines = [line for line in text.splitlines() if line.strip()]
        if len(lines) < 2:
            return False

        sample = lines[:5]
        for delimiter in CSV_DELIMITERS:
            counts = [count_delimiter(line, delimiter) for line in sample]
            if counts[0] > 0 and all(count == counts[0] for count in counts):
                return True
        return False

    def detect_delimiter(self, content: str) -> str:
        """Pick the CSV delimiter with the most consistent non-zero frequency.

        Score is total occurrences weighted against variation across the first
        10 lines; a delimiter missing from any line scores zero. Defaults to comma.
        """
        lines = [line for line in content.splitlines() if line.strip()][:10]
        if not lines:
            return ","

        best_delimiter = ","
        best_score = 0
        for delimiter in CSV_DELIMITERS:
            counts = [count_delimiter(line, delimiter) for line in lines]
            if all(count > 0 for count in counts):
                score = sum(counts) * 100 - len(set(counts))
            else:
                score = 0
            if score > best_score:
                best_score = score
                best_delimiter = delimiter
        return best_delimiter

    def detect_encoding(self, content: bytes) -> str:
        """Inspect the byte-order mark; UTF-8 when none is present."""
        if content.startswith(UTF8_BOM):
            return "UTF-8"
        if content.startswith(UTF16_LE_BOM):
            return "UTF-16LE"
        if content.startswith(UTF16_BE_BOM):
            return "UTF-16BE"
        return "UTF-8"

    def detect_bank_signature(self, content: str) -> Optional[BankSignature]:
        """Match known institution keywords, None when no bank is recognised."""
        if not content:
            return None
        lower = content.lower()
        for bank in BANK_SIGNATURES:
            if any(keyword in lower for keyword in bank.keywords):
                return bank
        return None
