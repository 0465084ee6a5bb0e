"""
OCR text heuristics extractor.

Recovers transactions from text already extracted from scanned statements
and receipts. No cloud calls: dates, amounts and currencies come from pattern
matching alone; merchants are left for later enhancement.

Supported formats:
- Dates: Y-m-d, d.m.Y, d/m/Y, d.m.y, "15 Jan 2024", "January 15, 2024", "15 января 2024"
- Amounts: - 3 700,00 ₸ (Kaspi), -$1,234.56, £12.00, 1.234,56 €, 1 234,56 ₽, +5000, 9.99
- Currency: symbols and ISO codes
"""

import logging
import re
from datetime import date
from typing import Optional

from ..schemas.documents import (
    DocumentType,
    ImageDocument,
    ImportResult,
    ParseError,
    ParseSuccess,
    PdfDocument,
)
from ..schemas.transactions import ImportedTransaction, ImportSource, PartialTransaction
from .base import BaseParser
from .dates import RUSSIAN_MONTHS, DateFormat, DateParser

logger = logging.getLogger(__name__)

OCR_CONFIDENCE = 0.70

_EN_MONTH_ABBR = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*"
_EN_MONTH_FULL = (
    r"(?:January|February|March|April|May|June|July|August|September|October|November|December)"
)
_RU_MONTH = "(?:" + "|".join(sorted(RUSSIAN_MONTHS, key=len, reverse=True)) + ")"

# Date patterns (ordered by specificity)
DATE_PATTERNS = [
    # ISO format: 2024-01-15
    re.compile(r"(?<!\d)\d{4}-\d{1,2}-\d{1,2}(?!\d)"),
    # Full year: 15.01.2024, 01/15/2024
    re.compile(r"(?<!\d)\d{1,2}[./]\d{1,2}[./]\d{4}(?!\d)"),
    # Short year: 15.01.24
    re.compile(r"(?<!\d)\d{1,2}[./]\d{1,2}[./]\d{2}(?![\d.,])"),
    # Day month-name year: 15 Jan 2024
    re.compile(r"(?<!\d)\d{1,2}\s+" + _EN_MONTH_ABBR + r"\s+\d{4}", re.IGNORECASE),
    # Month-name day, year: January 15, 2024
    re.compile(_EN_MONTH_FULL + r"\s+\d{1,2},?\s+\d{4}", re.IGNORECASE),
    # Russian month names: 15 января 2024
    re.compile(r"(?<!\d)\d{1,2}\s+" + _RU_MONTH + r"\s+\d{4}", re.IGNORECASE),
    # US short: 01/15 followed by whitespace
    re.compile(r"(?<![\d/])\d{1,2}/\d{1,2}(?=\s)"),
]

CURRENCY_SYMBOL_PATTERN = re.compile(r"[₸€₽£¥$]")
CURRENCY_CODE_PATTERN = re.compile(r"\b(KZT|USD|EUR|RUB|GBP|JPY|CNY|CHF)\b", re.IGNORECASE)

CURRENCY_SYMBOLS = {"₸": "KZT", "$": "USD", "€": "EUR", "₽": "RUB", "£": "GBP", "¥": "JPY"}

# Amount patterns, most specific first: (pattern, style)
AMOUNT_PATTERNS = [
    # Kaspi: "- 3 700,00 ₸" / "+ 50 000 ₸"
    (re.compile(r"[+\-]\s*\d{1,3}(?:\s\d{3})+(?:,\d{2})?\s*[₸€₽£¥$]?"), "space_comma"),
    # US dollar: -$1,234.56
    (re.compile(r"-?\$[\d,]+(?:\.\d{1,2})?"), "dot_decimal"),
    # Pound sterling: -£1,234.56
    (re.compile(r"-?£[\d,]+(?:\.\d{1,2})?"), "dot_decimal"),
    # EU: -1.234,56 €
    (re.compile(r"-?\d{1,3}(?:\.\d{3})+,\d{2}\s*€?"), "eu"),
    # RU/CIS: 1 234,56 ₽
    (re.compile(r"-?\d{1,3}(?:\s\d{3})+(?:,\d{2})?\s*[₽₸]"), "space_comma"),
    # Signed plain: +5000, -1234.56, -100,00
    (re.compile(r"(?<![\w.,])[+\-]\d+(?:[.,]\d{1,2})?(?![\d])"), "plain"),
    # Currency-adjacent: $100, 5000₸
    (re.compile(r"[₸€₽£¥$]\s*[\d,]+(?:\.\d{1,2})?|[\d,.]+\s*[₸€₽£¥$]"), "currency"),
    # Unsigned decimal at line end: 9.99
    (re.compile(r"\d+\.\d{2}$"), "plain"),
]

CREDIT_KEYWORDS = re.compile(
    r"\b(credit|cr|deposit|refund|incoming|зачисление|пополнение|поступление|возврат)\b",
    re.IGNORECASE,
)
DEBIT_KEYWORDS = re.compile(
    r"\b(debit|dr|purchase|payment|withdrawal|списание|покупка|оплата|снятие)\b",
    re.IGNORECASE,
)


def find_date(line: str) -> Optional[re.Match]:
    """Return the first date token in a line."""
    for pattern in DATE_PATTERNS:
        match = pattern.search(line)
        if match:
            return match
    return None


def parse_amount_token(token: str, style: str, preceding: str = "") -> int:
    """Convert a matched amount token into signed minor units."""
    negative = "-" in token or (style in ("eu", "currency") and preceding.rstrip().endswith("-"))
    digits = CURRENCY_SYMBOL_PATTERN.sub("", token)
    digits = re.sub(r"[+\-\s]", "", digits)

    if style == "space_comma":
        digits = digits.replace(",", ".")
    elif style == "eu":
        digits = digits.replace(".", "").replace(",", ".")
    elif style == "dot_decimal":
        digits = digits.replace(",", "")
    else:
        digits = digits.replace(",", ".")
        # "1.234.56" style leftovers keep only the last separator
        if digits.count(".") > 1:
            head, _, tail = digits.rpartition(".")
            digits = head.replace(".", "") + "." + tail

    if not digits or digits == ".":
        return 0
    major, _, minor = digits.partition(".")
    value = int(major or "0") * 100 + int((minor + "00")[:2] or "0")
    if len(minor) > 2 and minor[2] >= "5":
        value += 1
    return -value if negative else value


def find_amount(line: str) -> Optional[tuple[int, str, bool]]:
    """Return (minor units, raw token, explicitly signed) for the first amount."""
    for pattern, style in AMOUNT_PATTERNS:
        match = pattern.search(line)
        if match:
            token = match.group(0)
            preceding = line[: match.start()]
            value = parse_amount_token(token, style, preceding)
            signed = "-" in token or "+" in token or preceding.rstrip().endswith("-")
            return value, token, signed
    return None


def detect_currency(line: str) -> Optional[str]:
    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in line:
            return code
    match = CURRENCY_CODE_PATTERN.search(line)
    return match.group(1).upper() if match else None


def clean_description(line: str, *tokens: str) -> str:
    description = line
    for token in tokens:
        if token:
            description = description.replace(token, " ", 1)
    description = CURRENCY_SYMBOL_PATTERN.sub("", description)
    description = CURRENCY_CODE_PATTERN.sub("", description)
    description = re.sub(r"^[\-+\s]+", "", description)
    return re.sub(r"\s+", " ", description).strip()


class OCRTextExtractor(BaseParser):
    """
    Extracts transactions from OCR text using pattern matching.

    Statement mode (default): a line is emitted only when it holds both a
    date and an amount; everything else is skipped silently.

    Receipt mode: a short header line with only a date sets a context date
    that later amount-only lines inherit; unsigned receipt amounts are
    expenses.
    """

    def __init__(self, date_parser: Optional[DateParser] = None):
        self.date_parser = date_parser or DateParser()

    @property
    def name(self) -> str:
        return "ocr_text"

    def can_parse(self, document_type: DocumentType) -> bool:
        return isinstance(document_type, (PdfDocument, ImageDocument))

    def extract(self, text: str, receipt: bool = False) -> list[PartialTransaction]:
        """Extract partial transactions from OCR text.

        Args:
            text: Text produced by an OCR engine or a PDF text layer
            receipt: Enable receipt mode (header date carried to item lines)

        Returns:
            Extracted transactions in document order
        """
        if not text or not text.strip():
            return []

        results: list[PartialTransaction] = []
        context_date: Optional[str] = None

        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line:
                continue

            date_match = find_date(line)
            # Blank the date span so its digits are not read as an amount
            if date_match:
                masked = line[: date_match.start()] + " " * len(date_match.group(0)) + line[date_match.end():]
            else:
                masked = line
            amount = find_amount(masked)

            if date_match and amount:
                context_date = date_match.group(0)
                results.append(self._build(line, date_match.group(0), amount, receipt))
            elif date_match and receipt:
                label = line[: date_match.start()]
                if len(line) < 40 and ":" not in label:
                    context_date = date_match.group(0)
            elif amount and receipt and context_date:
                results.append(self._build(line, context_date, amount, receipt, inherit=True))

        logger.debug(f"OCR: extracted {len(results)} transactions")
        return results

    def _build(
        self,
        line: str,
        raw_date: str,
        amount: tuple[int, str, bool],
        receipt: bool,
        inherit: bool = False,
    ) -> PartialTransaction:
        value, token, signed = amount
        if not signed:
            if receipt or DEBIT_KEYWORDS.search(line):
                value = -abs(value)
            elif CREDIT_KEYWORDS.search(line):
                value = abs(value)

        description = clean_description(line, token) if inherit else clean_description(line, raw_date, token)
        return PartialTransaction(
            raw_date=raw_date,
            amount=value,
            currency=detect_currency(line),
            raw_description=description,
            is_credit=value > 0,
            is_debit=value < 0,
        )

    def to_imported(
        self, partial: PartialTransaction, reference_year: Optional[int] = None
    ) -> Optional[ImportedTransaction]:
        """Convert a partial transaction once its raw date can be resolved."""
        resolved = self.resolve_date(partial.raw_date, reference_year)
        if resolved is None:
            return None
        raw_data = {"raw_date": partial.raw_date, "raw_description": partial.raw_description}
        if partial.currency:
            raw_data["currency"] = partial.currency
        return ImportedTransaction(
            date=resolved,
            amount=partial.amount,
            description=partial.raw_description,
            merchant=partial.merchant,
            category=partial.category_hint,
            confidence=OCR_CONFIDENCE,
            source=ImportSource.DOCUMENT_AI,
            raw_data=raw_data,
        )

    def resolve_date(self, raw_date: str, reference_year: Optional[int] = None) -> Optional[date]:
        parsed = self.date_parser.parse_or_none(raw_date)
        if parsed is None:
            parsed = self.date_parser.parse_or_none(raw_date, DateFormat.US)
        if parsed is None and reference_year and re.fullmatch(r"\d{1,2}/\d{1,2}", raw_date):
            parsed = self.date_parser.parse_or_none(f"{raw_date}/{reference_year}", DateFormat.US)
        return parsed

    def parse(self, content: str, document_type: DocumentType) -> ImportResult:
        partials = self.extract(content)
        transactions = [t for t in (self.to_imported(p) for p in partials) if t is not None]
        if not transactions:
            return ParseError("No transactions found in document text", document_type)
        return ParseSuccess(
            transactions=transactions,
            document_type=document_type,
            total_confidence=OCR_CONFIDENCE,
        )
