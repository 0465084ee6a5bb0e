"""
QIF (Quicken Interchange Format) parser.

Records are line-oriented: the first character is the field code and ``^``
terminates a record. Field codes read:

    D  date          T/U  amount
    P  payee         M    memo
    N  check number  L    category
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from ..schemas.documents import DocumentType, ImportResult, ParseError, ParseSuccess, QifDocument
from ..schemas.transactions import ImportedTransaction, ImportSource
from .base import BaseParser
from .dates import normalize_year
from .numbers import NumberParser

logger = logging.getLogger(__name__)

QIF_CONFIDENCE = 0.92

DATE_SPLIT_PATTERN = re.compile(r"[/\-.']")


def parse_qif_date(value: str) -> Optional[date]:
    """Parse QIF dates such as ``01/15/2024``, ``15/01/2024`` or ``1/15'24``.

    Ambiguous dates are read month-first; a first part above 12 is a day.
    """
    cleaned = value.strip()
    if not cleaned:
        return None

    parts = [part.strip() for part in DATE_SPLIT_PATTERN.split(cleaned) if part.strip()]
    if len(parts) < 3:
        return None

    try:
        first, second, year = int(parts[0]), int(parts[1]), normalize_year(int(parts[2]))
    except ValueError:
        return None

    month, day = (second, first) if first > 12 else (first, second)
    try:
        return date(year, month, day)
    except ValueError:
        return None


@dataclass
class _RecordBuilder:
    posted: Optional[date] = None
    amount: Optional[int] = None
    payee: Optional[str] = None
    memo: Optional[str] = None
    number: Optional[str] = None
    category: Optional[str] = None
    raw: dict[str, str] = field(default_factory=dict)

    def build(self) -> Optional[ImportedTransaction]:
        if self.posted is None or self.amount is None:
            return None
        return ImportedTransaction(
            date=self.posted,
            amount=self.amount,
            description=self.memo or self.payee or "",
            merchant=self.payee,
            category=self.category,
            confidence=QIF_CONFIDENCE,
            source=ImportSource.RULE_BASED,
            raw_data=dict(self.raw),
        )


class QifParser(BaseParser):
    """Parses Quicken interchange files."""

    def __init__(self, number_parser: Optional[NumberParser] = None):
        self.number_parser = number_parser or NumberParser()

    @property
    def name(self) -> str:
        return "qif"

    def can_parse(self, document_type: DocumentType) -> bool:
        return isinstance(document_type, QifDocument)

    def parse(self, content: str, document_type: DocumentType) -> ImportResult:
        if not isinstance(document_type, QifDocument):
            document_type = QifDocument()

        if not content.strip():
            return ParseError("Empty QIF content", document_type)

        lines = content.splitlines()
        if not any(line.strip().startswith("!Type:") for line in lines):
            return ParseError("Invalid QIF format - missing type header", document_type)

        transactions: list[ImportedTransaction] = []
        record = _RecordBuilder()
        for line in lines:
            stripped = line.strip()
            if not stripped or stripped.startswith("!"):
                continue
            if stripped == "^":
                built = record.build()
                if built is not None:
                    transactions.append(built)
                record = _RecordBuilder()
                continue

            code, value = stripped[0], stripped[1:].strip()
            if code == "D":
                record.posted = parse_qif_date(value)
            elif code in ("T", "U"):
                record.amount = self.number_parser.parse_or_none(value)
            elif code == "P":
                record.payee = value
                record.raw["P"] = value
            elif code == "M":
                record.memo = value
                record.raw["M"] = value
            elif code == "N":
                record.number = value
                record.raw["N"] = value
            elif code == "L":
                record.category = value
                record.raw["L"] = value

        # Last record may lack the terminator
        built = record.build()
        if built is not None:
            transactions.append(built)

        if not transactions:
            return ParseError("No valid transactions found in QIF", document_type)

        logger.debug(f"QIF: parsed {len(transactions)} transactions")
        return ParseSuccess(
            transactions=transactions,
            document_type=document_type,
            total_confidence=QIF_CONFIDENCE,
        )
