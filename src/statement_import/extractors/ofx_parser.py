"""
OFX / QFX statement parser.

Handles both the XML (OFX 2.x) and the SGML (OFX 1.x, unclosed tags) dialects.
Only ``<STMTTRN>`` blocks are read; account and balance aggregates are ignored.
"""

import logging
import re
from datetime import date
from typing import Optional

from ..schemas.documents import DocumentType, ImportResult, OfxDocument, ParseError, ParseSuccess
from ..schemas.transactions import ImportedTransaction, ImportSource
from .base import BaseParser
from .numbers import NumberLocale, NumberParser

logger = logging.getLogger(__name__)

OFX_CONFIDENCE = 0.95

TRANSACTION_PATTERN = re.compile(r"<STMTTRN>([\s\S]*?)</STMTTRN>", re.IGNORECASE)
XML_TAG_PATTERN = re.compile(r"<(\w+)>([^<]*)</\1>", re.IGNORECASE)
SGML_TAG_PATTERN = re.compile(r"<(\w+)>([^<\n]+)")


def parse_ofx_date(value: str) -> Optional[date]:
    """Parse ``YYYYMMDD[HHMMSS[.XXX][TZ]]`` using the first eight digits."""
    cleaned = value.strip()
    if len(cleaned) < 8 or not cleaned[:8].isdigit():
        return None
    try:
        return date(int(cleaned[:4]), int(cleaned[4:6]), int(cleaned[6:8]))
    except ValueError:
        return None


def extract_fields(block: str) -> dict[str, str]:
    """Read tag/value pairs, XML first and SGML as the fallback."""
    fields = {match.group(1).upper(): match.group(2) for match in XML_TAG_PATTERN.finditer(block)}
    if not fields:
        fields = {
            match.group(1).upper(): match.group(2).strip()
            for match in SGML_TAG_PATTERN.finditer(block)
        }
    return fields


class OfxParser(BaseParser):
    """Parses Open Financial Exchange statements."""

    def __init__(self, number_parser: Optional[NumberParser] = None):
        self.number_parser = number_parser or NumberParser()

    @property
    def name(self) -> str:
        return "ofx"

    def can_parse(self, document_type: DocumentType) -> bool:
        return isinstance(document_type, OfxDocument)

    def parse(self, content: str, document_type: DocumentType) -> ImportResult:
        if not isinstance(document_type, OfxDocument):
            document_type = OfxDocument()

        if not content.strip():
            return ParseError("Empty OFX content", document_type)

        upper = content.upper()
        if "<OFX>" not in upper and "OFXHEADER" not in upper:
            return ParseError("Invalid OFX format", document_type)

        transactions = []
        for match in TRANSACTION_PATTERN.finditer(content):
            transaction = self._parse_transaction(match.group(1))
            if transaction is not None:
                transactions.append(transaction)

        if not transactions:
            return ParseError("No valid transactions found in OFX", document_type)

        logger.debug(f"OFX: parsed {len(transactions)} transactions")
        return ParseSuccess(
            transactions=transactions,
            document_type=document_type,
            total_confidence=OFX_CONFIDENCE,
        )

    def _parse_transaction(self, block: str) -> Optional[ImportedTransaction]:
        fields = extract_fields(block)

        posted = fields.get("DTPOSTED")
        amount_text = fields.get("TRNAMT")
        if not posted or not amount_text:
            return None

        posted_date = parse_ofx_date(posted)
        amount = self.number_parser.parse_or_none(amount_text.strip(), NumberLocale.US)
        if posted_date is None or amount is None:
            return None

        merchant = fields["NAME"].strip() if fields.get("NAME") else None
        memo = fields["MEMO"].strip() if fields.get("MEMO") else None

        return ImportedTransaction(
            date=posted_date,
            amount=amount,
            description=memo or merchant or "",
            merchant=merchant,
            confidence=OFX_CONFIDENCE,
            source=ImportSource.RULE_BASED,
            raw_data=dict(fields),
        )
