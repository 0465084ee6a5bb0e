"""
CSV statement parser with automatic column detection.

Header cells are matched against English and Russian keyword sets; the
first column matching each role wins. Rows whose date or amount cannot be
parsed are skipped and counted against the overall confidence.
"""

import csv
import io
import logging
from dataclasses import dataclass
from typing import Optional

from ..schemas.documents import (
    CsvDocument,
    DocumentType,
    ImportResult,
    NeedsUserInput,
    ParseError,
    ParseSuccess,
)
from ..schemas.transactions import ImportedTransaction, ImportSource
from .base import BaseParser
from .dates import DateParser
from .numbers import NumberParser

logger = logging.getLogger(__name__)

ROW_CONFIDENCE = 0.85

DATE_COLUMNS = {
    "date", "дата", "transaction date", "дата операции", "дата транзакции",
    "posting date", "value date", "дата проводки", "operation date",
}  # fmt: skip

AMOUNT_COLUMNS = {
    "amount", "сумма", "sum", "value", "debit", "credit",
    "сумма операции", "сумма в валюте счета", "transaction amount",
}  # fmt: skip

DESCRIPTION_COLUMNS = {
    "description", "описание", "details", "назначение", "memo",
    "narrative", "payment details", "описание операции", "детали",
}  # fmt: skip

BALANCE_COLUMNS = {
    "balance", "остаток", "running balance", "баланс",
    "остаток после операции", "account balance",
}  # fmt: skip

MERCHANT_COLUMNS = {
    "merchant", "торговая точка", "payee", "получатель",
    "контрагент", "vendor", "store",
}  # fmt: skip


@dataclass
class ColumnMap:
    """Indices of the recognised columns in the header row."""

    date: Optional[int] = None
    amount: Optional[int] = None
    description: Optional[int] = None
    balance: Optional[int] = None
    merchant: Optional[int] = None

    @classmethod
    def detect(cls, header: list[str]) -> "ColumnMap":
        columns = cls()
        for index, cell in enumerate(header):
            lower = cell.lower().strip()
            if columns.date is None and any(k in lower for k in DATE_COLUMNS):
                columns.date = index
            elif columns.amount is None and any(k in lower for k in AMOUNT_COLUMNS):
                columns.amount = index
            elif columns.description is None and any(k in lower for k in DESCRIPTION_COLUMNS):
                columns.description = index
            elif columns.balance is None and any(k in lower for k in BALANCE_COLUMNS):
                columns.balance = index
            elif columns.merchant is None and any(k in lower for k in MERCHANT_COLUMNS):
                columns.merchant = index
        return columns

    @property
    def bonus(self) -> float:
        """Confidence bonus for optional columns that corroborate rows."""
        if self.balance is not None and self.merchant is not None:
            return 0.1
        if self.balance is not None or self.merchant is not None:
            return 0.05
        return 0.0


def _cell(values: list[str], index: Optional[int]) -> Optional[str]:
    if index is None or index >= len(values):
        return None
    return values[index].strip()


class CsvParser(BaseParser):
    """Parses delimited bank exports."""

    def __init__(
        self,
        date_parser: Optional[DateParser] = None,
        number_parser: Optional[NumberParser] = None,
    ):
        self.date_parser = date_parser or DateParser()
        self.number_parser = number_parser or NumberParser()

    @property
    def name(self) -> str:
        return "csv"

    def can_parse(self, document_type: DocumentType) -> bool:
        return isinstance(document_type, CsvDocument)

    def parse(self, content: str, document_type: DocumentType) -> ImportResult:
        if not isinstance(document_type, CsvDocument):
            document_type = CsvDocument()

        cleaned = content.lstrip("\ufeff").strip()
        if not cleaned:
            return ParseError("Empty CSV content", document_type)

        rows = [
            row
            for row in csv.reader(io.StringIO(cleaned), delimiter=document_type.delimiter)
            if any(cell.strip() for cell in row)
        ]
        if len(rows) < 2:
            return ParseError("CSV must have header and at least one data row", document_type)

        header = [cell.strip() for cell in rows[0]]
        columns = ColumnMap.detect(header)
        if columns.date is None or columns.amount is None:
            return NeedsUserInput(
                transactions=[],
                document_type=document_type,
                issues=[
                    "Could not detect date or amount columns. Headers: " + ", ".join(header)
                ],
            )

        transactions: list[ImportedTransaction] = []
        skipped: list[str] = []
        for row_number, values in enumerate(rows[1:], start=2):
            transaction = self._parse_row(values, columns, header)
            if transaction is None:
                skipped.append(f"Row {row_number}: unparseable date or amount")
            else:
                transactions.append(transaction)

        data_rows = len(rows) - 1
        if not transactions:
            return ParseError(
                "No valid transactions found. Errors: " + "; ".join(skipped[:3]),
                document_type,
            )

        if skipped:
            logger.info(f"CSV: skipped {len(skipped)} of {data_rows} rows")

        ratio = len(transactions) / data_rows
        confidence = min(1.0, max(0.0, ratio * 0.9 + columns.bonus))
        return ParseSuccess(
            transactions=transactions,
            document_type=document_type,
            total_confidence=confidence,
        )

    def _parse_row(
        self, values: list[str], columns: ColumnMap, header: list[str]
    ) -> Optional[ImportedTransaction]:
        date_text = _cell(values, columns.date)
        amount_text = _cell(values, columns.amount)
        if not date_text or not amount_text:
            return None

        parsed_date = self.date_parser.parse_or_none(date_text)
        amount = self.number_parser.parse_or_none(amount_text)
        if parsed_date is None or amount is None:
            return None

        balance_text = _cell(values, columns.balance)
        balance = self.number_parser.parse_or_none(balance_text) if balance_text else None

        return ImportedTransaction(
            date=parsed_date,
            amount=amount,
            description=_cell(values, columns.description) or "",
            merchant=_cell(values, columns.merchant) or None,
            balance=balance,
            confidence=ROW_CONFIDENCE,
            source=ImportSource.RULE_BASED,
            raw_data={key: value.strip() for key, value in zip(header, values)},
        )
