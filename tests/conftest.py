"""Test fixtures and utilities."""

from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from statement_import.clock import FixedClock
from statement_import.schemas import ImportedTransaction, ImportSource
from statement_import.state_store import StateStore

# Sample statements for testing
SAMPLE_CSV = """Date,Description,Amount,Balance
2024-01-15,MAGNUM SUPERMARKET ALMATY,-3700.50,96299.50
2024-01-16,Salary January,250000.00,346299.50
2024-01-17,ZZQX TRADING 001,-1200.00,345099.50
"""

SAMPLE_CSV_RU = """Дата;Описание;Сумма
15.01.2024;Оплата Glovo;-2 500,00
16.01.2024;Пополнение счета;50 000,00
"""

SAMPLE_OFX = """OFXHEADER:100
DATA:OFXSGML
VERSION:102

<OFX>
<BANKMSGSRSV1>
<STMTTRNRS>
<STMTRS>
<BANKTRANLIST>
<STMTTRN>
<TRNTYPE>DEBIT
<DTPOSTED>20240115120000
<TRNAMT>-42.50
<NAME>STARBUCKS
<MEMO>Coffee beans
</STMTTRN>
<STMTTRN>
<TRNTYPE>CREDIT
<DTPOSTED>20240116
<TRNAMT>1500.00
<NAME>ACME PAYROLL
</STMTTRN>
</BANKTRANLIST>
</STMTRS>
</STMTTRNRS>
</BANKMSGSRSV1>
</OFX>
"""

SAMPLE_QIF = """!Type:Bank
D01/15/2024
T-42.50
PSTARBUCKS
MCoffee beans
LDining
^
D15/01/2024
T1,500.00
PACME PAYROLL
^
"""

SAMPLE_OCR_KASPI = """Kaspi Bank
Выписка по карте
15.01.2024 MAGNUM SUPERMARKET - 3 700,00 ₸
16.01.2024 Пополнение + 50 000,00 ₸
Итого страниц 1
"""

FIXED_NOW = datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_csv() -> bytes:
    """English CSV export with a balance column."""
    return SAMPLE_CSV.encode("utf-8")


@pytest.fixture
def sample_csv_ru() -> bytes:
    """Semicolon-delimited Russian CSV export."""
    return SAMPLE_CSV_RU.encode("utf-8")


@pytest.fixture
def sample_ofx() -> bytes:
    """SGML OFX 1.x statement with two transactions."""
    return SAMPLE_OFX.encode("utf-8")


@pytest.fixture
def sample_qif() -> bytes:
    """QIF bank statement with two records."""
    return SAMPLE_QIF.encode("utf-8")


@pytest.fixture
def sample_ocr_text() -> str:
    """OCR text of a Kaspi card statement."""
    return SAMPLE_OCR_KASPI


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to 2024-02-01 12:00 UTC."""
    return FixedClock(FIXED_NOW)


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Temporary database path."""
    return tmp_path / "test_state.db"


@pytest.fixture
def store(temp_db: Path, clock: FixedClock) -> StateStore:
    """Fresh state store on a temporary database."""
    return StateStore(temp_db, clock=clock)


def make_imported(
    day: int = 15,
    amount: int = -370050,
    description: str = "MAGNUM SUPERMARKET",
    category: str | None = None,
) -> ImportedTransaction:
    """Build an imported row dated January 2024."""
    return ImportedTransaction(
        date=date(2024, 1, day),
        amount=amount,
        description=description,
        category=category,
        source=ImportSource.RULE_BASED,
    )
