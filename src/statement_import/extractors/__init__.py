"""
Statement parsers.

Provides:
- ParserRouter: Detects the format and dispatches to a parser
- CSV, OFX and QIF parsers
- OCR text heuristics extractor for scanned statements and receipts
- Locale-aware date and number parsing
- Base class for custom parsers

Parsers never raise on malformed input; failures come back as ParseError.
"""

from .base import BaseParser
from .csv_parser import CsvParser
from .dates import DateFormat, DateParseError, DateParser
from .numbers import NumberLocale, NumberParseError, NumberParser
from .ocr_extractor import OCRTextExtractor
from .ofx_parser import OfxParser
from .qif_parser import QifParser
from .router import ParserRouter

__all__ = [
    "ParserRouter",
    "CsvParser",
    "OfxParser",
    "QifParser",
    "OCRTextExtractor",
    "BaseParser",
    "DateParser",
    "DateFormat",
    "DateParseError",
    "NumberParser",
    "NumberLocale",
    "NumberParseError",
]
