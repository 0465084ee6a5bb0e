"""
Date parsing for statement fields.

Handles ISO, compact (YYYYMMDD / DDMMYYYY), European dotted/slashed dates and
textual dates with Russian or English month names.
"""

import re
from datetime import date
from enum import Enum
from typing import Optional


class DateParseError(ValueError):
    """Raised when a date string cannot be parsed."""

    pass


class DateFormat(str, Enum):
    AUTO = "AUTO"
    ISO = "ISO"
    ISO_COMPACT = "ISO_COMPACT"
    EU = "EU"
    EU_COMPACT = "EU_COMPACT"
    US = "US"
    RUSSIAN_TEXT = "RUSSIAN_TEXT"
    ENGLISH_TEXT = "ENGLISH_TEXT"


RUSSIAN_MONTHS = {
    "январь": 1, "февраль": 2, "март": 3, "апрель": 4, "май": 5, "июнь": 6,
    "июль": 7, "август": 8, "сентябрь": 9, "октябрь": 10, "ноябрь": 11, "декабрь": 12,
    "января": 1, "февраля": 2, "марта": 3, "апреля": 4, "мая": 5, "июня": 6,
    "июля": 7, "августа": 8, "сентября": 9, "октября": 10, "ноября": 11, "декабря": 12,
    "янв": 1, "фев": 2, "мар": 3, "апр": 4, "июн": 6, "июл": 7, "авг": 8,
    "сен": 9, "окт": 10, "ноя": 11, "дек": 12,
}  # fmt: skip

ENGLISH_MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}  # fmt: skip

ISO_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
EU_PATTERN = re.compile(r"^(\d{1,2})[./\-](\d{1,2})[./\-](\d{2,4})$")
COMPACT_PATTERN = re.compile(r"^(\d{8})$")
DAY_FIRST_TEXT_PATTERN = re.compile(r"(\d{1,2})\s+([^\W\d_]+)\s+(\d{4})")
MONTH_FIRST_TEXT_PATTERN = re.compile(r"([^\W\d_]+)\s+(\d{1,2}),?\s+(\d{4})")


def normalize_year(year: int) -> int:
    """Expand two-digit years: 50-99 -> 19xx, 00-49 -> 20xx."""
    if year >= 100:
        return year
    if year >= 50:
        return 1900 + year
    return 2000 + year


def _make_date(text: str, year: int, month: int, day: int) -> date:
    try:
        return date(year, month, day)
    except ValueError as e:
        raise DateParseError(f"Invalid date '{text}': {day:02d}.{month:02d}.{year}") from e


class DateParser:
    """Parses statement date strings into ``datetime.date``."""

    def parse(self, text: str, fmt: DateFormat = DateFormat.AUTO) -> date:
        trimmed = text.strip()
        if not trimmed:
            raise DateParseError("Empty date string")

        effective = self.detect_format(trimmed) if fmt == DateFormat.AUTO else fmt
        return self._parse_with_format(trimmed, effective)

    def parse_or_none(self, text: str, fmt: DateFormat = DateFormat.AUTO) -> Optional[date]:
        try:
            return self.parse(text, fmt)
        except DateParseError:
            return None

    def detect_format(self, text: str) -> DateFormat:
        trimmed = text.strip()

        if ISO_PATTERN.match(trimmed):
            return DateFormat.ISO

        if COMPACT_PATTERN.match(trimmed):
            if trimmed.startswith(("19", "20")):
                return DateFormat.ISO_COMPACT
            return DateFormat.EU_COMPACT

        lower = trimmed.lower()
        if any(name in lower for name in RUSSIAN_MONTHS):
            return DateFormat.RUSSIAN_TEXT
        if any(name in lower for name in ENGLISH_MONTHS):
            return DateFormat.ENGLISH_TEXT

        if EU_PATTERN.match(trimmed):
            return DateFormat.EU

        return DateFormat.AUTO

    def _parse_with_format(self, text: str, fmt: DateFormat) -> date:
        if fmt == DateFormat.ISO:
            match = ISO_PATTERN.match(text)
            if not match:
                raise DateParseError(f"Invalid date format: '{text}'")
            return _make_date(text, int(match.group(1)), int(match.group(2)), int(match.group(3)))

        if fmt in (DateFormat.ISO_COMPACT, DateFormat.EU_COMPACT):
            if not COMPACT_PATTERN.match(text):
                raise DateParseError(f"Invalid date format: '{text}'")
            if fmt == DateFormat.ISO_COMPACT:
                return _make_date(text, int(text[:4]), int(text[4:6]), int(text[6:8]))
            return _make_date(text, int(text[4:8]), int(text[2:4]), int(text[:2]))

        if fmt in (DateFormat.EU, DateFormat.US):
            match = EU_PATTERN.match(text)
            if not match:
                raise DateParseError(f"Invalid date format: '{text}'")
            first, second = int(match.group(1)), int(match.group(2))
            year = normalize_year(int(match.group(3)))
            if fmt == DateFormat.US:
                return _make_date(text, year, first, second)
            return _make_date(text, year, second, first)

        if fmt == DateFormat.RUSSIAN_TEXT:
            return self._parse_text(text, RUSSIAN_MONTHS)

        if fmt == DateFormat.ENGLISH_TEXT:
            return self._parse_text(text, ENGLISH_MONTHS)

        for candidate in (
            DateFormat.ISO,
            DateFormat.ISO_COMPACT,
            DateFormat.RUSSIAN_TEXT,
            DateFormat.ENGLISH_TEXT,
            DateFormat.EU,
        ):
            try:
                return self._parse_with_format(text, candidate)
            except DateParseError:
                continue
        raise DateParseError(f"Invalid date format: '{text}'")

    @staticmethod
    def _parse_text(text: str, months: dict[str, int]) -> date:
        normalized = re.sub(r"\s+", " ", text.lower()).strip()

        match = MONTH_FIRST_TEXT_PATTERN.search(normalized)
        if match and match.group(1) in months:
            return _make_date(
                text, int(match.group(3)), months[match.group(1)], int(match.group(2))
            )

        match = DAY_FIRST_TEXT_PATTERN.search(normalized)
        if match and match.group(2) in months:
            return _make_date(
                text, int(match.group(3)), months[match.group(2)], int(match.group(1))
            )

        raise DateParseError(f"Invalid date format: '{text}'")
