"""
Amount parsing across locales.

Supported formats:
- US: 1,234.56
- EU: 1.234,56
- RU/KZ: 1 234,56 (regular, no-break or thin spaces)
- Indian: 1,23,456.78
- Negative via leading minus or accounting parentheses

All results are signed integers in minor units.
"""

from enum import Enum

CURRENCY_SYMBOLS = "$€£¥₽₸₴₾₼₿฿₫₹₩₪₱₡₢₣₤₥₦₧₨"
CURRENCY_CODES = [
    "USD", "EUR", "GBP", "JPY", "RUB", "KZT", "UAH", "GEL", "AZN",
    "CNY", "INR", "KRW", "BTC", "ETH",
]  # fmt: skip
SPACE_CHARS = (" ", "\u00a0", "\u202f", "\u2009")


class NumberParseError(ValueError):
    """Raised when an amount string cannot be parsed."""

    pass


class NumberLocale(str, Enum):
    AUTO = "AUTO"
    US = "US"
    EU = "EU"
    RU_KZ = "RU_KZ"
    INDIAN = "INDIAN"


def _clean(text: str) -> str:
    result = text.strip()
    for symbol in CURRENCY_SYMBOLS:
        result = result.replace(symbol, "")
    upper = result.upper()
    for code in CURRENCY_CODES:
        while code in upper:
            start = upper.index(code)
            result = result[:start] + result[start + len(code):]
            upper = result.upper()
    return result.strip()


def _is_indian_grouping(before_decimal: str) -> bool:
    # 1,00,000 / 1,00,00,000: two-digit groups, then a final group of three
    parts = before_decimal.split(",")
    if len(parts) < 3:
        return False
    return (
        1 <= len(parts[0]) <= 2
        and all(len(part) == 2 for part in parts[1:-1])
        and len(parts[-1]) == 3
    )


class NumberParser:
    """Parses localized amount strings into minor units."""

    def parse(self, text: str, locale: NumberLocale = NumberLocale.AUTO) -> int:
        cleaned = _clean(text)
        if not cleaned:
            raise NumberParseError("Empty amount string")

        effective = self.detect_locale(cleaned) if locale == NumberLocale.AUTO else locale
        return self._parse_with_locale(cleaned, effective)

    def parse_or_none(self, text: str, locale: NumberLocale = NumberLocale.AUTO) -> int | None:
        try:
            return self.parse(text, locale)
        except NumberParseError:
            return None

    def detect_locale(self, text: str) -> NumberLocale:
        cleaned = _clean(text)

        if any(space in cleaned for space in SPACE_CHARS):
            return NumberLocale.RU_KZ

        dot = cleaned.rfind(".")
        comma = cleaned.rfind(",")

        if comma == -1:
            return NumberLocale.US
        if dot == -1:
            after_comma = cleaned[comma + 1:]
            if len(after_comma) <= 2 and after_comma.isdigit():
                return NumberLocale.EU
            return NumberLocale.US
        if dot > comma:
            if _is_indian_grouping(cleaned[:dot]):
                return NumberLocale.INDIAN
            return NumberLocale.US
        return NumberLocale.EU

    def _parse_with_locale(self, text: str, locale: NumberLocale) -> int:
        negative, numeric = self._extract_sign(text)

        if locale in (NumberLocale.US, NumberLocale.INDIAN):
            normalized = numeric.replace(",", "")
        elif locale == NumberLocale.EU:
            normalized = numeric.replace(".", "").replace(",", ".")
        else:
            normalized = numeric
            for space in SPACE_CHARS:
                normalized = normalized.replace(space, "")
            normalized = normalized.replace(",", ".")

        normalized = normalized.strip()
        if not any(char.isdigit() for char in normalized):
            raise NumberParseError(f"No digits in amount: '{text}'")

        cents = self._to_minor_units(normalized)
        return -cents if negative else cents

    @staticmethod
    def _extract_sign(text: str) -> tuple[bool, str]:
        trimmed = text.strip()
        if trimmed.startswith("(") and trimmed.endswith(")"):
            return True, trimmed[1:-1].strip()
        if trimmed.startswith("-"):
            return True, trimmed[1:].strip()
        if trimmed.startswith("+"):
            return False, trimmed[1:].strip()
        return False, trimmed

    @staticmethod
    def _to_minor_units(normalized: str) -> int:
        if "." not in normalized:
            if not normalized.isdigit():
                raise NumberParseError(f"Invalid amount format: '{normalized}'")
            return int(normalized) * 100

        integer_part, decimal_part = normalized.split(".", 1)
        decimal_part = decimal_part.ljust(2, "0")[:2]
        if integer_part and not integer_part.isdigit():
            raise NumberParseError(f"Invalid amount format: '{normalized}'")
        if not decimal_part.isdigit():
            raise NumberParseError(f"Invalid amount format: '{normalized}'")
        return int(integer_part or "0") * 100 + int(decimal_part)
