"""
Merchant name normalization.

Turns raw statement descriptors such as ``"MAGNUM ALMATY POS 123456 *4455"``
into stable patterns (``"MAGNUM"``) that the learning loop stores and the
learned-merchant tier matches against.
"""

import re

BUSINESS_SUFFIXES = [
    # Kazakhstan
    "ТОО", "АО", "ИП", "КХ", "ПК",
    # International
    "LLC", "LTD", "INC", "CORP", "CO", "PLC", "GMBH", "AG", "SA",
]  # fmt: skip

LOCATION_WORDS = [
    "ALMATY", "АЛМАТЫ", "ASTANA", "АСТАНА", "NUR-SULTAN", "НУР-СУЛТАН",
    "SHYMKENT", "ШЫМКЕНТ", "КАРАГАНДА", "KARAGANDA", "АКТОБЕ", "AKTOBE",
    "BRANCH", "ФИЛИАЛ", "ОТДЕЛЕНИЕ",
]  # fmt: skip

COMMON_WORDS = {
    "THE", "AND", "OF", "FOR", "IN", "AT", "TO", "BY",
    "И", "В", "НА", "ДЛЯ", "ИЗ", "ОТ", "ПО", "С",
}  # fmt: skip

NOISE_PATTERNS = [
    re.compile(r"\*+\d+"),  # card mask *1234
    re.compile(r"\d{6,}"),  # terminal ids
    re.compile(r"POS\s*\d*", re.IGNORECASE),
    re.compile(r"TERMINAL\s*\d*", re.IGNORECASE),
    re.compile(r"ТЕРМИНАЛ\s*\d*", re.IGNORECASE),
    re.compile(r"\d{2}[./]\d{2}[./]\d{2,4}"),  # dates
    re.compile(r"\d{2}:\d{2}(?::\d{2})?"),  # times
    re.compile(r"KZT|KZ|₸"),
    re.compile(r"#\d+"),  # order numbers
]

SUFFIX_PATTERNS = [re.compile(rf"(?<!\w){re.escape(s)}(?!\w)") for s in BUSINESS_SUFFIXES]
LOCATION_PATTERNS = [re.compile(rf"(?<!\w){re.escape(w)}(?!\w)") for w in LOCATION_WORDS]
NON_LETTER = re.compile(r"[^A-ZА-ЯЁ\s]")
WORD_SPLIT = re.compile(r"[^A-ZА-ЯЁ]+")

JACCARD_THRESHOLD = 0.5


class MerchantNormalizer:
    """Normalizes merchant names for pattern storage and matching."""

    def normalize(self, merchant_name: str) -> str:
        """Uppercase and strip noise, business suffixes and location words.

        Falls back to the first alphabetic word of the input when nothing
        survives normalization. Returns "" for blank input.
        """
        if not merchant_name or not merchant_name.strip():
            return ""

        original = merchant_name.upper().strip()
        result = original
        for pattern in NOISE_PATTERNS:
            result = pattern.sub(" ", result)
        for pattern in SUFFIX_PATTERNS:
            result = pattern.sub(" ", result)
        for pattern in LOCATION_PATTERNS:
            result = pattern.sub(" ", result)

        result = NON_LETTER.sub(" ", result)
        result = " ".join(result.split())

        if not result:
            words = [word for word in WORD_SPLIT.split(original) if len(word) >= 2]
            return words[0] if words else original[:20].strip()
        return result

    def extract_keywords(self, merchant_name: str) -> list[str]:
        """Up to five significant words of the normalized name."""
        normalized = self.normalize(merchant_name)
        if not normalized:
            return []
        return [w for w in normalized.split(" ") if len(w) >= 2 and w not in COMMON_WORDS][:5]

    def is_similar(self, first: str, second: str) -> bool:
        """Same merchant after normalization, containment or keyword overlap."""
        norm1 = self.normalize(first)
        norm2 = self.normalize(second)
        if not norm1 or not norm2:
            return False
        if norm1 == norm2 or norm1 in norm2 or norm2 in norm1:
            return True

        keywords1 = set(self.extract_keywords(first))
        keywords2 = set(self.extract_keywords(second))
        if not keywords1 or not keywords2:
            return False
        return len(keywords1 & keywords2) / len(keywords1 | keywords2) >= JACCARD_THRESHOLD

    def to_pattern(self, normalized_name: str) -> str:
        """Storable pattern: the first two keywords of a normalized name.

        "MAGNUM SUPER MARKET" -> "MAGNUM SUPER", "GLOVO ORDER" -> "GLOVO ORDER"
        """
        if not normalized_name or not normalized_name.strip():
            return ""
        keywords = self.extract_keywords(normalized_name)
        if not keywords:
            return normalized_name
        return " ".join(keywords[:2])
