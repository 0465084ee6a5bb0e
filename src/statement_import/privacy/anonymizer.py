"""
PII anonymization for text leaving the device.

Sensitive substrings are replaced with ``[TYPE_N]`` placeholders before any
cloud call; the returned mapping restores them afterwards:

- Person names (only in transfer contexts) -> [PERSON_NAME_1]
- IBANs -> [IBAN_1]
- Card numbers -> [CARD_NUMBER_1]
- Phone numbers -> [PHONE_1]
- Email addresses -> [EMAIL_1]
- Kazakhstan IIN -> [IIN_1]
- Account numbers -> [ACCOUNT_NUMBER_1]

Dates (numeric or with month names), amounts and merchant names pass
through untouched. The mapping is scoped to one anonymize/deanonymize
round trip and must never be sent alongside the anonymized text.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from ..extractors.dates import ENGLISH_MONTHS, RUSSIAN_MONTHS
from ..extractors.ocr_extractor import DATE_PATTERNS

logger = logging.getLogger(__name__)


class PIIType(str, Enum):
    PERSON_NAME = "PERSON_NAME"
    IBAN = "IBAN"
    ACCOUNT_NUMBER = "ACCOUNT_NUMBER"
    CARD_NUMBER = "CARD_NUMBER"
    PHONE = "PHONE"
    EMAIL = "EMAIL"
    ADDRESS = "ADDRESS"
    SSN = "SSN"
    PASSPORT = "PASSPORT"
    IIN = "IIN"  # Kazakhstan individual identification number


@dataclass(frozen=True)
class DetectedPII:
    """One detected sensitive substring."""

    type: PIIType
    original: str
    placeholder: str
    start_index: int
    end_index: int


@dataclass
class AnonymizationResult:
    """Anonymized text plus the placeholder -> original mapping."""

    anonymized_text: str
    mapping: dict[str, str] = field(default_factory=dict)
    detected_pii: list[DetectedPII] = field(default_factory=list)
    was_modified: bool = False

    @property
    def pii_count(self) -> int:
        return len(self.detected_pii)


# Detection patterns - ORDER MATTERS: more specific patterns claim spans first
PII_PATTERNS: list[tuple[PIIType, list[re.Pattern]]] = [
    # IBAN: two letters, two check digits, 10-30 alphanumerics
    (PIIType.IBAN, [re.compile(r"[A-Z]{2}\d{2}[A-Z0-9]{10,30}")]),
    (PIIType.EMAIL, [re.compile(r"[\w.+-]+@[\w.-]+\.\w{2,}", re.IGNORECASE)]),
    # 16 digits with optional spaces/dashes
    (PIIType.CARD_NUMBER, [re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b")]),
    # KZ/RU phones - before account numbers
    (
        PIIType.PHONE,
        [
            re.compile(r"(?<!\d)\+?[78]\s*[(\-]?\d{3}[)\-]?\s*\d{3}[\-\s]?\d{2}[\-\s]?\d{2}\b"),
            re.compile(r"\b87\d{9}\b"),
        ],
    ),
    # Exactly 12 digits - before account numbers
    (PIIType.IIN, [re.compile(r"\b\d{12}\b")]),
    (PIIType.ACCOUNT_NUMBER, [re.compile(r"\b\d{10,20}\b")]),
    (
        PIIType.PERSON_NAME,
        [
            # Фамилия И.О.
            re.compile(r"[А-ЯЁ][а-яё]+\s+[А-ЯЁ]\.\s*[А-ЯЁ]\."),
            # Фамилия Имя Отчество (masculine / feminine patronymic)
            re.compile(r"[А-ЯЁ][а-яё]+\s+[А-ЯЁ][а-яё]+\s+[А-ЯЁ][а-яё]+(?:ич|вна)\b"),
            # Фамилия Имя
            re.compile(r"[А-ЯЁ][а-яё]+\s+[А-ЯЁ][а-яё]+\b"),
            # John Smith
            re.compile(r"[A-Z][a-z]+\s+[A-Z][a-z]+\b"),
            # Smith, John
            re.compile(r"[A-Z][a-z]+,\s*[A-Z][a-z]+\b"),
            # J. Smith / John S.
            re.compile(r"[A-Z]\.\s*[A-Z][a-z]+\b"),
            re.compile(r"[A-Z][a-z]+\s+[A-Z]\.(?!\w)"),
        ],
    ),
]

# Names are only redacted when the text reads like a person-to-person transfer
TRANSFER_CONTEXT = re.compile(
    r"\b(transfer|from|to|recipient|sender|payee|p2p|перевод|от|получатель|отправитель|кому)\b",
    re.IGNORECASE,
)

# Tokens never treated as PII
PROTECTED_PATTERNS = [
    re.compile(r"(?<!\d)\d{1,2}[./]\d{1,2}[./]\d{2,4}(?!\d)"),
    re.compile(r"(?<!\d)\d{4}-\d{2}-\d{2}(?!\d)"),
    re.compile(r"(?<![\w.,])[+\-]?\d{1,3}(?:[ \u00a0]\d{3})+,\d{2}(?!\d)"),
    re.compile(r"(?<![\w.,])[+\-]?\d+[.,]\d{1,2}(?![\d.,])"),
    # "15 Jan 2024", "January 15, 2024", "15 января 2024" and the numeric forms
    *DATE_PATTERNS,
]

# Name candidates ending in a month are the start of a date
MONTH_NAMES = set(ENGLISH_MONTHS) | set(RUSSIAN_MONTHS)

BUSINESS_WORDS = {
    # Business types
    "bank", "банк", "store", "магазин", "shop", "market", "маркет",
    "restaurant", "ресторан", "cafe", "кафе", "hotel", "отель",
    "company", "компания", "corp", "corporation", "inc", "ltd", "llc",
    "gmbh", "ag", "sa", "ооо", "оао", "ао", "зао", "тоо", "ип",
    # Services
    "service", "сервис", "services", "center", "центр", "clinic", "клиника",
    "pharmacy", "аптека", "studio", "студия", "agency", "агентство",
    # Financial
    "payment", "платёж", "transfer", "перевод", "exchange", "обмен",
    "insurance", "страхование", "credit", "кредит", "loan", "займ",
    # Common merchant words
    "express", "экспресс", "plus", "плюс", "pro", "premium", "gold",
    "mobile", "мобайл", "online", "онлайн", "digital", "smart",
    # Kazakhstan banks
    "kaspi", "halyk", "jusan", "forte", "bcc", "eurasian",
}  # fmt: skip

PLACEHOLDER_PATTERN = re.compile(r"\[[A-Z_]+_\d+\]")


def _overlaps(start: int, end: int, spans: list[tuple[int, int]]) -> bool:
    return any(start < s_end and s_start < end for s_start, s_end in spans)


def _is_business_name(value: str) -> bool:
    return any(word.strip(".,").lower() in BUSINESS_WORDS for word in value.split())


def _ends_with_month(value: str) -> bool:
    return value.split()[-1].strip(".,").lower() in MONTH_NAMES


class PIIAnonymizer:
    """
    Regex-based reversible anonymizer.

    Counters and mapping are local to each ``anonymize`` call, so one
    instance can be shared across concurrent batches.
    """

    def anonymize(
        self, text: str, protected_tokens: Optional[Iterable[str]] = None
    ) -> AnonymizationResult:
        """Replace PII with placeholders.

        Args:
            text: Text to anonymize
            protected_tokens: Extra substrings (e.g. the row's date and amount
                as the caller formatted them) that must survive unchanged

        Returns:
            AnonymizationResult with the placeholder -> original mapping
        """
        if not text:
            return AnonymizationResult(anonymized_text=text or "")

        protected = self._protected_spans(text, protected_tokens)
        claimed: list[tuple[int, int, PIIType]] = []
        names_allowed = bool(TRANSFER_CONTEXT.search(text))

        for pii_type, patterns in PII_PATTERNS:
            if pii_type == PIIType.PERSON_NAME and not names_allowed:
                continue
            for pattern in patterns:
                for match in pattern.finditer(text):
                    start, end = match.span()
                    if _overlaps(start, end, protected):
                        continue
                    if _overlaps(start, end, [(s, e) for s, e, _ in claimed]):
                        continue
                    if pii_type == PIIType.PERSON_NAME and _is_business_name(match.group(0)):
                        continue
                    if pii_type == PIIType.PERSON_NAME and _ends_with_month(match.group(0)):
                        continue
                    claimed.append((start, end, pii_type))

        if not claimed:
            logger.debug("No PII detected")
            return AnonymizationResult(anonymized_text=text)

        claimed.sort()
        counters: Counter[PIIType] = Counter()
        mapping: dict[str, str] = {}
        detected: list[DetectedPII] = []
        parts: list[str] = []
        cursor = 0

        for start, end, pii_type in claimed:
            placeholder = self._next_placeholder(pii_type, counters, text)
            original = text[start:end]
            mapping[placeholder] = original
            detected.append(DetectedPII(pii_type, original, placeholder, start, end))
            parts.append(text[cursor:start])
            parts.append(placeholder)
            cursor = end
        parts.append(text[cursor:])

        type_counts = Counter(item.type.value for item in detected)
        logger.info(f"Anonymized {len(detected)} PII values: {dict(type_counts)}")

        return AnonymizationResult(
            anonymized_text="".join(parts),
            mapping=mapping,
            detected_pii=detected,
            was_modified=True,
        )

    def deanonymize(self, text: str, mapping: dict[str, str]) -> str:
        """Substitute every known placeholder back in a single pass."""
        if not mapping:
            return text
        return PLACEHOLDER_PATTERN.sub(lambda m: mapping.get(m.group(0), m.group(0)), text)

    def detect_pii(self, text: str) -> list[DetectedPII]:
        """Detect PII without keeping the anonymized text."""
        return self.anonymize(text).detected_pii

    @staticmethod
    def _next_placeholder(pii_type: PIIType, counters: Counter, text: str) -> str:
        # Skip numbers whose placeholder already occurs literally in the input
        while True:
            counters[pii_type] += 1
            placeholder = f"[{pii_type.value}_{counters[pii_type]}]"
            if placeholder not in text:
                return placeholder

    @staticmethod
    def _protected_spans(
        text: str, protected_tokens: Optional[Iterable[str]]
    ) -> list[tuple[int, int]]:
        spans = [match.span() for pattern in PROTECTED_PATTERNS for match in pattern.finditer(text)]
        for token in protected_tokens or ():
            if not token:
                continue
            start = text.find(token)
            while start != -1:
                spans.append((start, start + len(token)))
                start = text.find(token, start + 1)
        return spans
