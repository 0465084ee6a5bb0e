"""
Static merchant database for the rule-based tier.

Patterns cover Kazakhstan merchants and popular international services.
Each entry is ``(regex, confidence, display name)``; patterns are matched
case-insensitively anywhere in the description, anchored at a word start.
The first matching entry wins, so specific patterns precede generic ones.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from ..schemas.categorization import CategorizationResult, CategorizationSource


@dataclass(frozen=True)
class MerchantPattern:
    """One merchant pattern mapped to a category."""

    pattern: str
    category_id: str
    confidence: float
    display_name: Optional[str] = None
    regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "regex", re.compile(r"(?<!\w)(?:" + self.pattern + ")", re.IGNORECASE))

    def matches(self, description: str) -> bool:
        return self.regex.search(description) is not None


GROCERY_PATTERNS = [
    # Supermarket chains
    ("MAGNUM", 0.95, "Magnum"),
    ("SMALL\\s*\\d*", 0.90, "Small"),
    ("METRO\\s*CASH", 0.95, "Metro"),
    ("ANVAR", 0.90, "Anvar"),
    ("RAMSTORE", 0.92, "Ramstore"),
    ("SKIDKA", 0.88, "Skidka"),
    ("GALMART", 0.90, "Galmart"),
    ("ФИКС\\s*ПРАЙС", 0.88, "Fix Price"),
    ("FIX\\s*PRICE", 0.88, "Fix Price"),
    ("ДИНА", 0.85, "Dina"),
    # Online grocery
    ("ARBUZ", 0.95, "Arbuz.kz"),
    ("KLEVER", 0.90, "Klever"),
    ("SPAR", 0.90, "Spar"),
    # Markets
    ("ЗЕЛЕНЫЙ\\s*БАЗАР", 0.85, "Green Bazaar"),
    ("GREEN\\s*BAZAAR", 0.85, "Green Bazaar"),
    ("БАЗАР", 0.70, None),
    ("РЫНОК", 0.70, None),
    # Specialty stores
    ("МЯСНОЙ", 0.80, None),
    ("ОВОЩНОЙ", 0.80, None),
    ("МОЛОЧНЫЙ", 0.80, None),
    ("BAKERY", 0.75, None),
    ("ХЛЕБ", 0.75, None),
]

FOOD_DELIVERY_PATTERNS = [
    ("WOLT", 0.98, "Wolt"),
    ("GLOVO", 0.98, "Glovo"),
    ("YANDEX.*EDA", 0.98, "Yandex Eda"),
    ("ЯНДЕКС.*ЕДА", 0.98, "Yandex Eda"),
    ("CHOCOFOOD", 0.95, "Chocofood"),
    ("DELIVERY\\s*CLUB", 0.95, "Delivery Club"),
    ("UBER\\s*EATS", 0.98, "Uber Eats"),
    ("DOMINO", 0.90, "Domino's"),
    ("PAPA\\s*JOHN", 0.90, "Papa John's"),
    ("ДОСТАВКА\\s*ЕДЫ", 0.85, None),
    ("FOOD\\s*DELIVERY", 0.85, None),
]

TRANSPORT_PATTERNS = [
    # Taxi
    ("YANDEX.*TAXI", 0.98, "Yandex Taxi"),
    ("ЯНДЕКС.*ТАКСИ", 0.98, "Yandex Taxi"),
    ("INDRIVER", 0.95, "InDriver"),
    ("DIDI", 0.95, "DiDi"),
    ("UBER", 0.98, "Uber"),
    ("МАКСИМ.*ТАКСИ", 0.90, "Maxim Taxi"),
    ("MAXIM.*TAXI", 0.90, "Maxim Taxi"),
    ("ТАКСИ", 0.75, None),
    ("TAXI", 0.75, None),
    # Public transit
    ("ONAY", 0.95, "Onay Card"),
    ("ОНАЙ", 0.95, "Onay Card"),
    ("МЕТРО\\s*АЛМАТЫ", 0.95, "Almaty Metro"),
    ("ALMATY\\s*METRO", 0.95, "Almaty Metro"),
    # Car services and fuel
    ("АВТОМОЙКА", 0.85, None),
    ("CAR\\s*WASH", 0.85, None),
    ("АЗС", 0.90, None),
    ("PETROL", 0.85, None),
    ("ГАЗПРОМНЕФТЬ", 0.95, "Gazpromneft"),
    ("KMG", 0.90, "KMG"),
    ("КАЗМУНАЙГАЗ", 0.90, "KMG"),
    ("HELIOS", 0.90, "Helios"),
    ("SHELL", 0.95, "Shell"),
    # Parking
    ("PARKING", 0.85, None),
    ("ПАРКОВКА", 0.85, None),
]

UTILITIES_PATTERNS = [
    # Energy
    ("АЛМАТЫЭНЕРГО", 0.98, "AlmatyEnergo"),
    ("ALMATY.*ENERG", 0.98, "AlmatyEnergo"),
    ("АСТАНАЭНЕРГО", 0.98, "AstanaEnergo"),
    ("КАРАГАНДА.*ЭНЕРГО", 0.95, None),
    ("KEGOC", 0.95, "KEGOC"),
    # Gas and water
    ("КАЗТРАНСГАЗ", 0.95, "KazTransGas"),
    ("АЛМАТЫГАЗ", 0.95, "AlmatyGas"),
    ("АЛМАТЫ.*СУ", 0.95, "AlmatySu"),
    ("ASTANA.*SU", 0.95, "AstanaSu"),
    ("ВОДОКАНАЛ", 0.90, None),
    # Telecom
    ("КАЗАХТЕЛЕКОМ", 0.98, "Kazakhtelecom"),
    ("KAZAKHTELECOM", 0.98, "Kazakhtelecom"),
    ("BEELINE", 0.95, "Beeline"),
    ("БИЛАЙН", 0.95, "Beeline"),
    ("KCELL", 0.95, "Kcell"),
    ("ACTIV", 0.95, "Activ"),
    ("АКТИВ", 0.95, "Activ"),
    ("TELE2", 0.95, "Tele2"),
    ("ТЕЛЕ2", 0.95, "Tele2"),
    ("ALTEL", 0.95, "Altel"),
    ("АЛТЕЛ", 0.95, "Altel"),
    # Internet
    ("ALMA\\s*TV", 0.90, "Alma TV"),
    ("ID\\s*NET", 0.90, "ID Net"),
    # Housing
    ("КСК", 0.80, None),
    ("ОСИ", 0.80, None),
    ("КОММ.*УСЛУГ", 0.85, None),
]

ENTERTAINMENT_PATTERNS = [
    # Cinemas
    ("KINOPARK", 0.95, "Kinopark"),
    ("КИНОПАРК", 0.95, "Kinopark"),
    ("CHAPLIN", 0.95, "Chaplin Cinemas"),
    ("ЧАПЛИН", 0.95, "Chaplin Cinemas"),
    ("CINEMAX", 0.95, "Cinemax"),
    ("ARMAN", 0.85, "Arman Cinema"),
    # Streaming
    ("NETFLIX", 0.98, "Netflix"),
    ("SPOTIFY", 0.98, "Spotify"),
    ("APPLE\\s*MUSIC", 0.98, "Apple Music"),
    ("YOUTUBE\\s*PREMIUM", 0.98, "YouTube Premium"),
    ("IVI", 0.95, "IVI"),
    ("КИНОПОИСК", 0.95, "Kinopoisk"),
    ("KINOPOISK", 0.95, "Kinopoisk"),
    ("OKKO", 0.95, "Okko"),
    ("MEGOGO", 0.95, "Megogo"),
    ("YANDEX.*PLUS", 0.95, "Yandex Plus"),
    ("ЯНДЕКС.*ПЛЮС", 0.95, "Yandex Plus"),
    # Gaming
    ("STEAM", 0.95, "Steam"),
    ("PLAYSTATION", 0.95, "PlayStation"),
    ("XBOX", 0.95, "Xbox"),
    ("NINTENDO", 0.95, "Nintendo"),
    ("EPIC\\s*GAMES", 0.95, "Epic Games"),
    # Amusement
    ("HAPPY.*LAND", 0.85, "Happylon"),
    ("БОУЛИНГ", 0.85, None),
    ("BOWLING", 0.85, None),
    ("КАТОК", 0.85, None),
    ("АКВАПАРК", 0.90, None),
]

SHOPPING_PATTERNS = [
    # Kaspi marketplace
    ("KASPI\\s*MAGAZIN", 0.95, "Kaspi Magazin"),
    ("КАСПИ\\s*МАГАЗИН", 0.95, "Kaspi Magazin"),
    ("KASPI\\s*SHOP", 0.95, "Kaspi Shop"),
    # Electronics
    ("SULPAK", 0.95, "Sulpak"),
    ("СУЛПАК", 0.95, "Sulpak"),
    ("TECHNODOM", 0.95, "Technodom"),
    ("ТЕХНОДОМ", 0.95, "Technodom"),
    ("MECHTA", 0.95, "Mechta"),
    ("МЕЧТА", 0.95, "Mechta"),
    ("EVRIKA", 0.90, "Evrika"),
    ("ЭВРИКА", 0.90, "Evrika"),
    ("ALSER", 0.90, "Alser"),
    ("АЛСЕР", 0.90, "Alser"),
    # Marketplaces
    ("WILDBERRIES", 0.98, "Wildberries"),
    ("OZON", 0.98, "Ozon"),
    ("ALIEXPRESS", 0.95, "AliExpress"),
    ("AMAZON", 0.98, "Amazon"),
    ("FLIP\\.KZ", 0.90, "Flip.kz"),
    # Fashion
    ("ZARA", 0.95, "Zara"),
    ("H&M", 0.95, "H&M"),
    ("MANGO", 0.90, "Mango"),
    ("BERSHKA", 0.90, "Bershka"),
    ("PULL.*BEAR", 0.90, "Pull&Bear"),
    ("MASSIMO.*DUTTI", 0.90, "Massimo Dutti"),
    ("STRADIVARIUS", 0.90, "Stradivarius"),
    ("LC\\s*WAIKIKI", 0.90, "LC Waikiki"),
    ("COLIN", 0.85, "Colin's"),
    ("DEFACTO", 0.90, "DeFacto"),
    # Home goods
    ("IKEA", 0.95, "IKEA"),
    ("JYSK", 0.90, "JYSK"),
    ("HOFF", 0.90, "Hoff"),
    ("ЛЕРУА\\s*МЕРЛЕН", 0.95, "Leroy Merlin"),
    ("LEROY\\s*MERLIN", 0.95, "Leroy Merlin"),
    # Malls
    ("MEGA.*CENTER", 0.80, "Mega Center"),
    ("DOSTYK\\s*PLAZA", 0.80, "Dostyk Plaza"),
    ("ESENTAI", 0.80, "Esentai Mall"),
    ("KERUEN", 0.80, "Keruen City"),
]

HEALTHCARE_PATTERNS = [
    # Pharmacies
    ("EUROPHARMA", 0.95, "Europharma"),
    ("ЕВРОФАРМА", 0.95, "Europharma"),
    ("БИОСФЕРА", 0.95, "Biosfera"),
    ("BIOSFERA", 0.95, "Biosfera"),
    ("ДОБРАЯ\\s*АПТЕКА", 0.90, "Dobraya Apteka"),
    ("GIPPOKRAT", 0.90, "Gippokrat"),
    ("АПТЕКА", 0.85, None),
    ("PHARMACY", 0.85, None),
    ("PHARMA", 0.80, None),
    # Clinics
    ("INVIVO", 0.95, "Invivo"),
    ("INTERTEACH", 0.95, "Interteach"),
    ("ОЛИМП", 0.90, "Olymp Clinic"),
    ("OLYMPIC", 0.90, None),
    ("CLINIC", 0.75, None),
    ("КЛИНИКА", 0.80, None),
    ("MEDICAL", 0.75, None),
    ("МЕДИЦИН", 0.80, None),
    ("СТОМАТОЛОГ", 0.85, None),
    ("DENTAL", 0.85, None),
    ("DENT", 0.80, None),
    # Labs
    ("KDLOLYMP", 0.95, "KDL Olymp"),
    ("SYNEVO", 0.95, "Synevo"),
    ("ЛАБОРАТОР", 0.85, None),
]

TRANSFER_PATTERNS = [
    # Bank transfers
    ("KASPI.*PEREVOD", 0.98, "Kaspi Transfer"),
    ("КАСПИ.*ПЕРЕВОД", 0.98, "Kaspi Transfer"),
    ("KASPI.*TRANSFER", 0.98, "Kaspi Transfer"),
    ("ПЕРЕВОД.*KASPI", 0.95, "Kaspi Transfer"),
    ("ПЕРЕВОД.*КАРТ", 0.90, None),
    ("HALYK.*PEREVOD", 0.95, "Halyk Transfer"),
    ("ХАЛЫК.*ПЕРЕВОД", 0.95, "Halyk Transfer"),
    ("JUSAN.*PEREVOD", 0.95, "Jusan Transfer"),
    ("FORTE.*PEREVOD", 0.95, "Forte Transfer"),
    ("ПЕРЕВОД", 0.80, None),
    ("TRANSFER", 0.75, None),
    # International
    ("WESTERN\\s*UNION", 0.95, "Western Union"),
    ("MONEY\\s*GRAM", 0.95, "MoneyGram"),
    ("CONTACT", 0.80, "Contact"),
    ("ЗОЛОТАЯ\\s*КОРОНА", 0.95, "Zolotaya Korona"),
    ("GOLDEN\\s*CROWN", 0.95, "Golden Crown"),
]

# Category -> pattern table, in lookup order
PATTERN_TABLES = [
    ("groceries", GROCERY_PATTERNS),
    ("food_delivery", FOOD_DELIVERY_PATTERNS),
    ("transport", TRANSPORT_PATTERNS),
    ("utilities", UTILITIES_PATTERNS),
    ("entertainment", ENTERTAINMENT_PATTERNS),
    ("shopping", SHOPPING_PATTERNS),
    ("healthcare", HEALTHCARE_PATTERNS),
    ("transfer", TRANSFER_PATTERNS),
]


def build_patterns() -> list[MerchantPattern]:
    return [
        MerchantPattern(pattern, category_id, confidence, name)
        for category_id, table in PATTERN_TABLES
        for pattern, confidence, name in table
    ]


class MerchantDatabase:
    """Lookup of known merchants for the rule-based tier."""

    def __init__(self, patterns: Optional[list[MerchantPattern]] = None):
        self.patterns = patterns if patterns is not None else build_patterns()

    def find_pattern(self, description: str) -> Optional[MerchantPattern]:
        trimmed = description.strip() if description else ""
        if not trimmed:
            return None
        for pattern in self.patterns:
            if pattern.matches(trimmed):
                return pattern
        return None

    def find_match(self, description: str, transaction_id: str = "") -> Optional[CategorizationResult]:
        """Find the first merchant pattern contained in the description.

        Args:
            description: Transaction description or merchant name
            transaction_id: Id to carry on the result

        Returns:
            MERCHANT_DATABASE result, or None when no pattern matches
        """
        pattern = self.find_pattern(description)
        if pattern is None:
            return None
        return CategorizationResult(
            transaction_id=transaction_id,
            category_id=pattern.category_id,
            confidence=pattern.confidence,
            source=CategorizationSource.MERCHANT_DATABASE,
        )

    def pattern_count_by_category(self) -> dict[str, int]:
        return dict(Counter(pattern.category_id for pattern in self.patterns))
