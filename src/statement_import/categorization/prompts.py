"""Prompt templates for LLM-assisted categorization.

Cloud prompts only ever carry anonymized descriptions. Prompts are
versioned so responses can be traced to the template that produced them.
"""

from __future__ import annotations

from dataclasses import dataclass

# v1.1: numbered-list format for small on-device models
PROMPT_VERSION = "v1.1"

# Few-shot examples for English-language statements
ENGLISH_EXAMPLES = [
    ("STARBUCKS #1234", "restaurants"),
    ("AMAZON.COM PURCHASE", "shopping"),
    ("UBER TRIP", "transport"),
    ("NETFLIX SUBSCRIPTION", "entertainment"),
    ("WHOLE FOODS MARKET", "groceries"),
]

# Few-shot examples for Russian/Kazakh statements
RUSSIAN_EXAMPLES = [
    ("МАГНУМ ТОО", "groceries"),
    ("GLOVO ДОСТАВКА", "food_delivery"),
    ("KASPI GOLD ПЕРЕВОД", "transfer"),
    ("ЯНДЕКС ТАКСИ", "transport"),
    ("WOLT ORDER", "food_delivery"),
]

CATEGORY_DESCRIPTIONS = {
    "groceries": "supermarket, food shopping, продукты, магазин",
    "food_delivery": "Glovo, Wolt, Yandex Eats, delivery services",
    "restaurants": "restaurants, cafes, coffee shops, рестораны, кафе",
    "transport": "taxi, bus, metro, fuel, parking, такси, транспорт",
    "utilities": "electricity, water, internet, mobile bills, коммуналка",
    "entertainment": "cinema, streaming, games, subscriptions",
    "shopping": "online shopping, retail stores, electronics, clothes, покупки",
    "healthcare": "pharmacy, clinic, dentist, аптека",
    "education": "courses, tuition, books, обучение",
    "travel": "flights, hotels, booking, путешествия",
    "transfer": "money transfers, bank transfers, ATM, переводы",
    "salary": "salary, pension, dividends, income, зарплата",
    "other": "anything that fits no other category",
}


def examples_for_language(language: str) -> list[tuple[str, str]]:
    return RUSSIAN_EXAMPLES if language.lower() in ("ru", "kk") else ENGLISH_EXAMPLES


def category_hints(categories: list[str]) -> str:
    """One line per category, with a description where one is known."""
    if not categories:
        return "No categories available."
    lines = []
    for category in categories:
        hint = CATEGORY_DESCRIPTIONS.get(category)
        lines.append(f"- {category} ({hint})" if hint else f"- {category}")
    return "\n".join(lines)


@dataclass
class BatchCategoryPrompt:
    """Prompt template for cloud batch categorization.

    Attributes:
        version: Prompt version.
        system_prompt: System message setting LLM behavior.
        user_template: Template for user message with placeholders.
    """

    version: str = PROMPT_VERSION

    system_prompt: str = """You are a financial transaction categorizer for a personal finance app.
Categorize ALL transactions you are given.

Rules:
1. Only use categories from the provided list
2. Placeholders like [PERSON_NAME_1] or [PHONE_1] stand for redacted personal data
3. Return a confidence from 0.0 to 1.0 reflecting how certain you are
4. Return ONLY the JSON array, no additional text"""

    user_template: str = """## Example categorizations:
{examples}

## Transactions to categorize:
{transactions}

## Available categories:
{categories}

## Response format
Return a JSON array with: index, categoryId, confidence (0.0-1.0).

Example output:
[{{"index": 0, "categoryId": "groceries", "confidence": 0.95}}, {{"index": 1, "categoryId": "transport", "confidence": 0.88}}]

Return ONLY the JSON array, no additional text."""

    def format_user_message(
        self,
        descriptions: list[tuple[int, str]],
        categories: list[str],
        language: str = "en",
    ) -> str:
        """Format the user message for a batch.

        Args:
            descriptions: (index, anonymized description) pairs.
            categories: Allowed category ids.
            language: Statement language, selects the few-shot examples.

        Returns:
            Formatted user message.
        """
        examples = "\n".join(
            f'{i}. "{desc}" -> {cat}' for i, (desc, cat) in enumerate(examples_for_language(language)[:3])
        )
        transactions = "\n".join(f'{index}: "{desc}"' for index, desc in descriptions)
        return self.user_template.format(
            examples=examples,
            transactions=transactions,
            categories=category_hints(categories),
        )


@dataclass
class OnDeviceBatchPrompt:
    """Completion-style prompts for small local models.

    Small models follow a numbered list better than a JSON schema; the
    response parser accepts both.
    """

    version: str = PROMPT_VERSION

    system_prompt: str = (
        "You are a financial transaction categorizer. "
        "Categorize all transactions and return ONLY valid JSON array."
    )

    max_categories: int = 8

    def format_batch(self, descriptions: list[str], categories: list[str]) -> str:
        options = ", ".join(categories[: self.max_categories])
        numbered = "\n".join(f"{i + 1}. {desc}" for i, desc in enumerate(descriptions))
        return (
            f"Categorize each transaction ({options}):\n\n"
            f"{numbered}\n\n"
            "Categories (format: 1. category, 2. category, ...):"
        )

    def format_single(self, description: str, categories: list[str]) -> str:
        options = ", ".join(categories[: self.max_categories])
        return f'Transaction: "{description}"\nCategories: {options}\nCategory:'
