"""
Configuration management (SSOT).

This module defines ALL configuration for the statement import pipeline.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- Every threshold the pipeline uses has a default here and nowhere else
- API keys are only read from config or environment, never logged
- The on-device tier is enabled only when an Ollama model is configured
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_CATEGORIES = [
    "groceries",
    "food_delivery",
    "restaurants",
    "transport",
    "utilities",
    "entertainment",
    "shopping",
    "healthcare",
    "education",
    "travel",
    "transfer",
    "salary",
    "other",
]


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class DuplicateConfig:
    """Fuzzy duplicate detection settings."""

    # Minimum description similarity for a probable duplicate
    similarity_threshold: float = 0.5
    # Maximum date distance for a pair to be compared (days)
    date_tolerance_days: int = 1


@dataclass
class ValidationConfig:
    """Import validation settings."""

    # Absolute amount above which a row is flagged (minor units)
    large_amount_threshold_minor: int = 1_000_000_00


@dataclass
class CategorizationConfig:
    """Categorization cascade settings."""

    # Cloud tier 2 results below this are left for tier 3
    tier2_threshold: float = 0.70
    # On-device results below this are discarded
    on_device_threshold: float = 0.70
    on_device_batch_size: int = 5
    cloud_batch_size: int = 10
    fallback_category: str = "other"
    categories: list[str] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))


@dataclass
class LearningConfig:
    """Learning-from-corrections settings."""

    # Corrections needed before a merchant mapping is created
    min_corrections_threshold: int = 1
    initial_confidence: float = 0.90
    max_confidence: float = 0.98
    confidence_boost: float = 0.02


@dataclass
class ProvidersConfig:
    """Inference provider configuration.

    SSOT for provider settings:
    - Cloud providers are configured only when an API key is present
    - ollama_model enables the on-device tier (local Ollama server)
    - max_concurrent bounds parallel cloud batches
    """

    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-3-5-haiku-20241022"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    # Request timeout (seconds)
    timeout_seconds: int = 30
    # Local Ollama server used as the on-device inference engine
    ollama_url: str = "http://localhost:11434"
    ollama_model: str | None = None
    # Maximum concurrent cloud requests
    max_concurrent: int = 2

    @property
    def on_device_enabled(self) -> bool:
        return bool(self.ollama_model)


@dataclass
class BudgetConfig:
    """Cloud spending limits (USD)."""

    daily_usd: float = 0.10
    monthly_usd: float = 2.00


@dataclass
class Config:
    """Application configuration (SSOT)."""

    duplicates: DuplicateConfig = field(default_factory=DuplicateConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    categorization: CategorizationConfig = field(default_factory=CategorizationConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    state_db_path: Path = field(default_factory=lambda: Path("data/state.db"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        for name, value in (
            ("duplicates.similarity_threshold", self.duplicates.similarity_threshold),
            ("categorization.tier2_threshold", self.categorization.tier2_threshold),
            ("categorization.on_device_threshold", self.categorization.on_device_threshold),
            ("learning.initial_confidence", self.learning.initial_confidence),
            ("learning.max_confidence", self.learning.max_confidence),
        ):
            if not 0.0 <= value <= 1.0:
                errors.append(f"{name} must be between 0 and 1")

        if self.duplicates.date_tolerance_days < 0:
            errors.append("duplicates.date_tolerance_days must be >= 0")
        if self.learning.initial_confidence > self.learning.max_confidence:
            errors.append("learning.initial_confidence must be <= learning.max_confidence")
        if self.learning.min_corrections_threshold < 1:
            errors.append("learning.min_corrections_threshold must be >= 1")
        if self.categorization.fallback_category not in self.categorization.categories:
            errors.append("categorization.fallback_category must be one of categories")
        if self.categorization.cloud_batch_size < 1 or self.categorization.on_device_batch_size < 1:
            errors.append("categorization batch sizes must be >= 1")
        if self.providers.max_concurrent < 1:
            errors.append("providers.max_concurrent must be >= 1")

        return errors


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name, "")
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - OPENAI_API_KEY
    - ANTHROPIC_API_KEY
    - OLLAMA_URL
    - OLLAMA_MODEL (enables the on-device tier)
    - STATEMENT_IMPORT_TIMEOUT (request timeout in seconds)
    - STATEMENT_IMPORT_DUPLICATE_THRESHOLD
    - STATEMENT_IMPORT_TIER2_THRESHOLD
    - STATEMENT_IMPORT_DAILY_BUDGET
    - STATEMENT_IMPORT_DB

    Raises:
        ConfigValidationError: The file is not valid YAML or not a mapping
    """
    if config_path.exists():
        with open(config_path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigValidationError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigValidationError(f"{config_path} must contain a mapping")
    else:
        data = {}

    dup_data = data.get("duplicates", {})
    duplicates = DuplicateConfig(
        similarity_threshold=_env_float(
            "STATEMENT_IMPORT_DUPLICATE_THRESHOLD", dup_data.get("similarity_threshold", 0.5)
        ),
        date_tolerance_days=dup_data.get("date_tolerance_days", 1),
    )

    validation_data = data.get("validation", {})
    validation = ValidationConfig(
        large_amount_threshold_minor=validation_data.get(
            "large_amount_threshold_minor", 1_000_000_00
        ),
    )

    cat_data = data.get("categorization", {})
    categorization = CategorizationConfig(
        tier2_threshold=_env_float(
            "STATEMENT_IMPORT_TIER2_THRESHOLD", cat_data.get("tier2_threshold", 0.70)
        ),
        on_device_threshold=cat_data.get("on_device_threshold", 0.70),
        on_device_batch_size=cat_data.get("on_device_batch_size", 5),
        cloud_batch_size=cat_data.get("cloud_batch_size", 10),
        fallback_category=cat_data.get("fallback_category", "other"),
        categories=cat_data.get("categories") or list(DEFAULT_CATEGORIES),
    )

    learning_data = data.get("learning", {})
    learning = LearningConfig(
        min_corrections_threshold=learning_data.get("min_corrections_threshold", 1),
        initial_confidence=learning_data.get("initial_confidence", 0.90),
        max_confidence=learning_data.get("max_confidence", 0.98),
        confidence_boost=learning_data.get("confidence_boost", 0.02),
    )

    providers_data = data.get("providers", {})
    providers = ProvidersConfig(
        openai_api_key=os.environ.get("OPENAI_API_KEY", providers_data.get("openai_api_key")),
        openai_model=providers_data.get("openai_model", "gpt-4o-mini"),
        openai_base_url=providers_data.get("openai_base_url", "https://api.openai.com/v1"),
        anthropic_api_key=os.environ.get(
            "ANTHROPIC_API_KEY", providers_data.get("anthropic_api_key")
        ),
        anthropic_model=providers_data.get("anthropic_model", "claude-3-5-haiku-20241022"),
        anthropic_base_url=providers_data.get(
            "anthropic_base_url", "https://api.anthropic.com/v1"
        ),
        timeout_seconds=int(
            os.environ.get("STATEMENT_IMPORT_TIMEOUT", providers_data.get("timeout_seconds", 30))
        ),
        ollama_url=os.environ.get(
            "OLLAMA_URL", providers_data.get("ollama_url", "http://localhost:11434")
        ),
        ollama_model=os.environ.get("OLLAMA_MODEL", providers_data.get("ollama_model")),
        max_concurrent=providers_data.get("max_concurrent", 2),
    )

    budget_data = data.get("budget", {})
    budget = BudgetConfig(
        daily_usd=_env_float("STATEMENT_IMPORT_DAILY_BUDGET", budget_data.get("daily_usd", 0.10)),
        monthly_usd=budget_data.get("monthly_usd", 2.00),
    )

    state_db = os.environ.get("STATEMENT_IMPORT_DB", data.get("state_db_path", "data/state.db"))

    return Config(
        duplicates=duplicates,
        validation=validation,
        categorization=categorization,
        learning=learning,
        providers=providers,
        budget=budget,
        state_db_path=Path(state_db),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Statement Import Pipeline Configuration
#
# API keys may also be supplied via OPENAI_API_KEY / ANTHROPIC_API_KEY.
# Cloud tiers only ever receive anonymized descriptions.

duplicates:
  similarity_threshold: 0.5              # Probable duplicate above this similarity
  date_tolerance_days: 1                 # Compare only rows within this many days

validation:
  large_amount_threshold_minor: 100000000  # Flag amounts above this (minor units)

categorization:
  tier2_threshold: 0.70                  # Cloud tier 2 results below this go to tier 3
  on_device_threshold: 0.70              # Discard on-device results below this
  on_device_batch_size: 5
  cloud_batch_size: 10
  fallback_category: "other"

learning:
  min_corrections_threshold: 1           # Corrections before a merchant rule is created
  initial_confidence: 0.90
  max_confidence: 0.98
  confidence_boost: 0.02

providers:
  openai_api_key: null
  openai_model: "gpt-4o-mini"
  anthropic_api_key: null
  anthropic_model: "claude-3-5-haiku-20241022"
  timeout_seconds: 30
  ollama_url: "http://localhost:11434"   # Local inference server
  ollama_model: null                     # Set to enable the on-device tier
  max_concurrent: 2                      # Max concurrent cloud requests

budget:
  daily_usd: 0.10
  monthly_usd: 2.00

# State database path
state_db_path: "data/state.db"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
