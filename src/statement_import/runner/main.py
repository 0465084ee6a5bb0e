"""
CLI main entry point.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from ..categorization import AICostTracker, CategorizationEngine, CloudCategorizer
from ..config import Config, create_default_config, load_config
from ..extractors import ParserRouter
from ..matching import FuzzyDuplicateDetector
from ..providers import LLMProviderFactory, ModelRegistry, create_provider_factory
from ..schemas import ImportPreviewResult, UnknownDocument
from ..services import ImportException, ImportOrchestrator, LearnFromCorrectionUseCase, LearningError
from ..state_store import StateStore
from ..validation import ImportValidator

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="statement-import",
        description="Import bank statements with duplicate detection and tiered categorization",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # detect command
    detect_parser = subparsers.add_parser("detect", help="Detect the format of a statement file")
    detect_parser.add_argument("file", type=Path, help="Statement file")

    # preview and import share their inputs
    for name, help_text in (
        ("preview", "Parse, deduplicate and categorize without saving"),
        ("import", "Import a statement into an account"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("file", type=Path, help="Statement file")
        sub.add_argument(
            "--account",
            type=str,
            default="default",
            help="Target account id (default: default)",
        )
        sub.add_argument(
            "--text-file",
            type=Path,
            help="Extracted text for PDF or image statements",
        )
        sub.add_argument(
            "--json",
            action="store_true",
            help="Print the preview as JSON",
        )
        if name == "import":
            sub.add_argument(
                "--dry-run",
                action="store_true",
                help="Show what would be imported without saving",
            )
            sub.add_argument(
                "--include-duplicates",
                action="store_true",
                help="Also save rows flagged as duplicates",
            )

    # learn command
    learn_parser = subparsers.add_parser("learn", help="Record a category correction")
    learn_parser.add_argument("--merchant", type=str, required=True, help="Merchant or description")
    learn_parser.add_argument("--category", type=str, required=True, help="Corrected category id")
    learn_parser.add_argument("--original", type=str, help="Category before the correction")
    learn_parser.add_argument(
        "--transaction",
        type=str,
        default="manual",
        help="Corrected transaction id (default: manual)",
    )

    # merchants command
    subparsers.add_parser("merchants", help="List learned merchant mappings")

    # models command
    subparsers.add_parser("models", help="List on-device models and their status")

    # init-config command
    subparsers.add_parser("init-config", help="Write a default config file")

    return parser


def build_orchestrator(config: Config, store: StateStore, factory: LLMProviderFactory) -> ImportOrchestrator:
    """Wire the import pipeline from configuration."""
    cost_tracker = AICostTracker(
        daily_budget=config.budget.daily_usd,
        monthly_budget=config.budget.monthly_usd,
    )
    cloud = CloudCategorizer(
        factory,
        config.categorization.categories,
        cost_tracker=cost_tracker,
        batch_size=config.categorization.cloud_batch_size,
        max_concurrent=config.providers.max_concurrent,
    )
    engine = CategorizationEngine(
        learned_store=store,
        category_resolver=store,
        factory=factory,
        cloud=cloud,
        config=config.categorization,
    )
    return ImportOrchestrator(
        transaction_store=store,
        engine=engine,
        validator=ImportValidator(large_amount_threshold=config.validation.large_amount_threshold_minor),
        duplicate_detector=FuzzyDuplicateDetector(
            similarity_threshold=config.duplicates.similarity_threshold,
            date_tolerance_days=config.duplicates.date_tolerance_days,
        ),
        category_resolver=store,
    )


def _format_amount(minor: int) -> str:
    sign = "-" if minor < 0 else ""
    return f"{sign}{abs(minor) // 100:,}.{abs(minor) % 100:02d}"


def print_preview(preview: ImportPreviewResult) -> None:
    print(f"\n📄 {preview.document_type.kind.upper()}: {preview.total_count} transaction(s)")
    print("=" * 72)
    for row in preview.transactions:
        tx = row.transaction
        mark = "x" if row.is_selected else " "
        flag = " [dup]" if row.duplicate_status.is_duplicate else ""
        category = row.effective_category or "-"
        print(
            f"  [{mark}] {row.index:>3} {tx.date.isoformat()} {_format_amount(tx.amount):>14} "
            f"{category:<14} {tx.description[:30]}{flag}"
        )
    print()
    print(f"  Selected:   {preview.selected_count}")
    print(f"  Duplicates: {preview.duplicate_count}")
    print(f"  Income:     {_format_amount(preview.total_income)}")
    print(f"  Expenses:   {_format_amount(preview.total_expenses)}")
    if preview.has_warnings:
        print("\n⚠️  Warnings:")
        for warning in preview.validation_warnings:
            print(f"   - {warning}")


def cmd_detect(file: Path) -> int:
    """Detect and print a statement's format."""
    content = file.read_bytes()
    document_type = ParserRouter().detector.detect(file.name, content)
    if isinstance(document_type, UnknownDocument):
        print(f"❌ Unsupported format: {file.name}")
        return 1
    print(json.dumps(document_type.to_dict(), indent=2))
    return 0


async def _run_import(
    config: Config,
    file: Path,
    account: str,
    text_file: Path | None,
    as_json: bool,
    save: bool,
    include_duplicates: bool = False,
) -> int:
    store = StateStore(config.state_db_path)
    factory = create_provider_factory(config)
    orchestrator = build_orchestrator(config, store, factory)
    extracted_text = text_file.read_text(encoding="utf-8") if text_file else None

    try:
        preview = await orchestrator.import_file(file.name, file.read_bytes(), account, extracted_text)

        if as_json:
            print(json.dumps(preview.to_dict(), indent=2, ensure_ascii=False))
        else:
            print_preview(preview)

        if not save:
            orchestrator.reset()
            return 0

        if include_duplicates:
            orchestrator.select_all()
        result = await orchestrator.confirm_import(account)
        print(f"\n✓ Saved {result.saved_count} transaction(s), skipped {result.skipped_count}")
        return 0
    except ImportException as e:
        print(f"❌ Import failed: {e.message}")
        return 1
    finally:
        await factory.aclose()


def cmd_learn(config: Config, merchant: str, category: str, original: str | None, transaction: str) -> int:
    """Record a correction and report how the learned mapping changed."""
    store = StateStore(config.state_db_path)
    use_case = LearnFromCorrectionUseCase(store, store, config=config.learning)
    try:
        result = use_case.execute(transaction, original, category, merchant)
    except LearningError as e:
        print(f"❌ {e}")
        return 1
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_merchants(config: Config) -> int:
    """List learned merchant mappings."""
    store = StateStore(config.state_db_path)
    merchants = store.list_learned_merchants()

    print("\n🧠 Learned Merchants")
    print("=" * 60)
    if not merchants:
        print("  (none)")
    for merchant in merchants:
        print(
            f"  {merchant.merchant_pattern:<28} -> {merchant.category_id:<14} "
            f"{merchant.confidence:.2f} ({merchant.sample_count} samples)"
        )
    print()
    return 0


async def cmd_models(config: Config) -> int:
    """List catalog models and what the local engine has installed."""
    factory = create_provider_factory(config)
    provider = factory.on_device_provider
    if provider is None:
        print("On-device inference disabled (set providers.ollama_model)")
        return 0

    registry: ModelRegistry = provider.registry
    try:
        await registry.refresh()
        installed = {model.id: model for model in registry.installed_models}
        print("\n📦 On-device Models")
        print("=" * 60)
        for spec in registry.catalog:
            model = installed.get(spec.id)
            status = model.status.value if model else "not installed"
            selected = " *" if model and model.is_selected else ""
            print(f"  {spec.id:<10} {spec.engine_model:<16} {status}{selected}")
        print()
        return 0
    finally:
        await factory.aclose()


def cmd_init_config(config_path: Path) -> int:
    if config_path.exists():
        print(f"❌ Config already exists: {config_path}")
        return 1
    create_default_config(config_path)
    print(f"✓ Wrote {config_path}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config)

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"❌ Config: {error}")
        return 1

    # Route to command
    if parsed.command == "detect":
        return cmd_detect(parsed.file)
    elif parsed.command == "preview":
        return asyncio.run(
            _run_import(config, parsed.file, parsed.account, parsed.text_file, parsed.json, save=False)
        )
    elif parsed.command == "import":
        return asyncio.run(
            _run_import(
                config,
                parsed.file,
                parsed.account,
                parsed.text_file,
                parsed.json,
                save=not parsed.dry_run,
                include_duplicates=parsed.include_duplicates,
            )
        )
    elif parsed.command == "learn":
        return cmd_learn(config, parsed.merchant, parsed.category, parsed.original, parsed.transaction)
    elif parsed.command == "merchants":
        return cmd_merchants(config)
    elif parsed.command == "models":
        return asyncio.run(cmd_models(config))
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
