"""
Import orchestration.

Drives one import session through
Idle -> Validating -> Deduplicating -> Categorizing -> AwaitingConfirmation
-> Saving -> Completed, with Cancelled and Failed as exits. Progress is
published on a latest-value stream. One session at a time; starting a new
import replaces the current preview.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from ..categorization import CategorizationEngine
from ..clock import Clock, SystemClock
from ..extractors import ParserRouter
from ..matching import FuzzyDuplicateDetector
from ..schemas import (
    IDLE,
    UNIQUE,
    AwaitingConfirmation,
    Cancelled,
    Categorizing,
    Completed,
    Deduplicating,
    DetectingFormat,
    DocumentType,
    Failed,
    ImportConfirmationResult,
    ImportedTransaction,
    ImportPreviewResult,
    ImportProgress,
    ImportResult,
    NeedsUserInput,
    ParseError,
    ParseSuccess,
    Parsing,
    ReviewableTransaction,
    Saving,
    Transaction,
    TransactionForCategorization,
    TransactionType,
    Validating,
)
from ..state_store.protocols import CategoryResolver, TransactionStore
from ..validation import ImportValidator
from .progress import ProgressStream

logger = logging.getLogger(__name__)

# Confidence given to rows that parsed but need user input
NEEDS_INPUT_CONFIDENCE = 0.5


class ImportException(Exception):
    """Raised when an import cannot proceed."""

    def __init__(self, message: str, document_type: Optional[DocumentType] = None):
        super().__init__(message)
        self.message = message
        self.document_type = document_type


class ImportCancelledException(ImportException):
    def __init__(self) -> None:
        super().__init__("Import cancelled")


class ImportOrchestrator:
    """
    Coordinates validation, duplicate detection, categorization and saving.

    Args:
        transaction_store: Source of existing transactions and sink for saves
        engine: Categorization cascade (rule-based only when omitted)
        validator: Advisory validation
        duplicate_detector: Fuzzy duplicate classification
        category_resolver: Guarantees categories exist before saving
        router: Format detection and parsing for ``import_file``
        clock: Time source for timestamps
    """

    def __init__(
        self,
        transaction_store: TransactionStore,
        engine: Optional[CategorizationEngine] = None,
        validator: Optional[ImportValidator] = None,
        duplicate_detector: Optional[FuzzyDuplicateDetector] = None,
        category_resolver: Optional[CategoryResolver] = None,
        router: Optional[ParserRouter] = None,
        clock: Optional[Clock] = None,
    ):
        self.transaction_store = transaction_store
        self.clock = clock or SystemClock()
        self.engine = engine or CategorizationEngine(category_resolver=category_resolver)
        self.validator = validator or ImportValidator(clock=self.clock)
        self.duplicate_detector = duplicate_detector or FuzzyDuplicateDetector()
        self.category_resolver = category_resolver
        self.router = router or ParserRouter()
        self.progress: ProgressStream[ImportProgress] = ProgressStream(IDLE)
        self._preview: Optional[ImportPreviewResult] = None
        self._cancelled = False

    @property
    def preview(self) -> Optional[ImportPreviewResult]:
        return self._preview

    def _emit(self, state: ImportProgress) -> None:
        if type(state) is not type(self.progress.value):
            logger.info(f"Import state: {self.progress.value.name} -> {state.name}")
        self.progress.set(state)

    def _check_cancelled(self) -> None:
        if self._cancelled:
            self._preview = None
            self._emit(Cancelled())
            raise ImportCancelledException()

    # Session pipeline

    async def import_file(
        self,
        filename: str,
        content: bytes,
        account_id: str,
        extracted_text: Optional[str] = None,
    ) -> ImportPreviewResult:
        """Detect, parse and preview a statement file."""
        self._cancelled = False
        self._emit(DetectingFormat(filename=filename, file_size=len(content)))
        document_type = self.router.detector.detect(filename, content)
        logger.info(f"Detected {document_type.kind} for {filename}")

        self._emit(Parsing(document_type=document_type))
        result = self.router.parse_as(document_type, content, extracted_text)
        if isinstance(result, ParseError):
            self._emit(Failed(message=result.message, recoverable=False))
            raise ImportException(result.message, result.document_type or document_type)

        self._check_cancelled()
        return await self.start_import(result, account_id)

    async def start_import(self, parse_result: ImportResult, account_id: str) -> ImportPreviewResult:
        """
        Validate, deduplicate and categorize a parse result into a preview.

        Args:
            parse_result: Output of a parser
            account_id: Target account, used for duplicate detection

        Returns:
            Preview held as the current session

        Raises:
            ImportException: The parse result is an error
            ImportCancelledException: cancel_import was called mid-pipeline
        """
        if isinstance(parse_result, ParseError):
            logger.warning(f"Import rejected: {parse_result.message}")
            raise ImportException(parse_result.message, parse_result.document_type)

        if isinstance(parse_result, NeedsUserInput):
            logger.info(f"Parse needs user input: {'; '.join(parse_result.issues)}")
            parse_result = ParseSuccess(
                transactions=parse_result.transactions,
                document_type=parse_result.document_type,
                total_confidence=NEEDS_INPUT_CONFIDENCE,
            )

        self._cancelled = False
        self._preview = None
        transactions = parse_result.transactions
        total = len(transactions)

        self._emit(Validating(total=total))
        validation = self.validator.validate(transactions)
        self._emit(Validating(total=total, processed=total))
        self._check_cancelled()

        self._emit(Deduplicating(total=total))
        existing = self.transaction_store.get_transactions(account_id)
        statuses = self.duplicate_detector.check_duplicates(transactions, existing)
        duplicate_count = sum(1 for s in statuses.values() if s.is_duplicate)
        self._emit(Deduplicating(total=total, processed=total, duplicates_found=duplicate_count))
        self._check_cancelled()

        def report(done: int, tier: str) -> None:
            if not self._cancelled:
                self._emit(Categorizing(total=total, categorized=done, current_tier=tier))

        self._emit(Categorizing(total=total))
        batch = await self.engine.categorize(
            [self._for_categorization(index, tx) for index, tx in enumerate(transactions)],
            on_progress=report,
            should_cancel=lambda: self._cancelled,
        )
        self._check_cancelled()

        categories = batch.category_map()
        rows = []
        for index, transaction in enumerate(transactions):
            row_id = self._row_id(index)
            if transaction.category is None and row_id in categories:
                transaction = transaction.with_category(categories[row_id])
            rows.append(
                ReviewableTransaction.create(
                    index,
                    transaction,
                    statuses.get(index, UNIQUE),
                    batch.result_for(row_id),
                )
            )

        preview = ImportPreviewResult(
            transactions=rows,
            document_type=parse_result.document_type,
            duplicate_count=duplicate_count,
            validation_warnings=validation.warnings,
        )
        self._preview = preview
        self._emit(AwaitingConfirmation(result=preview))
        logger.info(
            f"Preview ready: {total} rows, {duplicate_count} duplicates, "
            f"{validation.warning_count} warnings"
        )
        return preview

    @staticmethod
    def _row_id(index: int) -> str:
        return f"import-{index}"

    def _for_categorization(self, index: int, transaction: ImportedTransaction) -> TransactionForCategorization:
        return TransactionForCategorization(
            id=self._row_id(index),
            description=transaction.description or transaction.merchant or "",
            amount=transaction.amount,
        )

    async def confirm_import(
        self,
        account_id: str,
        selected_indices: Optional[set[int]] = None,
        category_overrides: Optional[dict[int, str]] = None,
    ) -> ImportConfirmationResult:
        """
        Persist the selected rows of the current preview.

        Args:
            account_id: Account the transactions are saved to
            selected_indices: Rows to save; the preview's selection when omitted
            category_overrides: Row index -> category id, taking precedence
                over the preview's overrides and the engine's categories

        Raises:
            ImportException: No import in progress, or a save failed
            ImportCancelledException: cancel_import was called between saves
        """
        preview = self._preview
        if preview is None:
            raise ImportException("No import in progress")

        self._cancelled = False
        selected = preview.selected_indices if selected_indices is None else set(selected_indices)
        overrides = category_overrides or {}
        rows = [row for row in preview.transactions if row.index in selected]

        now = self.clock.now()
        to_save = []
        for row in rows:
            category_id = overrides.get(row.index) or row.effective_category
            if category_id and self.category_resolver is not None:
                category_id = self.category_resolver.ensure_exists(category_id)
            imported = row.transaction
            to_save.append(
                Transaction(
                    id=str(uuid.uuid4()),
                    account_id=account_id,
                    amount=imported.amount,
                    type=TransactionType.INCOME if imported.amount >= 0 else TransactionType.EXPENSE,
                    date=imported.date,
                    description=imported.description,
                    merchant=imported.merchant,
                    category_id=category_id,
                    created_at=now,
                    updated_at=now,
                )
            )

        self._emit(Saving(total=len(to_save)))
        for saved, transaction in enumerate(to_save):
            if self._cancelled:
                logger.info(f"Import cancelled after saving {saved}/{len(to_save)}")
            self._check_cancelled()
            try:
                self.transaction_store.save_transaction(transaction)
            except Exception as e:
                logger.error(f"Failed to save transaction {saved + 1}/{len(to_save)}: {e}")
                self._emit(Failed(message=str(e) or type(e).__name__, recoverable=True, partial_result=preview))
                raise ImportException(f"Failed to save transactions: {e}", preview.document_type) from e
            self._emit(Saving(total=len(to_save), saved=saved + 1))

        skipped = preview.total_count - len(rows)
        self._emit(
            Completed(saved_count=len(to_save), skipped_count=skipped, duplicate_count=preview.duplicate_count)
        )
        self._preview = None
        logger.info(f"Import complete: saved={len(to_save)} skipped={skipped}")
        return ImportConfirmationResult(saved_count=len(to_save), skipped_count=skipped)

    def cancel_import(self) -> None:
        """Discard the session; safe to call from another task mid-pipeline."""
        self._cancelled = True
        self._preview = None
        self._emit(Cancelled())

    def reset(self) -> None:
        self._cancelled = False
        self._preview = None
        self._emit(IDLE)

    # Selection operations on the current preview

    def _update_preview(self, preview: ImportPreviewResult) -> ImportPreviewResult:
        self._preview = preview
        self._emit(AwaitingConfirmation(result=preview))
        return preview

    def _require_preview(self) -> ImportPreviewResult:
        if self._preview is None:
            raise ImportException("No import in progress")
        return self._preview

    def toggle_selection(self, index: int) -> ImportPreviewResult:
        return self._update_preview(self._require_preview().toggle(index))

    def select_all(self) -> ImportPreviewResult:
        return self._update_preview(self._require_preview().select_all())

    def deselect_duplicates(self) -> ImportPreviewResult:
        return self._update_preview(self._require_preview().deselect_duplicates())

    def set_category_override(self, index: int, category_id: Optional[str]) -> ImportPreviewResult:
        return self._update_preview(self._require_preview().with_category_override(index, category_id))
