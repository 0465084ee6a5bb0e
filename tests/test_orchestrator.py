"""Tests for the import session orchestrator and its progress stream."""

import asyncio
import sqlite3
from datetime import date
from unittest.mock import patch

import pytest
from conftest import make_imported

from statement_import.categorization import CategorizationEngine
from statement_import.providers import CompletionResponse, LLMProvider, LLMProviderFactory, ModelConfig
from statement_import.schemas import (
    AwaitingConfirmation,
    Cancelled,
    Categorizing,
    Completed,
    CsvDocument,
    ExactDuplicate,
    Failed,
    NeedsUserInput,
    ParseError,
    Transaction,
    TransactionType,
)
from statement_import.services import (
    ImportCancelledException,
    ImportException,
    ImportOrchestrator,
    ProgressStream,
)
from statement_import.state_store import StateStore


def existing_magnum():
    return Transaction(
        id="existing-1",
        account_id="acc-1",
        amount=-370050,
        type=TransactionType.EXPENSE,
        date=date(2024, 1, 15),
        description="MAGNUM SUPERMARKET ALMATY",
    )


def record_states(orchestrator):
    states = []
    publish = orchestrator.progress.set

    def spy(value):
        states.append(value)
        publish(value)

    orchestrator.progress.set = spy
    return states


class TestProgressStream:
    """Latest-value semantics."""

    async def test_current_value_first(self):
        """Subscribers start with the current value."""
        stream = ProgressStream(0)
        updates = stream.subscribe()
        assert await updates.__anext__() == 0

    async def test_slow_subscriber_skips_to_latest(self):
        """Intermediate values are not queued."""
        stream = ProgressStream(0)
        updates = stream.subscribe()
        await updates.__anext__()
        stream.set(1)
        stream.set(2)
        assert await updates.__anext__() == 2
        assert stream.value == 2

    async def test_waits_for_next_value(self):
        """A caught-up subscriber waits for the next publish."""
        stream = ProgressStream("idle")
        updates = stream.subscribe()
        await updates.__anext__()

        pending = asyncio.create_task(updates.__anext__())
        await asyncio.sleep(0)
        assert not pending.done()
        stream.set("busy")
        assert await asyncio.wait_for(pending, timeout=1) == "busy"

    async def test_async_iteration(self):
        """Streams can be consumed with async for."""
        stream = ProgressStream("idle")
        seen = []
        async for value in stream:
            seen.append(value)
            if value == "done":
                break
            stream.set("done")
        assert seen == ["idle", "done"]


class TestImportPreview:
    """Validate, deduplicate, categorize."""

    @pytest.fixture
    def orchestrator(self, store, clock):
        return ImportOrchestrator(store, category_resolver=store, clock=clock)

    async def test_csv_preview(self, orchestrator, sample_csv):
        """Rows are categorized and selected for review."""
        preview = await orchestrator.import_file("statement.csv", sample_csv, "acc-1")

        assert preview.total_count == 3
        assert preview.selected_count == 3
        assert preview.duplicate_count == 0
        assert [row.transaction.category for row in preview.transactions] == ["groceries", "salary", "other"]
        assert preview.transactions[0].categorization.confidence == pytest.approx(0.95)
        assert preview.transactions[2].categorization is None
        assert preview.total_income == 25000000
        assert orchestrator.preview is preview
        assert orchestrator.progress.value == AwaitingConfirmation(result=preview)

    async def test_progress_sequence(self, orchestrator, sample_csv):
        """Progress moves through every pipeline stage in order."""
        states = record_states(orchestrator)

        await orchestrator.import_file("statement.csv", sample_csv, "acc-1")

        names = []
        for state in states:
            if not names or names[-1] != state.name:
                names.append(state.name)
        assert names == [
            "DetectingFormat",
            "Parsing",
            "Validating",
            "Deduplicating",
            "Categorizing",
            "AwaitingConfirmation",
        ]
        assert Categorizing(total=3, categorized=2, current_tier="1") in states

    async def test_duplicates_are_deselected(self, orchestrator, store, sample_csv):
        """Rows already in the account start unselected."""
        store.save_transaction(existing_magnum())

        preview = await orchestrator.import_file("statement.csv", sample_csv, "acc-1")

        assert preview.has_duplicates
        assert preview.duplicate_count == 1
        assert preview.transactions[0].duplicate_status == ExactDuplicate(matching_id="existing-1")
        assert preview.selected_indices == {1, 2}

    async def test_other_accounts_do_not_count(self, orchestrator, store, sample_csv):
        """Duplicate detection is scoped to the target account."""
        store.save_transaction(existing_magnum())
        preview = await orchestrator.import_file("statement.csv", sample_csv, "acc-2")
        assert preview.duplicate_count == 0

    async def test_parser_category_is_kept(self, orchestrator):
        """Categories set by the parser are not overwritten."""
        result = NeedsUserInput(
            transactions=[make_imported(category="restaurants")],
            document_type=CsvDocument(),
            issues=["Ambiguous date format"],
        )
        preview = await orchestrator.start_import(result, "acc-1")
        assert preview.transactions[0].transaction.category == "restaurants"

    async def test_parse_error(self, orchestrator):
        """Parse errors are rejected before any stage runs."""
        with pytest.raises(ImportException) as exc_info:
            await orchestrator.start_import(ParseError("Empty file"), "acc-1")
        assert exc_info.value.message == "Empty file"
        assert orchestrator.progress.value.name == "Idle"

    async def test_unparseable_file_fails(self, orchestrator):
        """A PDF without text fails the session unrecoverably."""
        with pytest.raises(ImportException):
            await orchestrator.import_file("scan.pdf", b"%PDF-1.4 binary", "acc-1")
        state = orchestrator.progress.value
        assert isinstance(state, Failed)
        assert not state.recoverable

    async def test_validation_warnings(self, orchestrator, clock):
        """Warnings are carried on the preview without blocking it."""
        result = NeedsUserInput(
            transactions=[make_imported(description="  ")],
            document_type=CsvDocument(),
        )
        preview = await orchestrator.start_import(result, "acc-1")
        assert preview.validation_warnings == ["Transaction 1: Empty description"]
        assert preview.has_warnings

    async def test_cancel_during_categorization(self, store, clock, sample_csv):
        """Cancelling mid-pipeline discards the session."""

        class CancellingEngine(CategorizationEngine):
            async def categorize(self, transactions, on_progress=None, should_cancel=None):
                orchestrator.cancel_import()
                return await super().categorize(transactions, on_progress, should_cancel)

        orchestrator = ImportOrchestrator(store, engine=CancellingEngine(), clock=clock)

        with pytest.raises(ImportCancelledException):
            await orchestrator.import_file("statement.csv", sample_csv, "acc-1")
        assert orchestrator.preview is None
        assert isinstance(orchestrator.progress.value, Cancelled)

    async def test_cancel_stops_later_tiers(self, store, clock, sample_csv):
        """After a cancel no further tier runs and no progress is published."""

        class CancellingProvider(LLMProvider):
            def __init__(self, name, local):
                self._name = name
                self.local = local
                self.requests = []

            @property
            def name(self):
                return self._name

            @property
            def available_models(self):
                return [ModelConfig(self._name, self._name)]

            @property
            def is_local(self):
                return self.local

            async def is_available(self):
                return True

            async def complete(self, request):
                self.requests.append(request)
                if self.local:
                    orchestrator.cancel_import()
                return CompletionResponse(content="1. pets", input_tokens=10, output_tokens=5, model=self._name)

        local = CancellingProvider("on-device", local=True)
        cloud = CancellingProvider("openai-mini", local=False)
        engine = CategorizationEngine(factory=LLMProviderFactory(cloud, on_device_provider=local))
        orchestrator = ImportOrchestrator(store, engine=engine, clock=clock)
        states = record_states(orchestrator)

        with pytest.raises(ImportCancelledException):
            await orchestrator.import_file("statement.csv", sample_csv, "acc-1")

        assert len(local.requests) == 1
        assert cloud.requests == []
        first_cancel = next(i for i, state in enumerate(states) if isinstance(state, Cancelled))
        assert all(isinstance(state, Cancelled) for state in states[first_cancel:])
        assert orchestrator.preview is None


class TestImportConfirmation:
    """Saving the reviewed selection."""

    @pytest.fixture
    def orchestrator(self, store, clock):
        return ImportOrchestrator(store, category_resolver=store, clock=clock)

    async def test_confirm_saves_selection(self, orchestrator, store, clock, sample_csv):
        """Selected rows are saved with their categories; duplicates are skipped."""
        store.save_transaction(existing_magnum())
        await orchestrator.import_file("statement.csv", sample_csv, "acc-1")

        result = await orchestrator.confirm_import("acc-1")

        assert result.saved_count == 2
        assert result.skipped_count == 1
        saved = {t.description: t for t in store.get_transactions("acc-1") if t.id != "existing-1"}
        assert saved["Salary January"].type == TransactionType.INCOME
        assert saved["Salary January"].category_id == "salary"
        assert saved["ZZQX TRADING 001"].category_id == "other"
        assert saved["ZZQX TRADING 001"].created_at == clock.now()
        assert store.get_category("salary") is not None
        assert orchestrator.progress.value == Completed(saved_count=2, skipped_count=1, duplicate_count=1)
        assert orchestrator.preview is None

    async def test_confirm_with_explicit_selection(self, orchestrator, store, sample_csv):
        """An explicit selection replaces the preview's."""
        await orchestrator.import_file("statement.csv", sample_csv, "acc-1")
        result = await orchestrator.confirm_import("acc-1", selected_indices={0})
        assert result.saved_count == 1
        assert result.skipped_count == 2
        assert [t.description for t in store.get_transactions("acc-1")] == ["MAGNUM SUPERMARKET ALMATY"]

    async def test_override_precedence(self, orchestrator, store, sample_csv):
        """Confirm-time overrides beat row overrides, which beat engine categories."""
        await orchestrator.import_file("statement.csv", sample_csv, "acc-1")
        orchestrator.set_category_override(1, "transfer")
        orchestrator.set_category_override(2, "transport")

        await orchestrator.confirm_import("acc-1", category_overrides={2: "shopping"})

        categories = {t.description: t.category_id for t in store.get_transactions("acc-1")}
        assert categories == {
            "MAGNUM SUPERMARKET ALMATY": "groceries",
            "Salary January": "transfer",
            "ZZQX TRADING 001": "shopping",
        }

    async def test_unknown_override_falls_back(self, orchestrator, store, sample_csv):
        """Categories that cannot be created resolve to the fallback."""
        await orchestrator.import_file("statement.csv", sample_csv, "acc-1")
        await orchestrator.confirm_import("acc-1", selected_indices={0}, category_overrides={0: "pets"})
        assert store.get_transactions("acc-1")[0].category_id == "other"

    async def test_confirm_without_preview(self, orchestrator):
        """There is nothing to confirm before a preview exists."""
        with pytest.raises(ImportException, match="No import in progress"):
            await orchestrator.confirm_import("acc-1")

    async def test_failed_save_is_recoverable(self, orchestrator, store, sample_csv):
        """A failing save reports a recoverable failure with the preview."""
        preview = await orchestrator.import_file("statement.csv", sample_csv, "acc-1")

        with patch.object(store, "save_transaction", side_effect=sqlite3.OperationalError("disk full")) as save:
            with pytest.raises(ImportException, match="disk full"):
                await orchestrator.confirm_import("acc-1")

        assert save.call_count == 1
        state = orchestrator.progress.value
        assert isinstance(state, Failed)
        assert state.recoverable
        assert state.message == "disk full"
        assert state.partial_result is preview
        assert store.get_transactions("acc-1") == []

    async def test_cancel_between_saves(self, temp_db, clock, sample_csv):
        """Cancelling during saving stops before the next row."""

        class CancellingStore(StateStore):
            def save_transaction(self, transaction):
                super().save_transaction(transaction)
                orchestrator.cancel_import()

        store = CancellingStore(temp_db, clock=clock)
        orchestrator = ImportOrchestrator(store, category_resolver=store, clock=clock)
        await orchestrator.import_file("statement.csv", sample_csv, "acc-1")

        with pytest.raises(ImportCancelledException):
            await orchestrator.confirm_import("acc-1")

        assert len(store.get_transactions("acc-1")) == 1
        assert isinstance(orchestrator.progress.value, Cancelled)


class TestSelection:
    """Selection edits on the current preview."""

    @pytest.fixture
    async def orchestrator(self, store, clock, sample_csv):
        store.save_transaction(existing_magnum())
        orchestrator = ImportOrchestrator(store, category_resolver=store, clock=clock)
        await orchestrator.import_file("statement.csv", sample_csv, "acc-1")
        return orchestrator

    async def test_toggle(self, orchestrator):
        """Toggling flips one row and republishes the preview."""
        preview = orchestrator.toggle_selection(2)
        assert preview.selected_indices == {1}
        assert orchestrator.preview is preview
        assert orchestrator.progress.value == AwaitingConfirmation(result=preview)

    async def test_select_all_and_deselect_duplicates(self, orchestrator):
        """Duplicates can be included and excluded again."""
        assert orchestrator.select_all().selected_indices == {0, 1, 2}
        assert orchestrator.deselect_duplicates().selected_indices == {1, 2}

    async def test_override(self, orchestrator):
        """Overrides change the effective category only."""
        preview = orchestrator.set_category_override(0, "shopping")
        row = preview.transactions[0]
        assert row.effective_category == "shopping"
        assert row.transaction.category == "groceries"

    async def test_reset(self, orchestrator):
        """Reset clears the session."""
        orchestrator.reset()
        assert orchestrator.preview is None
        assert orchestrator.progress.value.name == "Idle"
        with pytest.raises(ImportException):
            orchestrator.toggle_selection(0)
