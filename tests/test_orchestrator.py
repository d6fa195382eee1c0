"""Tests for the connection and ledger flows."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from src.config import Settings
from src.ledger import ConnectionDirectory, CurrencyConverter, LedgerView, ValidationError
from src.models import (
    AggregationWindow,
    AuditEventType,
    ConnectionOutcome,
    ExpenseCategory,
    ExpenseUpdate,
    LedgerFilter,
    OperationStatus,
    SessionContext,
)
from src.orchestrator import ConnectionFlow, LedgerFlow, create_app_components
from src.services.storage import InMemoryProfileStore, InMemoryRecordStore

from tests.conftest import make_draft


@pytest.fixture
def connection_flow(session, profile_store, audit_logger) -> ConnectionFlow:
    return ConnectionFlow(session, ConnectionDirectory(profile_store), audit_logger)


def build_ledger_flow(session, record_store, connection_flow, audit_logger) -> LedgerFlow:
    converter = CurrencyConverter()
    view = LedgerView(record_store, session, converter)
    return LedgerFlow(
        session,
        view,
        connection_flow,
        converter=converter,
        audit_logger=audit_logger,
    )


def event_types(audit_storage) -> list[AuditEventType]:
    return [e.event_type for e in audit_storage.events]


class TestConnectionFlow:
    """Connection outcomes as operation results."""

    @pytest.mark.asyncio
    async def test_connect_success(self, connection_flow, audit_storage):
        result = await connection_flow.connect("bob")
        assert result.status == OperationStatus.SUCCESS
        assert result.data == ConnectionOutcome.ADDED
        assert await connection_flow.active_partner() == "bob"
        assert AuditEventType.CONNECTION_ADDED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_connect_twice_is_conflict(self, connection_flow, audit_storage):
        await connection_flow.connect("bob")
        result = await connection_flow.connect("bob")
        assert result.status == OperationStatus.CONFLICT
        assert result.ok
        assert AuditEventType.CONNECTION_ALREADY_PRESENT in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_connect_self_is_validation_error(self, connection_flow, audit_storage):
        result = await connection_flow.connect("alice")
        assert result.status == OperationStatus.VALIDATION_ERROR
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    @pytest.mark.asyncio
    async def test_connect_unknown_user(self, connection_flow):
        result = await connection_flow.connect("mallory")
        assert result.status == OperationStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_connect_store_failure(self, connection_flow, profile_store, audit_storage):
        profile_store.fail_append = True
        result = await connection_flow.connect("bob")
        assert result.status == OperationStatus.STORE_ERROR
        assert AuditEventType.STORE_ERROR in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_disconnect(self, connection_flow):
        await connection_flow.connect("bob")
        result = await connection_flow.disconnect("bob")
        assert result.data == ConnectionOutcome.REMOVED
        again = await connection_flow.disconnect("bob")
        assert again.status == OperationStatus.SUCCESS
        assert again.data == ConnectionOutcome.NOT_CONNECTED
        assert await connection_flow.active_partner() is None

    @pytest.mark.asyncio
    async def test_fetch_connections_store_failure(self, connection_flow, profile_store):
        profile_store.fail_get = True
        result = await connection_flow.fetch_connections()
        assert result.status == OperationStatus.STORE_ERROR


class TestLedgerFlow:
    """Ledger switching, mutations and derived views."""

    @pytest.mark.asyncio
    async def test_partner_view_without_partner(
        self, session, record_store, connection_flow, audit_logger,
    ):
        flow = build_ledger_flow(session, record_store, connection_flow, audit_logger)
        await flow.show_own_ledger()

        result = await flow.show_partner_ledger()

        assert result.status == OperationStatus.NOT_FOUND
        assert flow.viewing_identity == "alice"
        await flow.close()

    @pytest.mark.asyncio
    async def test_rejected_identity_is_validation_error(
        self, session, record_store, connection_flow, audit_logger, audit_storage,
    ):
        class RejectingLedgerView(LedgerView):
            async def open(self, identity=None):
                raise ValidationError("Viewing identity cannot be empty")

        flow = LedgerFlow(
            session,
            RejectingLedgerView(record_store, session),
            connection_flow,
            audit_logger=audit_logger,
        )

        result = await flow.show_own_ledger()

        assert result.status == OperationStatus.VALIDATION_ERROR
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    @pytest.mark.asyncio
    async def test_partner_view_shows_first_connection(
        self, session, record_store, connection_flow, audit_logger, audit_storage,
    ):
        await record_store.create("bob", make_draft())
        await connection_flow.connect("bob")
        await connection_flow.connect("carol")
        flow = build_ledger_flow(session, record_store, connection_flow, audit_logger)
        await flow.open()

        result = await flow.show_partner_ledger()
        records = await flow.view.wait_until_synced()

        assert result.ok
        assert flow.viewing_identity == "bob"
        assert not flow.is_own_ledger
        assert all(r.owner_id == "bob" for r in records)
        assert AuditEventType.LEDGER_VIEW_SWITCHED in event_types(audit_storage)
        await flow.close()

    @pytest.mark.asyncio
    async def test_mutations_rejected_on_partner_view(
        self, session, record_store, connection_flow, audit_logger, audit_storage,
    ):
        bob_id = await record_store.create("bob", make_draft())
        await connection_flow.connect("bob")
        flow = build_ledger_flow(session, record_store, connection_flow, audit_logger)
        await flow.show_partner_ledger()
        await flow.view.wait_until_synced()

        created = await flow.add_expense(make_draft())
        deleted = await flow.delete_expense(bob_id)

        assert created.status == OperationStatus.VALIDATION_ERROR
        assert deleted.status == OperationStatus.VALIDATION_ERROR
        assert record_store.get_record(bob_id) is not None
        assert event_types(audit_storage).count(AuditEventType.MUTATION_REJECTED) == 2
        await flow.close()

    @pytest.mark.asyncio
    async def test_add_update_delete_round(
        self, session, record_store, connection_flow, audit_logger, audit_storage,
    ):
        flow = build_ledger_flow(session, record_store, connection_flow, audit_logger)
        await flow.open()
        await flow.view.wait_until_synced()

        pending = flow.view.next_snapshot()
        created = await flow.add_expense(make_draft())
        await asyncio.wait_for(pending, timeout=1)
        record_id = created.data

        pending = flow.view.next_snapshot()
        updated = await flow.update_expense(record_id, ExpenseUpdate(description="Dinner"))
        records = await asyncio.wait_for(pending, timeout=1)
        assert updated.ok
        assert records[0].description == "Dinner"

        deleted = await flow.delete_expense(record_id)
        assert deleted.ok
        assert flow.records == ()

        assert event_types(audit_storage)[-3:] == [
            AuditEventType.EXPENSE_CREATED,
            AuditEventType.EXPENSE_UPDATED,
            AuditEventType.EXPENSE_DELETED,
        ]
        await flow.close()

    @pytest.mark.asyncio
    async def test_delete_failure_reports_store_error(
        self, session, record_store, connection_flow, audit_logger,
    ):
        record_id = await record_store.create("alice", make_draft())
        flow = build_ledger_flow(session, record_store, connection_flow, audit_logger)
        await flow.open()
        before = await flow.view.wait_until_synced()

        record_store.fail_delete = True
        result = await flow.delete_expense(record_id)

        assert result.status == OperationStatus.STORE_ERROR
        assert flow.records == before
        await flow.close()

    @pytest.mark.asyncio
    async def test_update_missing_record(
        self, session, record_store, connection_flow, audit_logger,
    ):
        flow = build_ledger_flow(session, record_store, connection_flow, audit_logger)
        await flow.open()
        await flow.view.wait_until_synced()
        result = await flow.update_expense("missing", ExpenseUpdate(description="x"))
        assert result.status == OperationStatus.NOT_FOUND
        await flow.close()

    @pytest.mark.asyncio
    async def test_submit_invalid_entry(
        self, session, record_store, connection_flow, audit_logger, audit_storage,
    ):
        flow = build_ledger_flow(session, record_store, connection_flow, audit_logger)
        await flow.open()

        result = await flow.submit_entry(
            date="2024-01-15",
            category="Food",
            amount_primary="abc",
            amount_secondary="",
        )

        assert result.status == OperationStatus.VALIDATION_ERROR
        assert [i.field for i in result.data.errors] == ["amount_primary", "amount_secondary"]
        assert result.data.draft is None
        assert event_types(audit_storage)[-1] == AuditEventType.VALIDATION_FAILED
        await flow.close()

    @pytest.mark.asyncio
    async def test_submit_valid_entry(
        self, session, record_store, connection_flow, audit_logger,
    ):
        flow = build_ledger_flow(session, record_store, connection_flow, audit_logger)
        await flow.open()

        result = await flow.submit_entry(
            date=date(2024, 1, 15),
            category=ExpenseCategory.TRANSPORT,
            description="Bus",
            amount_primary="20",
            amount_secondary="53.40",
        )

        assert result.status == OperationStatus.SUCCESS
        assert record_store.get_record(result.data).category == ExpenseCategory.TRANSPORT
        await flow.close()

    @pytest.mark.asyncio
    async def test_filtered_summary_and_export(
        self, session, record_store, connection_flow, audit_logger, audit_storage,
    ):
        await record_store.create("alice", make_draft("100", "267", ExpenseCategory.FOOD, date(2024, 1, 5)))
        await record_store.create("alice", make_draft("20", "53.4", ExpenseCategory.TRANSPORT, date(2024, 1, 9)))
        await record_store.create("alice", make_draft("50", "133.5", ExpenseCategory.FOOD, date(2024, 1, 20)))
        flow = build_ledger_flow(session, record_store, connection_flow, audit_logger)
        await flow.open()
        await flow.view.wait_until_synced()

        food_only = LedgerFilter.for_month(2024, 1, {ExpenseCategory.FOOD})
        window = AggregationWindow(month=1, year=2024)

        visible = flow.visible_records(food_only)
        full = flow.monthly_summary(window)
        filtered = flow.monthly_summary(window, food_only)
        export = await flow.export_visible(food_only)

        assert len(visible) == 2
        assert full.total_primary == Decimal("170.00")
        assert filtered.total_primary == Decimal("150.00")
        assert export.data.row_count == 2
        assert export.data.filename == "expenses_2024-01-01_2024-01-31.csv"
        assert AuditEventType.EXPORT_GENERATED in event_types(audit_storage)
        await flow.close()


class TestCreateAppComponents:
    """Wiring from settings."""

    @pytest.mark.asyncio
    async def test_memory_backend(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        monkeypatch.setenv("LEDGER_PRIMARY_TO_SECONDARY_RATE", "3")
        ledger_flow, connection_flow = create_app_components(
            SessionContext(user_id="alice"),
            settings=Settings(),
        )
        assert ledger_flow.session.user_id == "alice"
        assert connection_flow.session.user_id == "alice"
        assert ledger_flow.converter.to_secondary(Decimal("10")) == Decimal("30.00")

        result = await ledger_flow.show_own_ledger()
        assert result.ok
        await ledger_flow.close()

    @pytest.mark.asyncio
    async def test_shared_stores_are_used(self):
        records = InMemoryRecordStore()
        profiles = InMemoryProfileStore()
        ledger_flow, _ = create_app_components(
            SessionContext(user_id="alice"),
            settings=Settings(),
            record_store=records,
            profile_store=profiles,
        )
        await ledger_flow.open()
        assert records.active_subscription_count("alice") == 1
        await ledger_flow.close()
        assert records.active_subscription_count("alice") == 0

    @pytest.mark.asyncio
    async def test_closing_one_session_keeps_the_other(self):
        records = InMemoryRecordStore()
        profiles = InMemoryProfileStore()
        first, _ = create_app_components(
            SessionContext(user_id="alice"), settings=Settings(),
            record_store=records, profile_store=profiles,
        )
        second, _ = create_app_components(
            SessionContext(user_id="alice"), settings=Settings(),
            record_store=records, profile_store=profiles,
        )
        await first.open()
        await second.open()

        await first.close()

        assert records.active_subscription_count("alice") == 1
        await second.close()
        assert records.active_subscription_count("alice") == 0
