"""
Main Orchestrator for Together Budget

This module ties together all the components and defines the
user-facing flows for:
1. Connections (look up, link and unlink a partner)
2. The ledger (own / partner view, expense entry, filters, summary, export)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every flow receives the session explicitly; nothing reads a global user
- Only the session user's own ledger can be changed
- Every ledger error becomes an OperationResult; nothing is raised to
  the presentation layer
- Every mutation, rejection and failure is audited
"""

from typing import Optional, Sequence
from uuid import UUID

import structlog

from src.audit import AuditLogger, configure_logging, create_correlation_id
from src.config import Settings, get_settings
from src.ledger import (
    AmountEntry,
    ConnectionDirectory,
    CurrencyConverter,
    LedgerView,
    NotFoundError,
    ReadOnlyLedgerError,
    StoreError,
    ValidationError,
    aggregate_month,
    apply_filter,
    build_export,
)
from src.models import (
    AggregationWindow,
    ConnectionOutcome,
    ExpenseDraft,
    ExpenseRecord,
    ExpenseUpdate,
    LedgerFilter,
    MonthlySummary,
    OperationResult,
    OperationStatus,
    SessionContext,
)
from src.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsProfileStore,
    GoogleSheetsRecordStore,
    InMemoryAuditStorage,
    InMemoryProfileStore,
    InMemoryRecordStore,
    ProfileStoreInterface,
    RecordStoreInterface,
)
from src.validation import ExpenseInputValidator


logger = structlog.get_logger(__name__)


class ConnectionFlow:
    """
    Orchestrates the connection directory for one session.

    Outcomes:
    - ADDED          -> SUCCESS
    - ALREADY_CONNECTED -> CONFLICT (nothing written)
    - empty / self target -> VALIDATION_ERROR (no store call)
    - unknown target -> NOT_FOUND
    - store failure  -> STORE_ERROR
    """

    def __init__(
        self,
        session: SessionContext,
        directory: ConnectionDirectory,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._session = session
        self._directory = directory
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def session(self) -> SessionContext:
        return self._session

    async def fetch_connections(self) -> OperationResult:
        """List the session user's connections (data: list[str])."""
        try:
            connections = await self._directory.fetch_connections(self._session.user_id)
        except NotFoundError as e:
            return OperationResult(status=OperationStatus.NOT_FOUND, message=str(e))
        except StoreError as e:
            await self._audit_logger.log_store_error(
                actor_id=self._session.user_id,
                operation="fetch_connections",
                error_message=str(e),
            )
            return OperationResult(status=OperationStatus.STORE_ERROR, message=str(e))

        return OperationResult.success(
            f"{len(connections)} connection(s)",
            data=connections,
        )

    async def active_partner(self) -> Optional[str]:
        """The partner whose ledger the partner view shows, if any."""
        result = await self.fetch_connections()
        if not result.ok or not result.data:
            return None
        return result.data[0]

    async def connect(
        self,
        target_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Link the session user to target_id (one-sided)."""
        correlation_id = correlation_id or create_correlation_id()
        actor = self._session.user_id

        try:
            outcome = await self._directory.add_connection(actor, target_id)
        except ValidationError as e:
            await self._audit_logger.log_validation_failed(
                actor_id=actor,
                operation="connect",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return OperationResult(status=OperationStatus.VALIDATION_ERROR, message=str(e))
        except NotFoundError as e:
            return OperationResult(status=OperationStatus.NOT_FOUND, message=str(e))
        except StoreError as e:
            await self._audit_logger.log_store_error(
                actor_id=actor,
                operation="connect",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return OperationResult(status=OperationStatus.STORE_ERROR, message=str(e))

        target_id = target_id.strip()
        if outcome == ConnectionOutcome.ALREADY_CONNECTED:
            await self._audit_logger.log_connection_already_present(
                actor_id=actor,
                target_id=target_id,
                correlation_id=correlation_id,
            )
            return OperationResult(
                status=OperationStatus.CONFLICT,
                message=f"Already connected to {target_id}",
                data=outcome,
            )

        await self._audit_logger.log_connection_added(
            actor_id=actor,
            target_id=target_id,
            correlation_id=correlation_id,
        )
        return OperationResult.success(f"Connected to {target_id}", data=outcome)

    async def disconnect(
        self,
        target_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Remove target_id from the session user's connections. Idempotent."""
        correlation_id = correlation_id or create_correlation_id()
        actor = self._session.user_id

        try:
            outcome = await self._directory.remove_connection(actor, target_id)
        except StoreError as e:
            await self._audit_logger.log_store_error(
                actor_id=actor,
                operation="disconnect",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return OperationResult(status=OperationStatus.STORE_ERROR, message=str(e))

        if outcome == ConnectionOutcome.REMOVED:
            await self._audit_logger.log_connection_removed(
                actor_id=actor,
                target_id=target_id,
                correlation_id=correlation_id,
            )
            return OperationResult.success(f"Disconnected from {target_id}", data=outcome)

        return OperationResult.success(f"Not connected to {target_id}", data=outcome)


class LedgerFlow:
    """
    Orchestrates the ledger view for one session.

    The view starts on the session user's own ledger. Switching to the
    partner view resolves the active partner through the connection flow;
    when there is no partner the current view is left as it is.
    """

    def __init__(
        self,
        session: SessionContext,
        view: LedgerView,
        connection_flow: ConnectionFlow,
        converter: Optional[CurrencyConverter] = None,
        validator: Optional[ExpenseInputValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._session = session
        self._view = view
        self._connections = connection_flow
        self._converter = converter or CurrencyConverter()
        self._validator = validator or ExpenseInputValidator(self._converter)
        self._audit_logger = audit_logger or AuditLogger()
        self.amount_entry = AmountEntry(self._converter)

    # -------------------------------------------------------------------------
    # View state
    # -------------------------------------------------------------------------

    @property
    def session(self) -> SessionContext:
        return self._session

    @property
    def view(self) -> LedgerView:
        return self._view

    @property
    def converter(self) -> CurrencyConverter:
        return self._converter

    @property
    def viewing_identity(self) -> Optional[str]:
        return self._view.viewing_identity

    @property
    def is_own_ledger(self) -> bool:
        return self._view.is_own_ledger

    @property
    def records(self) -> tuple[ExpenseRecord, ...]:
        return self._view.records

    async def _switch(self, identity: str) -> OperationResult:
        try:
            await self._view.open(identity)
        except ValidationError as e:
            await self._audit_logger.log_validation_failed(
                actor_id=self._session.user_id,
                operation="open_ledger",
                error_message=str(e),
            )
            return OperationResult(status=OperationStatus.VALIDATION_ERROR, message=str(e))
        except StoreError as e:
            await self._audit_logger.log_store_error(
                actor_id=self._session.user_id,
                operation="open_ledger",
                error_message=str(e),
            )
            return OperationResult(status=OperationStatus.STORE_ERROR, message=str(e))

        await self._audit_logger.log_view_switched(
            actor_id=self._session.user_id,
            viewing_identity=identity,
        )
        return OperationResult.success(f"Viewing {identity}", data=identity)

    async def show_own_ledger(self) -> OperationResult:
        """Open (or switch back to) the session user's ledger."""
        return await self._switch(self._session.user_id)

    async def open(self) -> OperationResult:
        return await self.show_own_ledger()

    async def show_partner_ledger(self) -> OperationResult:
        """Switch to the first connection's ledger (read-only)."""
        connections = await self._connections.fetch_connections()
        if connections.status == OperationStatus.STORE_ERROR:
            return connections
        if not connections.ok or not connections.data:
            return OperationResult(
                status=OperationStatus.NOT_FOUND,
                message="No partner connected. Add a connection first.",
            )
        return await self._switch(connections.data[0])

    async def close(self) -> None:
        await self._view.close()

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def _rejected(
        self,
        operation: str,
        error: ReadOnlyLedgerError,
        correlation_id: UUID,
    ) -> OperationResult:
        await self._audit_logger.log_mutation_rejected(
            actor_id=self._session.user_id,
            viewing_identity=self._view.viewing_identity or "",
            operation=operation,
            correlation_id=correlation_id,
        )
        return OperationResult(status=OperationStatus.VALIDATION_ERROR, message=str(error))

    async def _store_failed(
        self,
        operation: str,
        error: StoreError,
        correlation_id: UUID,
    ) -> OperationResult:
        await self._audit_logger.log_store_error(
            actor_id=self._session.user_id,
            operation=operation,
            error_message=str(error),
            correlation_id=correlation_id,
        )
        return OperationResult(status=OperationStatus.STORE_ERROR, message=str(error))

    def validate_entry(self, **values) -> OperationResult:
        """
        Validate raw form values without saving.

        data is the EntryValidationResult in every case.
        """
        result = self._validator.validate(**values)
        message = self._validator.get_user_friendly_summary(result)
        if not result.is_valid:
            return OperationResult(
                status=OperationStatus.VALIDATION_ERROR,
                message=message,
                data=result,
            )
        return OperationResult.success(message, data=result)

    async def submit_entry(
        self,
        correlation_id: Optional[UUID] = None,
        **values,
    ) -> OperationResult:
        """Validate raw form values and, when valid, save the expense."""
        correlation_id = correlation_id or create_correlation_id()
        checked = self.validate_entry(**values)
        if not checked.ok:
            await self._audit_logger.log_validation_failed(
                actor_id=self._session.user_id,
                operation="create",
                error_message=checked.message,
                correlation_id=correlation_id,
            )
            return checked
        return await self.add_expense(checked.data.draft, correlation_id=correlation_id)

    async def add_expense(
        self,
        draft: ExpenseDraft,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Create an expense on the own ledger (data: the new id)."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            record_id = await self._view.create(draft)
        except ReadOnlyLedgerError as e:
            return await self._rejected("create", e, correlation_id)
        except StoreError as e:
            return await self._store_failed("create", e, correlation_id)

        await self._audit_logger.log_expense_created(
            actor_id=self._session.user_id,
            record_id=record_id,
            category=draft.category.value,
            amount_primary=str(draft.amount_primary),
            correlation_id=correlation_id,
        )
        return OperationResult.success("Expense saved", data=record_id)

    async def update_expense(
        self,
        record_id: str,
        changes: ExpenseUpdate,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Apply a partial update (data: the update actually stored)."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            resolved = await self._view.update(record_id, changes)
        except ReadOnlyLedgerError as e:
            return await self._rejected("update", e, correlation_id)
        except ValidationError as e:
            return OperationResult(status=OperationStatus.VALIDATION_ERROR, message=str(e))
        except NotFoundError as e:
            return OperationResult(status=OperationStatus.NOT_FOUND, message=str(e))
        except StoreError as e:
            return await self._store_failed("update", e, correlation_id)

        await self._audit_logger.log_expense_updated(
            actor_id=self._session.user_id,
            record_id=record_id,
            fields=sorted(resolved.model_fields_set),
            correlation_id=correlation_id,
        )
        return OperationResult.success("Expense updated", data=resolved)

    async def delete_expense(
        self,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Delete an expense; the view rolls back if the store fails."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            await self._view.delete(record_id)
        except ReadOnlyLedgerError as e:
            return await self._rejected("delete", e, correlation_id)
        except NotFoundError as e:
            return OperationResult(status=OperationStatus.NOT_FOUND, message=str(e))
        except StoreError as e:
            return await self._store_failed("delete", e, correlation_id)

        await self._audit_logger.log_expense_deleted(
            actor_id=self._session.user_id,
            record_id=record_id,
            correlation_id=correlation_id,
        )
        return OperationResult.success("Expense deleted", data=record_id)

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    def visible_records(self, ledger_filter: LedgerFilter) -> list[ExpenseRecord]:
        """The filtered subset shown in the list and used for export."""
        return apply_filter(self._view.records, ledger_filter)

    def monthly_summary(
        self,
        window: AggregationWindow,
        ledger_filter: Optional[LedgerFilter] = None,
    ) -> MonthlySummary:
        """
        Category totals for one month.

        Aggregates the whole view, or only the filtered subset when a filter
        is given.
        """
        records: Sequence[ExpenseRecord] = self._view.records
        if ledger_filter is not None:
            records = apply_filter(records, ledger_filter)
        return aggregate_month(records, window)

    async def export_visible(self, ledger_filter: LedgerFilter) -> OperationResult:
        """Export the filtered subset (data: ExportFile)."""
        export = build_export(self.visible_records(ledger_filter), ledger_filter)
        await self._audit_logger.log_export_generated(
            actor_id=self._session.user_id,
            filename=export.filename,
            row_count=export.row_count,
        )
        return OperationResult.success(
            f"Exported {export.row_count} expense(s)",
            data=export,
        )


def create_app_components(
    session: SessionContext,
    settings: Optional[Settings] = None,
    record_store: Optional[RecordStoreInterface] = None,
    profile_store: Optional[ProfileStoreInterface] = None,
) -> tuple[LedgerFlow, ConnectionFlow]:
    """
    Factory function to create all application components for a session.

    Args:
        session: The signed-in user.
        settings: Defaults to get_settings().
        record_store / profile_store: Shared stores. When omitted they are
            built from settings.app.storage_backend.

    Returns:
        (ledger_flow, connection_flow)
    """
    settings = settings or get_settings()
    app_settings = settings.app
    ledger_settings = settings.ledger
    configure_logging("DEBUG" if app_settings.debug_mode else app_settings.log_level)

    audit_storage = None
    if record_store is None or profile_store is None:
        if app_settings.storage_backend == "google_sheets":
            sheets_settings = settings.google_sheets
            client = GoogleSheetsClient(sheets_settings)
            record_store = record_store or GoogleSheetsRecordStore(
                client,
                watch_interval_seconds=sheets_settings.watch_interval_seconds,
            )
            profile_store = profile_store or GoogleSheetsProfileStore(client)
            audit_storage = GoogleSheetsAuditStorage(client)
        else:
            record_store = record_store or InMemoryRecordStore()
            profile_store = profile_store or InMemoryProfileStore()
            audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    converter = CurrencyConverter.from_settings(ledger_settings)

    connection_flow = ConnectionFlow(
        session=session,
        directory=ConnectionDirectory(profile_store),
        audit_logger=audit_logger,
    )

    view = LedgerView(
        store=record_store,
        session=session,
        converter=converter,
        update_policy=ledger_settings.amount_update_policy,
    )

    ledger_flow = LedgerFlow(
        session=session,
        view=view,
        connection_flow=connection_flow,
        converter=converter,
        audit_logger=audit_logger,
    )

    logger.info(
        "app_components_created",
        user_id=session.user_id,
        storage_backend=app_settings.storage_backend,
    )
    return ledger_flow, connection_flow
