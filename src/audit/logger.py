"""
Audit Logger

Every ledger mutation, connection change and rejected attempt is logged.

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder
from src.services.storage import AuditStorageInterface


_configured = False


def configure_logging(level: str = "INFO") -> None:
    """
    Configure stdlib logging and structlog once.

    Later calls only adjust the level.
    """
    global _configured
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expense_created(
        self,
        actor_id: str,
        record_id: str,
        category: str,
        amount_primary: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_created(
            actor_id=actor_id,
            record_id=record_id,
            category=category,
            amount_primary=amount_primary,
            correlation_id=correlation_id,
        ))

    async def log_expense_updated(
        self,
        actor_id: str,
        record_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_updated(
            actor_id=actor_id,
            record_id=record_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        actor_id: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(
            actor_id=actor_id,
            record_id=record_id,
            correlation_id=correlation_id,
        ))

    async def log_mutation_rejected(
        self,
        actor_id: str,
        viewing_identity: str,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an attempt to change a partner's ledger."""
        await self.log(AuditEventBuilder.mutation_rejected(
            actor_id=actor_id,
            viewing_identity=viewing_identity,
            operation=operation,
            correlation_id=correlation_id,
        ))

    async def log_connection_added(
        self,
        actor_id: str,
        target_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.connection_added(
            actor_id=actor_id,
            target_id=target_id,
            correlation_id=correlation_id,
        ))

    async def log_connection_already_present(
        self,
        actor_id: str,
        target_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.connection_already_present(
            actor_id=actor_id,
            target_id=target_id,
            correlation_id=correlation_id,
        ))

    async def log_connection_removed(
        self,
        actor_id: str,
        target_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.connection_removed(
            actor_id=actor_id,
            target_id=target_id,
            correlation_id=correlation_id,
        ))

    async def log_view_switched(
        self,
        actor_id: str,
        viewing_identity: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_view_switched(
            actor_id=actor_id,
            viewing_identity=viewing_identity,
            correlation_id=correlation_id,
        ))

    async def log_export_generated(
        self,
        actor_id: str,
        filename: str,
        row_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.export_generated(
            actor_id=actor_id,
            filename=filename,
            row_count=row_count,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        actor_id: Optional[str],
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            actor_id=actor_id,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_store_error(
        self,
        actor_id: Optional[str],
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.store_error(
            actor_id=actor_id,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., saving an expense).
    Pass it through all subsequent operations.
    """
    return uuid4()
