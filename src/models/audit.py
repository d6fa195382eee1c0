"""
Audit Models for Together Budget

Every mutation of a ledger or a connection list, and every rejected
attempt, is recorded as an AuditEvent.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expenses
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    MUTATION_REJECTED = "mutation_rejected"

    # Connections
    CONNECTION_ADDED = "connection_added"
    CONNECTION_ALREADY_PRESENT = "connection_already_present"
    CONNECTION_REMOVED = "connection_removed"

    # Viewing
    LEDGER_VIEW_SWITCHED = "ledger_view_switched"
    EXPORT_GENERATED = "export_generated"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    STORE_ERROR = "store_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who did it, and to what
    actor_id: Optional[str] = Field(
        default=None,
        description="Session user that triggered the event"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'profile')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "actor_id": self.actor_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, actor_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.actor_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_created(actor_id, record_id, ...)
        event = AuditEventBuilder.connection_added(actor_id, target_id)
    """

    @staticmethod
    def expense_created(
        actor_id: str,
        record_id: str,
        category: str,
        amount_primary: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            actor_id=actor_id,
            entity_type="expense",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Expense created: {category} {amount_primary}",
            details={
                "category": category,
                "amount_primary": amount_primary,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_updated(
        actor_id: str,
        record_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            actor_id=actor_id,
            entity_type="expense",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Expense updated: {', '.join(fields)}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(
        actor_id: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            actor_id=actor_id,
            entity_type="expense",
            entity_id=record_id,
            correlation_id=correlation_id,
            description="Expense deleted",
            is_user_action=True,
        )

    @staticmethod
    def mutation_rejected(
        actor_id: str,
        viewing_identity: str,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_REJECTED,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            entity_type="ledger",
            entity_id=viewing_identity,
            correlation_id=correlation_id,
            description=f"Rejected {operation} on a ledger the user does not own",
            details={"operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def connection_added(
        actor_id: str,
        target_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONNECTION_ADDED,
            actor_id=actor_id,
            entity_type="profile",
            entity_id=actor_id,
            correlation_id=correlation_id,
            description="Connection added",
            details={"target_id": target_id},
            is_user_action=True,
        )

    @staticmethod
    def connection_already_present(
        actor_id: str,
        target_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONNECTION_ALREADY_PRESENT,
            actor_id=actor_id,
            entity_type="profile",
            entity_id=actor_id,
            correlation_id=correlation_id,
            description="Connection already present, nothing changed",
            details={"target_id": target_id},
            is_user_action=True,
        )

    @staticmethod
    def connection_removed(
        actor_id: str,
        target_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONNECTION_REMOVED,
            actor_id=actor_id,
            entity_type="profile",
            entity_id=actor_id,
            correlation_id=correlation_id,
            description="Connection removed",
            details={"target_id": target_id},
            is_user_action=True,
        )

    @staticmethod
    def ledger_view_switched(
        actor_id: str,
        viewing_identity: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        own = actor_id == viewing_identity
        return AuditEvent(
            event_type=AuditEventType.LEDGER_VIEW_SWITCHED,
            severity=AuditSeverity.DEBUG,
            actor_id=actor_id,
            entity_type="ledger",
            entity_id=viewing_identity,
            correlation_id=correlation_id,
            description="Viewing own ledger" if own else "Viewing partner ledger",
            is_user_action=True,
        )

    @staticmethod
    def export_generated(
        actor_id: str,
        filename: str,
        row_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_GENERATED,
            actor_id=actor_id,
            entity_type="export",
            correlation_id=correlation_id,
            description=f"Export generated: {filename} ({row_count} rows)",
            details={"filename": filename, "row_count": row_count},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        actor_id: Optional[str],
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Validation failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def store_error(
        actor_id: Optional[str],
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Store error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
