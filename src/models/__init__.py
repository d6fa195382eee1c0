"""
Data Models Package

This package contains all Pydantic models used in Together Budget.
All data flowing through the system must conform to these schemas.
"""

from src.models.expense import (
    AmountField,
    AmountPair,
    AmountUpdatePolicy,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseRecord,
    ExpenseUpdate,
)
from src.models.ledger import (
    AggregationWindow,
    CategoryTotal,
    ConnectionOutcome,
    EntryValidationResult,
    ExportFile,
    LedgerFilter,
    MonthlySummary,
    OperationResult,
    OperationStatus,
    ValidationIssue,
)
from src.models.profile import SessionContext, UserProfile
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "AmountField",
    "AmountPair",
    "AmountUpdatePolicy",
    "ExpenseCategory",
    "ExpenseDraft",
    "ExpenseRecord",
    "ExpenseUpdate",
    # Ledger view models
    "AggregationWindow",
    "CategoryTotal",
    "ConnectionOutcome",
    "EntryValidationResult",
    "ExportFile",
    "LedgerFilter",
    "MonthlySummary",
    "OperationResult",
    "OperationStatus",
    "ValidationIssue",
    # Profiles
    "SessionContext",
    "UserProfile",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
