"""
Ledger error taxonomy.

Every failure the ledger engine can report falls into one of these
families. Flows in src.orchestrator convert them into OperationResult
values; nothing here is allowed to take the process down.
"""


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """Input rejected before any store call was made."""
    pass


class ReadOnlyLedgerError(ValidationError):
    """Mutation attempted while viewing someone else's ledger."""
    pass


class NotFoundError(LedgerError):
    """Target record or profile does not exist."""
    pass


class TargetNotFoundError(NotFoundError):
    """The peer profile named in a connection request does not exist."""
    pass


class StoreError(LedgerError):
    """The record or profile store failed (network, permission, serialization)."""
    pass
