"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the shared backend for a household:
1. Both partners can open the spreadsheet and see raw data
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for one household)
- No transactions (we handle this with careful ordering)
- No server push, so live snapshots come from two places: every mutation
  made through this store, and an optional watcher that re-reads the sheet
  while at least one subscription is open

Rows are coerced into typed models on the way in. Malformed rows are
logged and skipped, never delivered to subscribers.
"""

import asyncio
import json
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.auth.exceptions import TransportError
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.config import GoogleSheetsSettings, get_settings
from src.models.audit import AuditEvent, AuditEventType, AuditSeverity
from src.models.expense import ExpenseDraft, ExpenseRecord, ExpenseUpdate
from src.models.profile import UserProfile
from src.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ProfileStoreInterface,
    RecordCoercionError,
    RecordNotFoundError,
    RecordStoreInterface,
    StorageError,
    StoreUnavailableError,
)
from src.services.storage.subscription import Subscription


logger = structlog.get_logger(__name__)

# Failures worth retrying when connecting; anything else fails at once
TRANSIENT_ERRORS = (
    gspread.exceptions.APIError,
    TransportError,
    ConnectionError,
    TimeoutError,
)


# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "owner_id",
    "date",
    "category",
    "description",
    "amount_primary",
    "amount_secondary",
    "created_at",
    "updated_at",
]

# Column mappings for Users sheet
USER_COLUMNS = [
    "user_id",
    "connections_json",
    "created_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "actor_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )
    def _authorize(self) -> gspread.Client:
        """Authorize with service account credentials. Retries transient failures only."""
        scopes = [
            "https://www.googleapis.com/auth/spreadsheets",
            "https://www.googleapis.com/auth/drive",
        ]
        credentials = Credentials.from_service_account_file(
            self._settings.credentials_path,
            scopes=scopes,
        )
        return gspread.authorize(credentials)

    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                self._client = self._authorize()
            except FileNotFoundError:
                raise StoreUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreUnavailableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StoreUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the Expenses worksheet."""
        return self._get_or_create_sheet(
            self._settings.expenses_sheet_name, EXPENSE_COLUMNS, rows=1000
        )

    def get_users_sheet(self) -> gspread.Worksheet:
        """Get or create the Users worksheet."""
        return self._get_or_create_sheet(
            self._settings.users_sheet_name, USER_COLUMNS, rows=100
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


def _row_to_expense(row: list) -> ExpenseRecord:
    """Convert a spreadsheet row to an ExpenseRecord."""
    padded = list(row) + [""] * (len(EXPENSE_COLUMNS) - len(row))
    raw = dict(zip(EXPENSE_COLUMNS, padded))
    try:
        return ExpenseRecord.from_store_dict(raw)
    except ValueError as e:
        raise RecordCoercionError(f"Malformed expense row {raw.get('id')!r}: {e}") from e


def _expense_to_row(record: ExpenseRecord) -> list:
    """Convert an ExpenseRecord to a spreadsheet row."""
    data = record.to_store_dict()
    return [data[column] for column in EXPENSE_COLUMNS]


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Google Sheets implementation of expense storage.

    One expense per row. Every owner's records live in the same worksheet;
    subscriptions filter by owner_id.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        watch_interval_seconds: Optional[float] = None,
    ):
        self._client = client or GoogleSheetsClient()
        if watch_interval_seconds is None:
            watch_interval_seconds = self._client.settings.watch_interval_seconds
        self._watch_interval = watch_interval_seconds
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)
        self._last_delivered: dict[str, tuple[ExpenseRecord, ...]] = {}
        self._watcher: Optional[asyncio.Task] = None

    def _read_all(self) -> list[ExpenseRecord]:
        """All well-formed records in the sheet."""
        sheet = self._client.get_expenses_sheet()
        records = []
        for row in sheet.get_all_values()[1:]:  # Skip header
            if not row or not row[0]:
                continue
            try:
                records.append(_row_to_expense(row))
            except RecordCoercionError as e:
                logger.warning("malformed_row_skipped", error=str(e))
        return records

    def _find_row(self, sheet: gspread.Worksheet, record_id: str) -> tuple[int, Optional[list]]:
        """1-based sheet row index and raw row for an id, or (0, None)."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == record_id:
                return idx, row
        return 0, None

    def _notify(self, owner_id: str) -> None:
        listeners = self._subscriptions.get(owner_id)
        if not listeners:
            return
        snapshot = tuple(r for r in self._read_all() if r.owner_id == owner_id)
        self._last_delivered[owner_id] = snapshot
        for subscription in list(listeners):
            subscription.deliver(snapshot)

    def _notify_after_write(self, owner_id: str) -> None:
        """Notify after a completed write. A failed re-read is only logged."""
        try:
            self._notify(owner_id)
        except Exception as e:
            logger.warning("notify_failed", owner_id=owner_id, error=str(e))

    def _release(self, subscription: Subscription) -> None:
        listeners = self._subscriptions.get(subscription.owner_id, [])
        if subscription in listeners:
            listeners.remove(subscription)
        if not listeners:
            self._subscriptions.pop(subscription.owner_id, None)
            self._last_delivered.pop(subscription.owner_id, None)
        if not self._subscriptions and self._watcher is not None:
            self._watcher.cancel()
            self._watcher = None

    async def _watch(self) -> None:
        """Re-read the sheet and push snapshots that changed."""
        while self._subscriptions:
            await asyncio.sleep(self._watch_interval)
            try:
                records = self._read_all()
            except Exception as e:
                logger.warning("sheet_watch_failed", error=str(e))
                continue
            for owner_id, listeners in list(self._subscriptions.items()):
                snapshot = tuple(r for r in records if r.owner_id == owner_id)
                if snapshot == self._last_delivered.get(owner_id):
                    continue
                self._last_delivered[owner_id] = snapshot
                for subscription in list(listeners):
                    subscription.deliver(snapshot)

    async def subscribe(self, owner_id: str) -> Subscription:
        try:
            snapshot = tuple(r for r in self._read_all() if r.owner_id == owner_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to open subscription: {e}")

        subscription = Subscription(owner_id, on_close=self._release)
        self._subscriptions[owner_id].append(subscription)
        self._last_delivered[owner_id] = snapshot
        subscription.deliver(snapshot)

        if self._watch_interval > 0 and self._watcher is None:
            self._watcher = asyncio.get_running_loop().create_task(self._watch())
        return subscription

    async def create(self, owner_id: str, draft: ExpenseDraft) -> str:
        """Append a new expense row."""
        try:
            record = ExpenseRecord.from_draft(
                draft,
                record_id=uuid4().hex,
                owner_id=owner_id,
                created_at=datetime.now(timezone.utc),
            )
            sheet = self._client.get_expenses_sheet()
            sheet.append_row(_expense_to_row(record), value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

        self._notify_after_write(owner_id)
        return record.id

    async def update(self, record_id: str, changes: ExpenseUpdate) -> None:
        """Rewrite an existing expense row."""
        try:
            sheet = self._client.get_expenses_sheet()
            idx, row = self._find_row(sheet, record_id)
            if row is None:
                raise RecordNotFoundError(f"Expense not found: {record_id}")

            existing = _row_to_expense(row)
            updated = existing.with_changes(
                changes.changes(), datetime.now(timezone.utc)
            )
            sheet.update(
                range_name=f"A{idx}",
                values=[_expense_to_row(updated)],
                value_input_option="RAW",
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update expense: {e}")

        self._notify_after_write(existing.owner_id)

    async def delete(self, record_id: str) -> None:
        """Delete an expense row; absent ids are ignored."""
        try:
            sheet = self._client.get_expenses_sheet()
            idx, row = self._find_row(sheet, record_id)
            if row is None:
                return
            owner_id = row[1] if len(row) > 1 else ""
            sheet.delete_rows(idx)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")

        self._notify_after_write(owner_id)


class GoogleSheetsProfileStore(ProfileStoreInterface):
    """
    Google Sheets implementation of profile storage.

    Connections are stored as a JSON array in a single cell.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find(self, user_id: str) -> tuple[int, Optional[UserProfile]]:
        sheet = self._client.get_users_sheet()
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == user_id:
                return idx, self._row_to_profile(row)
        return 0, None

    def _row_to_profile(self, row: list) -> UserProfile:
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        try:
            created = safe_get(2)
            return UserProfile(
                user_id=safe_get(0),
                connections=json.loads(safe_get(1, "[]")),
                **({"created_at": datetime.fromisoformat(created)} if created else {}),
            )
        except ValueError as e:
            raise RecordCoercionError(f"Malformed profile row {safe_get(0)!r}: {e}") from e

    def _write_connections(self, idx: int, connections: list[str]) -> None:
        sheet = self._client.get_users_sheet()
        sheet.update_cell(idx, 2, json.dumps(connections))

    async def get(self, user_id: str) -> Optional[UserProfile]:
        try:
            return self._find(user_id)[1]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get profile: {e}")

    async def create(self, user_id: str) -> UserProfile:
        try:
            if self._find(user_id)[1] is not None:
                raise DuplicateError(f"Profile already exists: {user_id}")
            profile = UserProfile(user_id=user_id)
            sheet = self._client.get_users_sheet()
            sheet.append_row(
                [profile.user_id, "[]", profile.created_at.isoformat()],
                value_input_option="RAW",
            )
            return profile
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to create profile: {e}")

    async def append_connection(self, user_id: str, target_id: str) -> None:
        try:
            idx, profile = self._find(user_id)
            if profile is None:
                raise RecordNotFoundError(f"Profile not found: {user_id}")
            if target_id not in profile.connections:
                self._write_connections(idx, profile.connections + [target_id])
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to add connection: {e}")

    async def remove_connection(self, user_id: str, target_id: str) -> None:
        try:
            idx, profile = self._find(user_id)
            if profile is None or target_id not in profile.connections:
                return
            self._write_connections(
                idx, [c for c in profile.connections if c != target_id]
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to remove connection: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            actor_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError as e:
                logger.warning("malformed_audit_row_skipped", error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
