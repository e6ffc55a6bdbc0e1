"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the hosted storage backend because:
1. Families can open their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

Layout:
- One worksheet per collection ("Transactions", "Budgets", ...). The first
  column is the owning user's id; the remaining columns are the camelCase
  fields of the stored records.
- "Versions" records the last saved snapshot version per user.
- "Users" holds accounts (id, email, password hash).

A save rewrites every collection sheet in place: other users' rows followed
by the saving user's new rows, in one write from A1. Nothing is cleared
before that write lands, so a failed save leaves the sheet as it was.

TRADEOFFS:
- Not suitable for high-volume data (we're fine for a household)
- No transactions across sheets; the version row is written last, so an
  interrupted save is simply retried on the next change
"""

import json
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import gspread
from gspread.utils import rowcol_to_a1
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from financeflow.config import GoogleSheetsSettings, get_settings
from financeflow.models.audit import AuditEvent, AuditEventType, AuditSeverity
from financeflow.models.user import UserRecord
from financeflow.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    SnapshotStorageInterface,
    StorageError,
    UserStorageInterface,
)


logger = structlog.get_logger(__name__)


# Worksheet title and stored columns for each snapshot collection
COLLECTION_SHEETS: dict[str, tuple[str, list[str]]] = {
    "transactions": (
        "Transactions",
        ["id", "description", "amount", "date", "type", "category", "member"],
    ),
    "budgets": ("Budgets", ["category", "amount"]),
    "familyMembers": ("FamilyMembers", ["id", "name", "gender"]),
    "goals": ("Goals", ["id", "name", "targetAmount", "currentAmount"]),
    "recurringPayments": (
        "RecurringPayments",
        ["id", "description", "amount", "dueDay"],
    ),
    "accounts": ("Accounts", ["id", "name", "type", "balance"]),
    "investments": (
        "Investments",
        ["id", "name", "type", "quantity", "purchasePrice", "currentValue"],
    ),
    "debts": (
        "Debts",
        ["id", "name", "type", "totalAmount", "amountPaid", "interestRate", "minPayment"],
    ),
}

USER_COLUMNS = ["id", "email", "password_hash", "created_at"]

VERSION_COLUMNS = ["user_id", "version", "saved_at"]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "actor",
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

    Handles authentication and provides retry logic for API calls.
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
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_sheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


def _cell(value) -> str:
    if value is None:
        return ""
    return str(value)


def _value(cell: str):
    return cell if cell != "" else None


def _rewrite(sheet: gspread.Worksheet, rows: list[list[str]], existing: list[list[str]]) -> None:
    """
    Overwrite a sheet's values from A1 without clearing it first.

    The old rows stay in place until the single write succeeds; only then
    are leftover rows past the new end blanked.
    """
    if len(rows) > sheet.row_count:
        sheet.add_rows(len(rows) - sheet.row_count)
    sheet.update(range_name="A1", values=rows, value_input_option="RAW")

    if len(existing) > len(rows):
        width = max(len(row) for row in existing)
        first = rowcol_to_a1(len(rows) + 1, 1)
        last = rowcol_to_a1(len(existing), width)
        sheet.batch_clear([f"{first}:{last}"])


class GoogleSheetsSnapshotStorage(SnapshotStorageInterface):
    """
    Google Sheets implementation of snapshot storage.

    Values are written as text and come back as text; snapshot
    normalization turns them back into numbers and dates on load.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _versions_sheet(self) -> gspread.Worksheet:
        return self._client.get_sheet(
            self._client.settings.versions_sheet_name, VERSION_COLUMNS
        )

    def _stored_version(self, user_id: int) -> tuple[Optional[int], Optional[int]]:
        """Return (version, sheet row index) for the user, if any."""
        rows = self._versions_sheet().get_all_values()
        for idx, row in enumerate(rows[1:], start=2):
            if row and row[0] == str(user_id):
                try:
                    return int(row[1]), idx
                except (IndexError, ValueError):
                    return 0, idx
        return None, None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def load_snapshot(self, user_id: int) -> Optional[dict]:
        """Collect the user's rows from every collection sheet."""
        try:
            version, _ = self._stored_version(user_id)
            if version is None:
                return None

            snapshot: dict[str, list[dict]] = {}
            for key, (title, columns) in COLLECTION_SHEETS.items():
                sheet = self._client.get_sheet(title, ["user_id", *columns])
                records = []
                for row in sheet.get_all_values()[1:]:
                    if not row or row[0] != str(user_id):
                        continue
                    cells = row[1:] + [""] * (len(columns) - len(row[1:]))
                    records.append({
                        column: _value(cell) for column, cell in zip(columns, cells)
                    })
                snapshot[key] = records
            return snapshot
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load snapshot: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_snapshot(self, user_id: int, payload: dict, version: int) -> bool:
        """Replace the user's rows in every collection sheet."""
        try:
            stored_version, version_row = self._stored_version(user_id)
            if stored_version is not None and version < stored_version:
                logger.info(
                    "snapshot_save_superseded",
                    user_id=user_id,
                    version=version,
                    stored_version=stored_version,
                )
                return False

            for key, (title, columns) in COLLECTION_SHEETS.items():
                header = ["user_id", *columns]
                sheet = self._client.get_sheet(title, header)
                existing = sheet.get_all_values()
                others = [
                    row for row in existing[1:]
                    if any(row) and row[0] != str(user_id)
                ]
                mine = [
                    [str(user_id), *(_cell(record.get(column)) for column in columns)]
                    for record in payload.get(key) or []
                    if isinstance(record, dict)
                ]
                _rewrite(sheet, [header, *others, *mine], existing)

            versions = self._versions_sheet()
            version_cells = [str(user_id), str(version), datetime.now(timezone.utc).isoformat()]
            if version_row is None:
                versions.append_row(version_cells, value_input_option="RAW")
            else:
                for col_idx, value in enumerate(version_cells, start=1):
                    versions.update_cell(version_row, col_idx, value)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save snapshot: {e}")


class GoogleSheetsUserStorage(UserStorageInterface):
    """Google Sheets implementation of account storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_sheet(self._client.settings.users_sheet_name, USER_COLUMNS)

    def _all_users(self) -> list[UserRecord]:
        users = []
        for row in self._sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                users.append(UserRecord(
                    id=int(row[0]),
                    email=row[1],
                    password_hash=row[2],
                    created_at=datetime.fromisoformat(row[3]),
                ))
            except (IndexError, ValueError):
                continue  # Skip malformed rows
        return users

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(DuplicateError),
        reraise=True,
    )
    async def create_user(self, email: str, password_hash: str) -> UserRecord:
        try:
            users = self._all_users()
            if any(u.email.lower() == email.strip().lower() for u in users):
                raise DuplicateError(f"User already exists: {email}")
            user = UserRecord(
                id=max((u.id for u in users), default=0) + 1,
                email=email,
                password_hash=password_hash,
            )
            self._sheet().append_row(
                [str(user.id), user.email, user.password_hash, user.created_at.isoformat()],
                value_input_option="RAW",
            )
            return user
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to create user: {e}")

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        try:
            wanted = email.strip().lower()
            return next((u for u in self._all_users() if u.email.lower() == wanted), None)
        except Exception as e:
            raise StorageError(f"Failed to get user: {e}")

    async def get_user_by_id(self, user_id: int) -> Optional[UserRecord]:
        try:
            return next((u for u in self._all_users() if u.id == user_id), None)
        except Exception as e:
            raise StorageError(f"Failed to get user: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_sheet(
            self._client.settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )

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
            actor=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _read_events(self, keep=lambda row: True) -> list[AuditEvent]:
        events = []
        for row in self._sheet().get_all_values()[1:]:
            if not row or not row[0] or not keep(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, json.JSONDecodeError):
                continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._sheet().append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_write_failed", error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = self._read_events(
                lambda row: len(row) > 7 and row[7] == str(correlation_id)
            )
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
