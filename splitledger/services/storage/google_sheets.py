"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a persistent backend because:
1. Group members can view the raw ledger directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for household/friend groups)
- No transactions (the ledger serializes writes per group instead)
- Limited query capabilities (we filter in Python)

Amounts are stored as integer minor units in their own column; splits
are JSON-encoded as [[member_id, amount], ...] so they keep their order.
"""

import json
from datetime import date, datetime
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from splitledger.config import GoogleSheetsSettings, get_settings
from splitledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from splitledger.models.expense import Expense, ExpenseCategory, Split, SplitType
from splitledger.models.money import Money
from splitledger.models.settlement import SettlementRecord, SettlementStatus
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    SettlementStorageInterface,
    StorageError,
)


# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "group_id",
    "created_at",
    "expense_date",
    "paid_by",
    "amount_minor",
    "currency",
    "split_type",
    "splits_json",
    "description",
    "category",
    "notes",
]

# Column mappings for Settlements sheet
SETTLEMENT_COLUMNS = [
    "id",
    "group_id",
    "created_at",
    "from_member_id",
    "to_member_id",
    "amount_minor",
    "currency",
    "status",
    "settled_at",
    "note",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "group_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
]


def _safe_getter(row: list):
    """Build an accessor that tolerates short rows."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

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

    def get_settlements_sheet(self) -> gspread.Worksheet:
        """Get or create the Settlements worksheet."""
        return self._get_or_create_sheet(
            self._settings.settlements_sheet_name, SETTLEMENT_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of expense storage.

    One expense per row; sheet order is insertion order.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _expense_to_row(self, expense: Expense) -> list:
        """Convert an Expense to a spreadsheet row."""
        return [
            str(expense.id),
            expense.group_id,
            expense.created_at.isoformat(),
            expense.expense_date.isoformat(),
            expense.paid_by,
            str(expense.amount.amount),
            expense.amount.currency,
            expense.split_type.value,
            json.dumps([[s.member_id, s.amount.amount] for s in expense.splits]),
            expense.description,
            expense.category.value,
            expense.notes or "",
        ]

    def _row_to_expense(self, row: list) -> Expense:
        """Convert a spreadsheet row to an Expense."""
        safe_get = _safe_getter(row)
        currency = safe_get(6)

        splits = tuple(
            Split(member_id=member_id, amount=Money(amount=amount, currency=currency))
            for member_id, amount in json.loads(safe_get(8, "[]"))
        )

        return Expense(
            id=UUID(safe_get(0)),
            group_id=safe_get(1),
            created_at=datetime.fromisoformat(safe_get(2)),
            expense_date=date.fromisoformat(safe_get(3)),
            paid_by=safe_get(4),
            amount=Money(amount=int(safe_get(5)), currency=currency),
            split_type=SplitType(safe_get(7)),
            splits=splits,
            description=safe_get(9),
            category=ExpenseCategory(safe_get(10, ExpenseCategory.OTHER.value)),
            notes=safe_get(11) or None,
        )

    def _find_row(self, all_rows: list, group_id: str, expense_id: UUID) -> Optional[int]:
        """1-based sheet row index of an expense, header included."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == str(expense_id) and len(row) > 1 and row[1] == group_id:
                return idx
        return None

    @retry(
        retry=retry_if_not_exception_type(DuplicateError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def save_expense(self, expense: Expense) -> bool:
        """Append an expense row."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()
            if self._find_row(all_rows, expense.group_id, expense.id) is not None:
                raise DuplicateError(f"Expense already exists: {expense.id}")
            sheet.append_row(self._expense_to_row(expense), value_input_option="RAW")
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

    def replace_expense(self, expense: Expense) -> bool:
        """Overwrite an expense row in place."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()
            idx = self._find_row(all_rows, expense.group_id, expense.id)
            if idx is None:
                return False

            new_row = self._expense_to_row(expense)
            for col_idx, value in enumerate(new_row, start=1):
                sheet.update_cell(idx, col_idx, value)
            return True
        except Exception as e:
            raise StorageError(f"Failed to replace expense: {e}")

    def delete_expense(self, group_id: str, expense_id: UUID) -> bool:
        """Delete an expense row."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()
            idx = self._find_row(all_rows, group_id, expense_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")

    def get_expense(self, group_id: str, expense_id: UUID) -> Optional[Expense]:
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()
            idx = self._find_row(all_rows, group_id, expense_id)
            if idx is None:
                return None
            return self._row_to_expense(all_rows[idx - 1])
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")

    def list_expenses(self, group_id: str) -> list[Expense]:
        """
        All expenses of a group in sheet order.

        A row that can't be parsed is an error: silently skipping it would
        change everyone's balances.
        """
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
            return [
                self._row_to_expense(row)
                for row in all_rows
                if row and row[0] and len(row) > 1 and row[1] == group_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")


class GoogleSheetsSettlementStorage(SettlementStorageInterface):
    """Google Sheets implementation of settlement record storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _record_to_row(self, record: SettlementRecord) -> list:
        return [
            str(record.id),
            record.group_id,
            record.created_at.isoformat(),
            record.from_member_id,
            record.to_member_id,
            str(record.amount.amount),
            record.amount.currency,
            record.status.value,
            record.settled_at.isoformat() if record.settled_at else "",
            record.note or "",
        ]

    def _row_to_record(self, row: list) -> SettlementRecord:
        safe_get = _safe_getter(row)
        return SettlementRecord(
            id=UUID(safe_get(0)),
            group_id=safe_get(1),
            created_at=datetime.fromisoformat(safe_get(2)),
            from_member_id=safe_get(3),
            to_member_id=safe_get(4),
            amount=Money(amount=int(safe_get(5)), currency=safe_get(6)),
            status=SettlementStatus(safe_get(7)),
            settled_at=datetime.fromisoformat(safe_get(8)) if safe_get(8) else None,
            note=safe_get(9) or None,
        )

    def _find_row(self, all_rows: list, record_id: UUID) -> Optional[int]:
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == str(record_id):
                return idx
        return None

    @retry(
        retry=retry_if_not_exception_type(DuplicateError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def save_record(self, record: SettlementRecord) -> bool:
        try:
            sheet = self._client.get_settlements_sheet()
            if self._find_row(sheet.get_all_values(), record.id) is not None:
                raise DuplicateError(f"Settlement record already exists: {record.id}")
            sheet.append_row(self._record_to_row(record), value_input_option="RAW")
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save settlement record: {e}")

    def update_record(self, record: SettlementRecord) -> bool:
        try:
            sheet = self._client.get_settlements_sheet()
            idx = self._find_row(sheet.get_all_values(), record.id)
            if idx is None:
                return False
            for col_idx, value in enumerate(self._record_to_row(record), start=1):
                sheet.update_cell(idx, col_idx, value)
            return True
        except Exception as e:
            raise StorageError(f"Failed to update settlement record: {e}")

    def get_record(self, record_id: UUID) -> Optional[SettlementRecord]:
        try:
            all_rows = self._client.get_settlements_sheet().get_all_values()
            idx = self._find_row(all_rows, record_id)
            if idx is None:
                return None
            return self._row_to_record(all_rows[idx - 1])
        except Exception as e:
            raise StorageError(f"Failed to get settlement record: {e}")

    def list_records(self, group_id: str) -> list[SettlementRecord]:
        try:
            all_rows = self._client.get_settlements_sheet().get_all_values()[1:]
            return [
                self._row_to_record(row)
                for row in all_rows
                if row and row[0] and len(row) > 1 and row[1] == group_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to list settlement records: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            group_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_code=safe_get(10) or None,
            error_message=safe_get(11) or None,
        )

    def _read_events(self) -> list[AuditEvent]:
        events = []
        for row in self._client.get_audit_sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                continue  # A damaged audit row must not hide the rest of the log
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._read_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
