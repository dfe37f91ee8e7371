"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the hosted backend because:
1. Users can view and fix their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (batches are appended in a single call)
- Limited query capabilities (we filter in Python)

Each table is one worksheet whose first row holds the model's field names.
Columns are matched by header, so reordering columns in the sheet is safe.
"""

import json
from datetime import date
from typing import Any, Iterable, Optional, Sequence, get_args, get_origin
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from financepro.config import get_settings
from financepro.models.audit import AUDIT_SHEET_HEADER, AuditEvent, AuditEventType, AuditSeverity
from financepro.models.finance import FinanceRecord
from financepro.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    RecordStorageInterface,
    RecordT,
    StorageError,
    comparable,
    record_matches,
    sort_and_page,
)


logger = structlog.get_logger("storage.google_sheets")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets

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

    def get_worksheet(self, title: str, header: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet whose first row is `header`."""
        if title not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=rows,
                    cols=len(header),
                )
                sheet.append_row(header)
            self._worksheets[title] = sheet
        return self._worksheets[title]

    def get_table_sheet(self, model: type[FinanceRecord]) -> gspread.Worksheet:
        return self.get_worksheet(model.table_name, list(model.model_fields))

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_SHEET_HEADER,
            rows=5000,  # More rows for audit log
        )


def _cell(value: Any) -> str:
    """Serialize one JSON-mode value to a cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def record_to_row(record: FinanceRecord, header: list[str]) -> list[str]:
    """Convert a record to a row laid out by the sheet header."""
    data = record.model_dump(mode="json")
    return [_cell(data.get(column)) for column in header]


def row_to_record(model: type[RecordT], header: list[str], row: list[str]) -> RecordT:
    """
    Convert a sheet row to a record.

    Empty cells are treated as missing so the model defaults apply.
    """
    data: dict[str, Any] = {}
    for column, value in zip(header, row):
        if column not in model.model_fields or value == "":
            continue
        annotation = model.model_fields[column].annotation
        if get_origin(annotation) in (list, dict) or any(
            get_origin(arg) in (list, dict) for arg in get_args(annotation)
        ):
            value = json.loads(value)
        data[column] = value
    return model.model_validate(data)


class GoogleSheetsRecordStorage(RecordStorageInterface):
    """
    Google Sheets implementation of the table storage.

    Rows that no longer validate (hand-edited cells, old columns) are
    skipped with a warning instead of breaking every page that lists them.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _read_table(
        self,
        model: type[RecordT],
    ) -> tuple[gspread.Worksheet, list[str], list[tuple[int, RecordT]]]:
        """Read a whole table as (sheet, header, [(row_number, record)])."""
        sheet = self._client.get_table_sheet(model)
        values = sheet.get_all_values()
        if not values:
            return sheet, list(model.model_fields), []

        header = values[0]
        records = []
        for row_number, row in enumerate(values[1:], start=2):  # Row 1 is header
            if not row or not row[0]:
                continue
            try:
                records.append((row_number, row_to_record(model, header, row)))
            except (ValidationError, ValueError) as e:
                logger.warning(
                    "skipping_malformed_row",
                    table=model.table_name,
                    row=row_number,
                    error=str(e),
                )
        return sheet, header, records

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_batch(self, model: type[FinanceRecord], batch: list[FinanceRecord]) -> None:
        """Append one table's rows in a single call. Retried on its own."""
        sheet = self._client.get_table_sheet(model)
        header = sheet.row_values(1) or list(model.model_fields)
        sheet.append_rows(
            [record_to_row(record, header) for record in batch],
            value_input_option="RAW",
        )

    async def insert(self, records: Sequence[FinanceRecord]) -> int:
        """Append records, one batch call per table."""
        by_table: dict[type[FinanceRecord], list[FinanceRecord]] = {}
        for record in records:
            by_table.setdefault(type(record), []).append(record)

        try:
            for model, batch in by_table.items():
                self._append_batch(model, batch)
            return len(records)
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert records: {e}")

    async def get(self, model: type[RecordT], record_id: UUID) -> Optional[RecordT]:
        try:
            _, _, records = self._read_table(model)
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get {model.table_name} record: {e}")

        for _, record in records:
            if record.id == record_id:
                return record
        return None

    async def update(
        self,
        model: type[RecordT],
        record_id: UUID,
        changes: dict[str, Any],
    ) -> RecordT:
        try:
            sheet, header, records = self._read_table(model)
            for row_number, record in records:
                if record.id == record_id:
                    updated = model.model_validate({**record.model_dump(), **changes})
                    sheet.update(
                        range_name=f"A{row_number}",
                        values=[record_to_row(updated, header)],
                        value_input_option="RAW",
                    )
                    return updated

            raise NotFoundError(f"{model.table_name} record not found: {record_id}")
        except (NotFoundError, ConnectionError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {model.table_name} record: {e}")

    def _delete_rows(self, sheet: gspread.Worksheet, row_numbers: list[int]) -> int:
        # Bottom-up so earlier row numbers stay valid
        for row_number in sorted(row_numbers, reverse=True):
            sheet.delete_rows(row_number)
        return len(row_numbers)

    async def delete(self, model: type[FinanceRecord], record_ids: Iterable[UUID]) -> int:
        wanted = set(record_ids)
        if not wanted:
            return 0
        try:
            sheet, _, records = self._read_table(model)
            return self._delete_rows(
                sheet,
                [row_number for row_number, record in records if record.id in wanted],
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {model.table_name} records: {e}")

    async def delete_where(self, model: type[FinanceRecord], **equals: Any) -> int:
        try:
            sheet, _, records = self._read_table(model)
            return self._delete_rows(
                sheet,
                [row_number for row_number, record in records if record_matches(record, **equals)],
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {model.table_name} records: {e}")

    async def list(
        self,
        model: type[RecordT],
        user_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
        **equals: Any,
    ) -> list[RecordT]:
        try:
            _, _, records = self._read_table(model)
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list {model.table_name}: {e}")

        matching = [
            record for _, record in records
            if record_matches(record, user_id, date_from, date_to, **equals)
        ]
        return sort_and_page(matching, order_by, descending, limit, offset)

    async def upsert(
        self,
        record: RecordT,
        conflict_fields: Sequence[str],
    ) -> RecordT:
        model = type(record)
        try:
            sheet, header, records = self._read_table(model)
            for row_number, existing in records:
                if all(
                    comparable(getattr(existing, f)) == comparable(getattr(record, f))
                    for f in conflict_fields
                ):
                    stored = record.model_copy(
                        update={"id": existing.id, "created_at": existing.created_at}
                    )
                    sheet.update(
                        range_name=f"A{row_number}",
                        values=[record_to_row(stored, header)],
                        value_input_option="RAW",
                    )
                    return stored

            sheet.append_row(record_to_row(record, header), value_input_option="RAW")
            return record
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to upsert {model.table_name} record: {e}")


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
            timestamp=safe_get(1),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            user_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        events = []
        for row in self._client.get_audit_sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValidationError, ValueError):
                continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_write_failed", error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Later rows win timestamp ties
        events.reverse()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
