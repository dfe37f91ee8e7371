"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally generic: one set of table operations keyed by
model class, instead of one method per table. We're not building a full ORM,
just the operations the dashboard pages need.
"""

from abc import ABC, abstractmethod
from datetime import date
from enum import Enum
from typing import Any, Iterable, Optional, Sequence, TypeVar
from uuid import UUID

from financepro.models.audit import AuditEvent
from financepro.models.finance import FinanceRecord


RecordT = TypeVar("RecordT", bound=FinanceRecord)


class RecordStorageInterface(ABC):
    """
    Abstract interface for the user's tables.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def insert(self, records: Sequence[FinanceRecord]) -> int:
        """
        Insert records, possibly of several tables, in one call.

        Returns:
            Number of records inserted

        Raises:
            DuplicateError: If a record with the same ID already exists
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def get(self, model: type[RecordT], record_id: UUID) -> Optional[RecordT]:
        """
        Retrieve a record by its ID.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def update(
        self,
        model: type[RecordT],
        record_id: UUID,
        changes: dict[str, Any],
    ) -> RecordT:
        """
        Apply field changes to a record.

        The changed record is re-validated before it is written.

        Returns:
            The updated record

        Raises:
            NotFoundError: If the record doesn't exist
            StorageError: If the update fails
        """
        pass

    @abstractmethod
    async def delete(self, model: type[FinanceRecord], record_ids: Iterable[UUID]) -> int:
        """
        Delete records by ID. Unknown IDs are ignored.

        Returns:
            Number of records deleted
        """
        pass

    @abstractmethod
    async def delete_where(self, model: type[FinanceRecord], **equals: Any) -> int:
        """
        Delete every record whose fields equal the given values.

        Returns:
            Number of records deleted
        """
        pass

    @abstractmethod
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
        """
        List records with optional filters.

        Args:
            model: Record class, which gives the table
            user_id: Only records owned by this user
            date_from: Records whose date field is on or after this date
            date_to: Records whose date field is on or before this date
            order_by: Field to sort by (missing values sort last)
            descending: Sort direction
            limit: Maximum number of results
            offset: Number of results to skip
            **equals: Field equality filters

        Returns:
            List of matching records
        """
        pass

    @abstractmethod
    async def upsert(
        self,
        record: RecordT,
        conflict_fields: Sequence[str],
    ) -> RecordT:
        """
        Insert a record, or replace the one that matches on `conflict_fields`.

        The replaced record keeps its ID and creation time.

        Returns:
            The stored record
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one import run).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


# =============================================================================
# SHARED FILTERING
# Both backends filter in Python, so the semantics live here once.
# =============================================================================

def comparable(value: Any) -> Any:
    """Normalize a value so UUIDs and enums compare equal to their strings."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    return value


def record_matches(
    record: FinanceRecord,
    user_id: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    **equals: Any,
) -> bool:
    """Check a record against the list() filters."""
    if user_id is not None and record.user_id != user_id:
        return False

    if date_from is not None or date_to is not None:
        if record.date_field is None:
            raise ValueError(f"Table {record.table_name} has no date field")
        value = getattr(record, record.date_field)
        if value is None:
            return False
        if date_from is not None and value < date_from:
            return False
        if date_to is not None and value > date_to:
            return False

    for field, expected in equals.items():
        if comparable(getattr(record, field)) != comparable(expected):
            return False

    return True


def sort_and_page(
    records: list[RecordT],
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
    offset: int = 0,
) -> list[RecordT]:
    """Sort by one field (missing values last) and slice a page."""
    if order_by:
        present = [r for r in records if getattr(r, order_by) is not None]
        missing = [r for r in records if getattr(r, order_by) is None]

        def sort_key(record: FinanceRecord) -> Any:
            value = comparable(getattr(record, order_by))
            return value.lower() if isinstance(value, str) else value

        present.sort(key=sort_key, reverse=descending)
        records = present + missing

    if limit is None:
        return records[offset:]
    return records[offset:offset + limit]
