"""
In-Memory Storage Implementation

Backs the test suite and local development (`STORAGE_BACKEND=memory`).
Records are copied on the way in and out, so callers can never mutate
stored state by accident.
"""

from datetime import date
from typing import Any, Iterable, Optional, Sequence
from uuid import UUID

from pydantic import ValidationError

from financepro.models.audit import AuditEvent
from financepro.models.finance import FinanceRecord
from financepro.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    RecordStorageInterface,
    RecordT,
    StorageError,
    comparable,
    record_matches,
    sort_and_page,
)


class InMemoryRecordStorage(RecordStorageInterface):
    """Dictionary-backed implementation of the table storage."""

    def __init__(self):
        self._tables: dict[str, dict[UUID, FinanceRecord]] = {}

    def _table(self, model: type[FinanceRecord]) -> dict[UUID, FinanceRecord]:
        return self._tables.setdefault(model.table_name, {})

    async def insert(self, records: Sequence[FinanceRecord]) -> int:
        for record in records:
            if record.id in self._table(type(record)):
                raise DuplicateError(f"{record.table_name} record already exists: {record.id}")
        for record in records:
            self._table(type(record))[record.id] = record.model_copy(deep=True)
        return len(records)

    async def get(self, model: type[RecordT], record_id: UUID) -> Optional[RecordT]:
        record = self._table(model).get(record_id)
        return record.model_copy(deep=True) if record else None

    async def update(
        self,
        model: type[RecordT],
        record_id: UUID,
        changes: dict[str, Any],
    ) -> RecordT:
        table = self._table(model)
        if record_id not in table:
            raise NotFoundError(f"{model.table_name} record not found: {record_id}")

        try:
            updated = model.model_validate({**table[record_id].model_dump(), **changes})
        except ValidationError as e:
            raise StorageError(f"Invalid update for {model.table_name}: {e}") from e

        table[record_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, model: type[FinanceRecord], record_ids: Iterable[UUID]) -> int:
        table = self._table(model)
        deleted = 0
        for record_id in set(record_ids):
            if table.pop(record_id, None) is not None:
                deleted += 1
        return deleted

    async def delete_where(self, model: type[FinanceRecord], **equals: Any) -> int:
        table = self._table(model)
        doomed = [rid for rid, record in table.items() if record_matches(record, **equals)]
        for record_id in doomed:
            del table[record_id]
        return len(doomed)

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
        records = [
            record.model_copy(deep=True)
            for record in self._table(model).values()
            if record_matches(record, user_id, date_from, date_to, **equals)
        ]
        return sort_and_page(records, order_by, descending, limit, offset)

    async def upsert(
        self,
        record: RecordT,
        conflict_fields: Sequence[str],
    ) -> RecordT:
        table = self._table(type(record))
        for existing in table.values():
            if all(
                comparable(getattr(existing, f)) == comparable(getattr(record, f))
                for f in conflict_fields
            ):
                stored = record.model_copy(
                    update={"id": existing.id, "created_at": existing.created_at},
                    deep=True,
                )
                table[existing.id] = stored
                return stored.model_copy(deep=True)

        table[record.id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed audit log."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        # Later appends win timestamp ties
        return sorted(reversed(self.events), key=lambda e: e.timestamp, reverse=True)[:limit]
