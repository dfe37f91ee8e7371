"""Services package."""

from financepro.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStorage,
    InMemoryAuditStorage,
    InMemoryRecordStorage,
    NotFoundError,
    RecordStorageInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStorage",
    "InMemoryAuditStorage",
    "InMemoryRecordStorage",
    "NotFoundError",
    "RecordStorageInterface",
    "StorageError",
]
