"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the hosted backend; the in-memory backend serves tests and
local development.
"""

from financepro.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RecordStorageInterface,
    StorageError,
)
from financepro.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStorage,
)
from financepro.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStorage",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRecordStorage",
]
