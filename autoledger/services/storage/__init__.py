"""
Storage Services Package

Provides abstract interfaces and concrete implementations for ledger storage.
Implements an in-memory backend and a Google Sheets backend behind the same
interface.
"""

from autoledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateDocumentError,
    DuplicateError,
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
    OverlappingPeriodError,
    StorageError,
)
from autoledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from autoledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    "LedgerTransaction",
    # Exceptions
    "ConnectionError",
    "DuplicateDocumentError",
    "DuplicateError",
    "NotFoundError",
    "OverlappingPeriodError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
