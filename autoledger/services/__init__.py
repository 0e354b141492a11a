"""Services package."""

from autoledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateDocumentError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
    OverlappingPeriodError,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateDocumentError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "LedgerTransaction",
    "NotFoundError",
    "OverlappingPeriodError",
    "StorageError",
]
