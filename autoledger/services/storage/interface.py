"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run the engine on Google Sheets or in memory with the same code
2. Use in-memory storage for testing
3. Keep the generation logic decoupled from storage implementation

Writes of a generated entry go through a transaction so that a document
and its journal lines are committed together or not at all. Backends
without native transactions (Google Sheets) implement the same contract
with a compensating rollback.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import date
from typing import Optional
from uuid import UUID

from autoledger.models.audit import AuditEvent
from autoledger.models.ledger import (
    AccountingPeriod,
    DocumentKind,
    JournalCode,
    JournalLine,
    SourceDocument,
)


class LedgerTransaction(ABC):
    """
    Unit of work for one generated entry.

    Reads see the transaction's own staged writes. Nothing is visible
    to other readers until the enclosing context exits cleanly.
    """

    @abstractmethod
    async def list_periods(self) -> list[AccountingPeriod]:
        """Return all accounting periods of the ledger."""
        pass

    @abstractmethod
    async def document_exists(self, document_number: str) -> bool:
        """Check committed and staged documents for this number."""
        pass

    @abstractmethod
    async def add_document(self, document: SourceDocument) -> None:
        """
        Stage a source document.

        Raises:
            DuplicateDocumentError: If the number is already used
        """
        pass

    @abstractmethod
    async def add_lines(self, lines: list[JournalLine]) -> None:
        """
        Stage journal lines.

        Raises:
            NotFoundError: If a line references a document not staged
                           in this transaction
        """
        pass

    @abstractmethod
    async def get_lines(self, document_number: str) -> list[JournalLine]:
        """Return the lines of a document, staged ones included."""
        pass


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, in-memory, SQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def add_period(self, period: AccountingPeriod) -> AccountingPeriod:
        """
        Register an accounting period.

        Raises:
            OverlappingPeriodError: If it overlaps an existing period
        """
        pass

    @abstractmethod
    async def list_periods(self) -> list[AccountingPeriod]:
        """Return all periods ordered by start date."""
        pass

    @abstractmethod
    async def get_document(self, document_number: str) -> Optional[SourceDocument]:
        """
        Retrieve a committed document by its number.

        Returns:
            The document if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_documents(
        self,
        kind: Optional[DocumentKind] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[SourceDocument]:
        """List committed documents with optional filters, oldest first."""
        pass

    @abstractmethod
    async def get_lines(self, document_number: str) -> list[JournalLine]:
        """Return the committed lines of one document."""
        pass

    @abstractmethod
    async def list_lines(
        self,
        period_id: Optional[UUID] = None,
        account_prefix: Optional[str] = None,
        journal_code: Optional[JournalCode] = None,
    ) -> list[JournalLine]:
        """
        List committed journal lines with optional filters.

        Args:
            period_id: Only lines of this accounting period
            account_prefix: Only accounts whose code starts with this prefix
            journal_code: Only lines of this journal
        """
        pass

    @abstractmethod
    async def list_lines_for_kind(self, kind: DocumentKind) -> list[JournalLine]:
        """
        Return committed lines whose source document has the given kind.

        This is the join used by the suggestion service.
        """
        pass

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[LedgerTransaction]:
        """
        Open a write transaction.

        Usage:
            async with storage.transaction() as tx:
                await tx.add_document(document)
                await tx.add_lines(lines)

        An exception raised inside the block discards every staged write.
        Transactions of one store are serialised.
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
        """Get all events of one correlation id in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
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


class DuplicateDocumentError(DuplicateError):
    """A source document with this number already exists."""

    def __init__(self, document_number: str):
        self.document_number = document_number
        super().__init__(f"Document number already used: {document_number}")


class OverlappingPeriodError(StorageError):
    """An accounting period would overlap an existing one."""

    def __init__(self, period: AccountingPeriod, existing: AccountingPeriod):
        self.period = period
        self.existing = existing
        super().__init__(
            f"Period {period.label} ({period.start_date} - {period.end_date}) overlaps "
            f"{existing.label} ({existing.start_date} - {existing.end_date})"
        )


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
