"""
In-Memory Storage Implementation

Used for tests and for embedding the engine in a process that persists
the generated entries itself. Follows the same interface as the Google
Sheets backend.

Transactions stage their writes in a private buffer and apply them in
one step on commit; an exception inside the block drops the buffer.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Optional
from uuid import UUID

from autoledger.models.audit import AuditEvent
from autoledger.models.ledger import (
    AccountingPeriod,
    DocumentKind,
    JournalCode,
    JournalLine,
    SourceDocument,
)
from autoledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateDocumentError,
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
    OverlappingPeriodError,
)


class _InMemoryTransaction(LedgerTransaction):

    def __init__(self, storage: "InMemoryLedgerStorage"):
        self._storage = storage
        self.staged_documents: dict[str, SourceDocument] = {}
        self.staged_lines: list[JournalLine] = []

    async def list_periods(self) -> list[AccountingPeriod]:
        return await self._storage.list_periods()

    async def document_exists(self, document_number: str) -> bool:
        return (
            document_number in self.staged_documents
            or document_number in self._storage._documents
        )

    async def add_document(self, document: SourceDocument) -> None:
        if await self.document_exists(document.document_number):
            raise DuplicateDocumentError(document.document_number)
        self.staged_documents[document.document_number] = document.model_copy(deep=True)

    async def add_lines(self, lines: list[JournalLine]) -> None:
        for line in lines:
            if line.document_number not in self.staged_documents:
                raise NotFoundError(
                    f"Journal line references unknown document: {line.document_number}"
                )
        self.staged_lines.extend(line.model_copy() for line in lines)

    async def get_lines(self, document_number: str) -> list[JournalLine]:
        committed = await self._storage.get_lines(document_number)
        staged = [
            line for line in self.staged_lines
            if line.document_number == document_number
        ]
        return committed + staged


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Process-local ledger store."""

    def __init__(self):
        self._periods: dict[UUID, AccountingPeriod] = {}
        self._documents: dict[str, SourceDocument] = {}
        self._lines: list[JournalLine] = []
        self._lock = asyncio.Lock()

    async def add_period(self, period: AccountingPeriod) -> AccountingPeriod:
        for existing in self._periods.values():
            if existing.overlaps(period):
                raise OverlappingPeriodError(period, existing)
        self._periods[period.id] = period
        return period

    async def list_periods(self) -> list[AccountingPeriod]:
        return sorted(self._periods.values(), key=lambda p: p.start_date)

    async def get_document(self, document_number: str) -> Optional[SourceDocument]:
        return self._documents.get(document_number)

    async def list_documents(
        self,
        kind: Optional[DocumentKind] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[SourceDocument]:
        documents = []
        for document in self._documents.values():
            if kind and document.kind != kind:
                continue
            if date_from and document.operation_date < date_from:
                continue
            if date_to and document.operation_date > date_to:
                continue
            documents.append(document)
        documents.sort(key=lambda d: d.operation_date)
        return documents

    async def get_lines(self, document_number: str) -> list[JournalLine]:
        return [line for line in self._lines if line.document_number == document_number]

    async def list_lines(
        self,
        period_id: Optional[UUID] = None,
        account_prefix: Optional[str] = None,
        journal_code: Optional[JournalCode] = None,
    ) -> list[JournalLine]:
        lines = []
        for line in self._lines:
            if period_id and line.period_id != period_id:
                continue
            if account_prefix and not line.account_code.startswith(account_prefix):
                continue
            if journal_code and line.journal_code != journal_code:
                continue
            lines.append(line)
        return lines

    async def list_lines_for_kind(self, kind: DocumentKind) -> list[JournalLine]:
        numbers = {
            number for number, document in self._documents.items()
            if document.kind == kind
        }
        return [line for line in self._lines if line.document_number in numbers]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LedgerTransaction]:
        async with self._lock:
            tx = _InMemoryTransaction(self)
            yield tx
            # Only reached when the block did not raise
            self._documents.update(tx.staged_documents)
            self._lines.extend(tx.staged_lines)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
