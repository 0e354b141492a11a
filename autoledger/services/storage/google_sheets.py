"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a storage backend because:
1. Accountants can inspect the generated journal directly in a sheet
2. No database setup required
3. Easy to export to other bookkeeping tools

TRADEOFFS:
- Not suitable for high-volume ledgers
- No transactions: a commit appends the document rows first, then the
  journal line rows; if the second write fails the rows written so far
  are deleted again (compensating rollback)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so the engine runs
unchanged on the in-memory backend.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import AsyncIterator, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from autoledger.config import get_settings
from autoledger.config.settings import GoogleSheetsSettings
from autoledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from autoledger.models.ledger import (
    AccountingPeriod,
    DocumentKind,
    DocumentStatus,
    JournalCode,
    JournalLine,
    SourceDocument,
)
from autoledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateDocumentError,
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
    OverlappingPeriodError,
    StorageError,
)


logger = structlog.get_logger(__name__)


PERIOD_COLUMNS = [
    "id",
    "label",
    "start_date",
    "end_date",
    "closed",
]

DOCUMENT_COLUMNS = [
    "document_number",
    "kind",
    "operation_date",
    "label",
    "description",
    "tax_exclusive",
    "tax_amount",
    "tax_inclusive",
    "tax_rate",
    "status",
    "created_at",
]

LINE_COLUMNS = [
    "id",
    "document_number",
    "period_id",
    "journal_code",
    "operation_date",
    "account_code",
    "label",
    "debit",
    "credit",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)
def append_rows(sheet: gspread.Worksheet, rows: list[list]) -> None:
    """Append rows in a single API call, retrying transient failures."""
    sheet.append_rows(rows, value_input_option="RAW")


def delete_matching_rows(
    sheet: gspread.Worksheet,
    column_index: int,
    values: set[str],
) -> int:
    """Delete every data row whose cell at column_index is in values."""
    all_rows = sheet.get_all_values()
    matches = [
        idx for idx, row in enumerate(all_rows[1:], start=2)  # Row 1 is header
        if _safe_get(row, column_index) in values
    ]
    # Bottom-up so earlier indices stay valid
    for idx in reversed(matches):
        sheet.delete_rows(idx)
    return len(matches)


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

    def get_periods_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.periods_sheet_name, PERIOD_COLUMNS, rows=100
        )

    def get_documents_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.documents_sheet_name, DOCUMENT_COLUMNS, rows=1000
        )

    def get_lines_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.lines_sheet_name, LINE_COLUMNS, rows=5000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


# =============================================================================
# ROW CONVERSION
# =============================================================================

def period_to_row(period: AccountingPeriod) -> list:
    return [
        str(period.id),
        period.label,
        period.start_date.isoformat(),
        period.end_date.isoformat(),
        str(period.closed),
    ]


def row_to_period(row: list) -> AccountingPeriod:
    return AccountingPeriod(
        id=UUID(_safe_get(row, 0)),
        label=_safe_get(row, 1),
        start_date=date.fromisoformat(_safe_get(row, 2)),
        end_date=date.fromisoformat(_safe_get(row, 3)),
        closed=_safe_get(row, 4).lower() == "true",
    )


def document_to_row(document: SourceDocument) -> list:
    return [
        document.document_number,
        document.kind.value,
        document.operation_date.isoformat(),
        document.label,
        document.description or "",
        str(document.tax_exclusive),
        str(document.tax_amount),
        str(document.tax_inclusive),
        str(document.tax_rate),
        document.status.value,
        document.created_at.isoformat(),
    ]


def row_to_document(row: list) -> SourceDocument:
    return SourceDocument(
        document_number=_safe_get(row, 0),
        kind=DocumentKind(_safe_get(row, 1)),
        operation_date=date.fromisoformat(_safe_get(row, 2)),
        label=_safe_get(row, 3),
        description=_safe_get(row, 4) or None,
        tax_exclusive=Decimal(_safe_get(row, 5, "0")),
        tax_amount=Decimal(_safe_get(row, 6, "0")),
        tax_inclusive=Decimal(_safe_get(row, 7, "0")),
        tax_rate=Decimal(_safe_get(row, 8, "0")),
        status=DocumentStatus(_safe_get(row, 9, DocumentStatus.VALID.value)),
        created_at=datetime.fromisoformat(_safe_get(row, 10)),
    )


def line_to_row(line: JournalLine) -> list:
    return [
        str(line.id),
        line.document_number,
        str(line.period_id),
        line.journal_code.value,
        line.operation_date.isoformat(),
        line.account_code,
        line.label,
        str(line.debit),
        str(line.credit),
    ]


def row_to_line(row: list) -> JournalLine:
    return JournalLine(
        id=UUID(_safe_get(row, 0)),
        document_number=_safe_get(row, 1),
        period_id=UUID(_safe_get(row, 2)),
        journal_code=JournalCode(_safe_get(row, 3)),
        operation_date=date.fromisoformat(_safe_get(row, 4)),
        account_code=_safe_get(row, 5),
        label=_safe_get(row, 6),
        debit=Decimal(_safe_get(row, 7, "0")),
        credit=Decimal(_safe_get(row, 8, "0")),
    )


# =============================================================================
# LEDGER STORAGE
# =============================================================================

class _SheetsTransaction(LedgerTransaction):

    def __init__(self, storage: "GoogleSheetsLedgerStorage"):
        self._storage = storage
        self.staged_documents: dict[str, SourceDocument] = {}
        self.staged_lines: list[JournalLine] = []

    async def list_periods(self) -> list[AccountingPeriod]:
        return await self._storage.list_periods()

    async def document_exists(self, document_number: str) -> bool:
        if document_number in self.staged_documents:
            return True
        return await self._storage.get_document(document_number) is not None

    async def add_document(self, document: SourceDocument) -> None:
        if await self.document_exists(document.document_number):
            raise DuplicateDocumentError(document.document_number)
        self.staged_documents[document.document_number] = document

    async def add_lines(self, lines: list[JournalLine]) -> None:
        for line in lines:
            if line.document_number not in self.staged_documents:
                raise NotFoundError(
                    f"Journal line references unknown document: {line.document_number}"
                )
        self.staged_lines.extend(lines)

    async def get_lines(self, document_number: str) -> list[JournalLine]:
        committed = await self._storage.get_lines(document_number)
        staged = [
            line for line in self.staged_lines
            if line.document_number == document_number
        ]
        return committed + staged


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Periods, documents and journal lines live in three worksheets,
    one record per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()

    def _read_rows(self, sheet: gspread.Worksheet) -> list[list]:
        # Skip header and empty rows
        return [row for row in sheet.get_all_values()[1:] if row and row[0]]

    async def add_period(self, period: AccountingPeriod) -> AccountingPeriod:
        async with self._lock:
            for existing in await self.list_periods():
                if existing.overlaps(period):
                    raise OverlappingPeriodError(period, existing)
            try:
                append_rows(self._client.get_periods_sheet(), [period_to_row(period)])
            except Exception as e:
                raise StorageError(f"Failed to save period: {e}")
        return period

    async def list_periods(self) -> list[AccountingPeriod]:
        try:
            rows = self._read_rows(self._client.get_periods_sheet())
            periods = [row_to_period(row) for row in rows]
        except Exception as e:
            raise StorageError(f"Failed to list periods: {e}")
        periods.sort(key=lambda p: p.start_date)
        return periods

    async def get_document(self, document_number: str) -> Optional[SourceDocument]:
        try:
            for row in self._read_rows(self._client.get_documents_sheet()):
                if row[0] == document_number:
                    return row_to_document(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get document: {e}")

    async def list_documents(
        self,
        kind: Optional[DocumentKind] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[SourceDocument]:
        try:
            rows = self._read_rows(self._client.get_documents_sheet())
        except Exception as e:
            raise StorageError(f"Failed to list documents: {e}")

        documents = []
        for row in rows:
            try:
                document = row_to_document(row)
            except Exception:
                logger.warning("malformed_document_row", document_number=row[0])
                continue
            if kind and document.kind != kind:
                continue
            if date_from and document.operation_date < date_from:
                continue
            if date_to and document.operation_date > date_to:
                continue
            documents.append(document)

        documents.sort(key=lambda d: d.operation_date)
        return documents

    async def _all_lines(self) -> list[JournalLine]:
        try:
            rows = self._read_rows(self._client.get_lines_sheet())
        except Exception as e:
            raise StorageError(f"Failed to read journal lines: {e}")
        return [row_to_line(row) for row in rows]

    async def get_lines(self, document_number: str) -> list[JournalLine]:
        return [
            line for line in await self._all_lines()
            if line.document_number == document_number
        ]

    async def list_lines(
        self,
        period_id: Optional[UUID] = None,
        account_prefix: Optional[str] = None,
        journal_code: Optional[JournalCode] = None,
    ) -> list[JournalLine]:
        lines = []
        for line in await self._all_lines():
            if period_id and line.period_id != period_id:
                continue
            if account_prefix and not line.account_code.startswith(account_prefix):
                continue
            if journal_code and line.journal_code != journal_code:
                continue
            lines.append(line)
        return lines

    async def list_lines_for_kind(self, kind: DocumentKind) -> list[JournalLine]:
        numbers = {d.document_number for d in await self.list_documents(kind=kind)}
        return [line for line in await self._all_lines() if line.document_number in numbers]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LedgerTransaction]:
        async with self._lock:
            tx = _SheetsTransaction(self)
            yield tx
            await self._commit(tx)

    async def _commit(self, tx: _SheetsTransaction) -> None:
        if not tx.staged_documents and not tx.staged_lines:
            return

        numbers = set(tx.staged_documents)
        documents_sheet = self._client.get_documents_sheet()
        lines_sheet = self._client.get_lines_sheet()

        try:
            append_rows(
                documents_sheet,
                [document_to_row(d) for d in tx.staged_documents.values()],
            )
        except Exception as e:
            raise StorageError(f"Failed to save documents: {e}")

        try:
            if tx.staged_lines:
                append_rows(lines_sheet, [line_to_row(line) for line in tx.staged_lines])
        except Exception as e:
            logger.error(
                "journal_lines_write_failed",
                documents=sorted(numbers),
                error=str(e),
            )
            self._compensate(documents_sheet, lines_sheet, numbers)
            raise StorageError(f"Failed to save journal lines, documents rolled back: {e}")

    def _compensate(
        self,
        documents_sheet: gspread.Worksheet,
        lines_sheet: gspread.Worksheet,
        numbers: set[str],
    ) -> None:
        """Remove rows written by a failed commit."""
        try:
            delete_matching_rows(lines_sheet, LINE_COLUMNS.index("document_number"), numbers)
            delete_matching_rows(documents_sheet, DOCUMENT_COLUMNS.index("document_number"), numbers)
        except Exception as e:
            # The sheet now needs manual repair; surface that loudly
            logger.critical(
                "compensating_rollback_failed",
                documents=sorted(numbers),
                error=str(e),
            )
            raise StorageError(
                f"Rollback failed, documents {sorted(numbers)} may be partially written: {e}"
            )


# =============================================================================
# AUDIT STORAGE
# =============================================================================

class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            correlation_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            description=_safe_get(row, 7),
            details=json.loads(_safe_get(row, 8)) if _safe_get(row, 8) else {},
            error_code=_safe_get(row, 9) or None,
            error_message=_safe_get(row, 10) or None,
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            append_rows(self._client.get_audit_sheet(), [event.to_sheets_row()])
            return True
        except Exception as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_event_write_failed", error=str(e))
            return False

    def _read_events(self) -> list[AuditEvent]:
        events = []
        for row in self._client.get_audit_sheet().get_all_values()[1:]:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    logger.warning("malformed_audit_row", event_id=row[0])
        return events

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

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._read_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
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
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
