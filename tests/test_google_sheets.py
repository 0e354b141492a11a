"""
Tests for the Google Sheets backend.

Worksheets are replaced by an in-process fake; no network calls.
Retry waits are disabled so failing writes do not sleep.
"""

import asyncio
import pytest
from datetime import date
from uuid import uuid4

from tenacity import wait_none

from autoledger.accounting import DocumentClassifier, EntryGenerator
from autoledger.models.audit import AuditEventBuilder
from autoledger.models.ledger import AccountingPeriod, DocumentKind
from autoledger.services.storage import (
    DuplicateDocumentError,
    GoogleSheetsAuditStorage,
    GoogleSheetsLedgerStorage,
    OverlappingPeriodError,
    StorageError,
)
from autoledger.services.storage import google_sheets
from autoledger.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    DOCUMENT_COLUMNS,
    LINE_COLUMNS,
    PERIOD_COLUMNS,
    row_to_document,
)


class FakeWorksheet:
    """Just enough of gspread.Worksheet; cells come back as strings."""

    def __init__(self, columns: list[str]):
        self.rows = [list(columns)]
        self.fail_appends = False

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_rows(self, rows, value_input_option=None):
        if self.fail_appends:
            raise RuntimeError("APIError: quota exceeded")
        self.rows.extend([str(cell) for cell in row] for row in rows)

    def append_row(self, row):
        self.rows.append([str(cell) for cell in row])

    def delete_rows(self, index: int):
        del self.rows[index - 1]


class FakeSheetsClient:

    def __init__(self):
        self.periods = FakeWorksheet(PERIOD_COLUMNS)
        self.documents = FakeWorksheet(DOCUMENT_COLUMNS)
        self.lines = FakeWorksheet(LINE_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_periods_sheet(self):
        return self.periods

    def get_documents_sheet(self):
        return self.documents

    def get_lines_sheet(self):
        return self.lines

    def get_audit_sheet(self):
        return self.audit


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(google_sheets.append_rows.retry, "wait", wait_none())


@pytest.fixture
def client() -> FakeSheetsClient:
    return FakeSheetsClient()


@pytest.fixture
def sheets_storage(client, fiscal_year) -> GoogleSheetsLedgerStorage:
    store = GoogleSheetsLedgerStorage(client)
    asyncio.run(store.add_period(fiscal_year))
    return store


@pytest.fixture
def sheets_generator(sheets_storage, taxonomy) -> EntryGenerator:
    return EntryGenerator(sheets_storage, DocumentClassifier(taxonomy))


class TestSheetsLedgerStorage:

    def test_period_round_trip(self, sheets_storage, fiscal_year):
        """Periods survive the string cells."""
        periods = asyncio.run(sheets_storage.list_periods())
        assert periods == [fiscal_year]

    def test_overlapping_period_rejected(self, sheets_storage, client):
        """Overlapping periods are not appended."""
        with pytest.raises(OverlappingPeriodError):
            asyncio.run(sheets_storage.add_period(AccountingPeriod(
                label="Overlap", start_date=date(2024, 6, 1), end_date=date(2025, 5, 31)
            )))
        assert len(client.periods.rows) == 2  # header + FY2024

    def test_generation_writes_document_and_lines(self, sheets_generator, sheets_storage, client, make_input):
        """One document row and three line rows are written."""
        result = asyncio.run(sheets_generator.generate(make_input()))

        assert len(client.documents.rows) == 2
        assert len(client.lines.rows) == 4

        stored = asyncio.run(sheets_storage.get_document("F-0001"))
        assert stored == result.document
        lines = asyncio.run(sheets_storage.get_lines("F-0001"))
        assert [line.account_code for line in lines] == ["607", "44566", "401"]

    def test_duplicate_detected_from_rows(self, sheets_generator, make_input):
        """Existing rows block a reused number."""
        asyncio.run(sheets_generator.generate(make_input()))
        with pytest.raises(DuplicateDocumentError):
            asyncio.run(sheets_generator.generate(make_input()))

    def test_failed_line_write_is_compensated(self, sheets_generator, sheets_storage, client, make_input):
        """Document rows written before the failure are deleted again."""
        asyncio.run(sheets_generator.generate(make_input(document_number="F-0000")))
        client.lines.fail_appends = True

        with pytest.raises(StorageError, match="rolled back"):
            asyncio.run(sheets_generator.generate(make_input()))

        numbers = [row[0] for row in client.documents.rows[1:]]
        assert numbers == ["F-0000"]
        assert asyncio.run(sheets_storage.get_document("F-0001")) is None
        assert len(asyncio.run(sheets_storage.get_lines("F-0000"))) == 3

    def test_failed_document_write_writes_nothing(self, sheets_generator, client, make_input):
        """A failed document append leaves both sheets untouched."""
        client.documents.fail_appends = True

        with pytest.raises(StorageError):
            asyncio.run(sheets_generator.generate(make_input()))
        assert len(client.documents.rows) == 1
        assert len(client.lines.rows) == 1

    def test_lines_for_kind(self, sheets_generator, sheets_storage, make_input):
        """Lines are filtered by their document's kind."""
        asyncio.run(sheets_generator.generate(make_input()))
        asyncio.run(sheets_generator.generate(make_input(
            document_number="V-1",
            document_kind=DocumentKind.SALES_INVOICE,
            label="Vente",
        )))
        lines = asyncio.run(sheets_storage.list_lines_for_kind(DocumentKind.SALES_INVOICE))
        assert {line.document_number for line in lines} == {"V-1"}

    def test_row_to_document_reads_string_cells(self, sheets_generator, client, make_input):
        """Decimal and datetime cells parse back."""
        result = asyncio.run(sheets_generator.generate(make_input()))
        document = row_to_document(client.documents.rows[1])
        assert document.tax_inclusive == result.document.tax_inclusive
        assert document.created_at == result.document.created_at


class TestSheetsAuditStorage:

    def test_append_and_read_back(self, client):
        """Audit events round-trip through the sheet."""
        store = GoogleSheetsAuditStorage(client)
        correlation_id = uuid4()
        event = AuditEventBuilder.entries_generated("F-1", 3, "120.00", correlation_id)

        assert asyncio.run(store.append_event(event))
        events = asyncio.run(store.get_events_by_correlation_id(correlation_id))
        assert len(events) == 1
        assert events[0].event_id == event.event_id
        assert events[0].details == {"line_count": 3, "total": "120.00"}

    def test_append_failure_does_not_raise(self, client):
        """A failed audit append returns False."""
        client.audit.fail_appends = True
        store = GoogleSheetsAuditStorage(client)
        event = AuditEventBuilder.document_received("F-1", "purchase_invoice", uuid4())

        assert asyncio.run(store.append_event(event)) is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
