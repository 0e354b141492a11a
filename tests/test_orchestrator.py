"""
Tests for the end-to-end ledger flow.

Run with: pytest tests/test_orchestrator.py -v
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from autoledger.accounting import ImpliedRateOutOfRange, InsufficientAmountData, NoPeriodFound
from autoledger.audit import AuditLogger
from autoledger.config.settings import LedgerSettings
from autoledger.models.audit import AuditEventType
from autoledger.models.ledger import AccountingPeriod, DocumentKind
from autoledger.orchestrator import LedgerFlow, create_ledger_components
from autoledger.queries import LedgerQueryExecutor
from autoledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    OverlappingPeriodError,
)
from autoledger.validation import DocumentValidationError


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def flow(storage, taxonomy, audit_storage) -> LedgerFlow:
    return LedgerFlow(
        storage,
        taxonomy=taxonomy,
        audit_logger=AuditLogger(audit_storage),
        settings=LedgerSettings(),
    )


def _event_types(audit_storage, correlation_id) -> list[AuditEventType]:
    events = asyncio.run(audit_storage.get_events_by_correlation_id(correlation_id))
    return [event.event_type for event in events]


class TestGenerate:

    def test_successful_generation_is_audited(self, flow, audit_storage, make_input):
        """A successful generation leaves four audit events."""
        correlation_id = uuid4()
        result = asyncio.run(flow.generate(make_input(label="Loyer mars"), correlation_id=correlation_id))

        assert result.classification.debit_account == "6132"
        assert _event_types(audit_storage, correlation_id) == [
            AuditEventType.DOCUMENT_RECEIVED,
            AuditEventType.AMOUNTS_RESOLVED,
            AuditEventType.DOCUMENT_CLASSIFIED,
            AuditEventType.ENTRIES_GENERATED,
        ]

    def test_fallback_classification_is_flagged(self, flow, audit_storage, make_input):
        """A defaulted classification is flagged in the audit."""
        correlation_id = uuid4()
        request = make_input(
            document_number="OD-1",
            document_kind=DocumentKind.GENERIC_ADJUSTMENT,
            label="Régularisation diverse",
        )
        asyncio.run(flow.generate(request, correlation_id=correlation_id))

        assert AuditEventType.CLASSIFICATION_DEFAULTED in _event_types(audit_storage, correlation_id)

    def test_missing_period_writes_nothing(self, flow, storage, audit_storage, make_input):
        """A missing period is audited and nothing is stored."""
        correlation_id = uuid4()
        request = make_input(operation_date=date(2022, 6, 1))

        with pytest.raises(NoPeriodFound):
            asyncio.run(flow.generate(request, correlation_id=correlation_id))

        assert asyncio.run(storage.get_document("F-0001")) is None
        assert asyncio.run(storage.list_lines()) == []
        types = _event_types(audit_storage, correlation_id)
        assert AuditEventType.PERIOD_NOT_FOUND in types
        assert types[-1] == AuditEventType.GENERATION_REJECTED

    def test_unresolvable_amounts_rejected(self, flow, audit_storage, make_input):
        """Bad amounts are rejected before any write."""
        correlation_id = uuid4()
        request = make_input(tax_exclusive=None, tax_amount=Decimal("20"))

        with pytest.raises(InsufficientAmountData):
            asyncio.run(flow.generate(request, correlation_id=correlation_id))

        assert _event_types(audit_storage, correlation_id) == [
            AuditEventType.DOCUMENT_RECEIVED,
            AuditEventType.GENERATION_REJECTED,
        ]

    def test_implied_rate_out_of_range_is_rejected(self, flow, storage, audit_storage, make_input):
        """Tax above HT with no rate ends in a typed, audited rejection."""
        correlation_id = uuid4()
        request = make_input(tax_exclusive=Decimal("10"), tax_amount=Decimal("50"), tax_rate=None)

        with pytest.raises(ImpliedRateOutOfRange):
            asyncio.run(flow.generate(request, correlation_id=correlation_id))

        assert _event_types(audit_storage, correlation_id)[-1] == AuditEventType.GENERATION_REJECTED
        assert asyncio.run(storage.get_document("F-0001")) is None

    def test_unexpected_failure_is_audited_and_raised(self, flow, storage, audit_storage, make_input):
        """Errors outside the domain hierarchy still reach the audit trail."""
        def broken_lines(*args):
            raise RuntimeError("line layout failed")

        flow._generator.build_lines = broken_lines
        correlation_id = uuid4()

        with pytest.raises(RuntimeError, match="line layout failed"):
            asyncio.run(flow.generate(make_input(), correlation_id=correlation_id))

        events = asyncio.run(audit_storage.get_events_by_correlation_id(correlation_id))
        assert [e.event_type for e in events][-2:] == [
            AuditEventType.SYSTEM_ERROR,
            AuditEventType.GENERATION_REJECTED,
        ]
        assert events[-2].details["document_number"] == "F-0001"
        assert asyncio.run(storage.get_document("F-0001")) is None

    def test_amounts_resolved_once(self, flow, audit_storage, make_input):
        """The audited amounts are the ones persisted."""
        calls = []
        resolve = flow._generator.resolve

        def counting_resolve(request):
            calls.append(request.document_number)
            return resolve(request)

        flow._generator.resolve = counting_resolve
        correlation_id = uuid4()
        result = asyncio.run(flow.generate(make_input(), correlation_id=correlation_id))

        assert calls == ["F-0001"]
        events = asyncio.run(audit_storage.get_events_by_correlation_id(correlation_id))
        resolved = next(e for e in events if e.event_type == AuditEventType.AMOUNTS_RESOLVED)
        assert resolved.details["tax_inclusive"] == str(result.document.tax_inclusive)

    def test_validation_blocks_duplicates(self, flow, storage, audit_storage, make_input):
        """Validation stops a reused document number."""
        asyncio.run(flow.generate(make_input()))
        correlation_id = uuid4()

        with pytest.raises(DocumentValidationError) as exc_info:
            asyncio.run(flow.generate(make_input(), validate=True, correlation_id=correlation_id))

        assert any(i.issue_type == "duplicate" for i in exc_info.value.result.issues)
        assert AuditEventType.VALIDATION_FAILED in _event_types(audit_storage, correlation_id)
        assert len(asyncio.run(storage.get_lines("F-0001"))) == 3

    def test_preview_writes_nothing(self, flow, storage, make_input):
        """Preview goes through the flow without writing."""
        preview = asyncio.run(flow.preview(make_input()))

        assert len(preview.lines) == 3
        assert asyncio.run(storage.get_document("F-0001")) is None


class TestPeriodsAndChecks:

    def test_add_period(self, flow, audit_storage):
        """Registered periods are audited."""
        period = AccountingPeriod(
            label="FY2025", start_date=date(2025, 1, 1), end_date=date(2025, 12, 31)
        )
        asyncio.run(flow.add_period(period))

        events = asyncio.run(audit_storage.get_events_by_entity("period", str(period.id)))
        assert [e.event_type for e in events] == [AuditEventType.PERIOD_ADDED]

    def test_overlapping_period_refused(self, flow):
        """The flow refuses overlapping periods."""
        overlapping = AccountingPeriod(
            label="Broken", start_date=date(2024, 12, 1), end_date=date(2025, 11, 30)
        )
        with pytest.raises(OverlappingPeriodError):
            asyncio.run(flow.add_period(overlapping))

    def test_check_balance_of_generated_entry(self, flow, make_input):
        """A generated entry re-checks as balanced."""
        asyncio.run(flow.generate(make_input()))
        report = asyncio.run(flow.check_balance("F-0001"))

        assert report.is_balanced
        assert report.total_debit == Decimal("120.00")

    def test_suggestions_are_audited(self, flow, audit_storage, make_input):
        """Serving suggestions is audited."""
        asyncio.run(flow.generate(make_input(label="Loyer mars")))
        correlation_id = uuid4()

        suggestions = asyncio.run(
            flow.suggest(DocumentKind.PURCHASE_INVOICE, "loyer", correlation_id=correlation_id)
        )

        assert suggestions
        assert _event_types(audit_storage, correlation_id) == [AuditEventType.SUGGESTIONS_SERVED]


class TestFactory:

    def test_memory_backend(self):
        """The factory wires the in-memory backend."""
        flow, executor, sheets_client = create_ledger_components("memory")

        assert isinstance(flow, LedgerFlow)
        assert isinstance(executor, LedgerQueryExecutor)
        assert sheets_client is None

    def test_unknown_backend(self):
        """An unknown backend is an error."""
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_ledger_components("postgres")

    def test_flow_over_fresh_store(self, taxonomy, make_input):
        """A period registered through the flow is used for generation."""
        async def run():
            store = InMemoryLedgerStorage()
            flow = LedgerFlow(store, taxonomy=taxonomy, settings=LedgerSettings())
            await flow.add_period(AccountingPeriod(
                label="FY2024", start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)
            ))
            return await flow.generate(make_input())

        result = asyncio.run(run())
        assert result.document.tax_inclusive == Decimal("120.00")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
