"""
Shared fixtures.

No real services in tests: the in-memory stores stand in for Google
Sheets, and async code is driven with asyncio.run.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from autoledger.accounting import DocumentClassifier, EntryGenerator, build_default_taxonomy
from autoledger.models.ledger import AccountingPeriod, DocumentInput, DocumentKind
from autoledger.services.storage import InMemoryLedgerStorage


@pytest.fixture
def fiscal_year() -> AccountingPeriod:
    return AccountingPeriod(
        label="FY2024",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
    )


@pytest.fixture
def storage(fiscal_year) -> InMemoryLedgerStorage:
    store = InMemoryLedgerStorage()
    asyncio.run(store.add_period(fiscal_year))
    return store


@pytest.fixture
def taxonomy():
    return build_default_taxonomy()


@pytest.fixture
def classifier(taxonomy) -> DocumentClassifier:
    return DocumentClassifier(taxonomy)


@pytest.fixture
def generator(storage, classifier) -> EntryGenerator:
    return EntryGenerator(storage, classifier)


@pytest.fixture
def make_input():
    """Factory for generation requests with sensible defaults."""

    def _make(**overrides) -> DocumentInput:
        fields = {
            "document_number": "F-0001",
            "document_kind": DocumentKind.PURCHASE_INVOICE,
            "operation_date": date(2024, 3, 15),
            "label": "Achat marchandises",
            "tax_exclusive": Decimal("100"),
            "tax_rate": Decimal("20"),
        }
        fields.update(overrides)
        return DocumentInput(**fields)

    return _make
