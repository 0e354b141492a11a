"""
Entry Generator

Turns a DocumentInput into a persisted SourceDocument plus its balanced
journal lines.

Pipeline for one call (no intermediate state is persisted):
1. Resolve amounts (fails on insufficient or inconsistent input)
2. Open a storage transaction
3. Resolve the accounting period (fatal if none)
4. Classify
5. Stage the document (status valid) and its lines
6. Check the balance of the staged lines, roll back if it fails
7. Commit on leaving the transaction

Line shapes:
- Purchase invoice: Dr classified HT, Dr deductible VAT, Cr payables TTC
- Sales invoice: Dr receivables TTC, Cr classified HT, Cr collected VAT
- Everything else: Dr classified TTC, Cr classified TTC

DESIGN DECISION: A leg with a zero amount is omitted rather than
written, since a journal line must carry exactly one non-zero side.
Zero-tax invoices therefore produce two lines.
"""

from decimal import Decimal
from typing import Optional

import structlog

from autoledger.accounting.amounts import DEFAULT_TAX_RATE, resolve_amounts
from autoledger.accounting.balance import BalanceValidator
from autoledger.accounting.classifier import DocumentClassifier
from autoledger.accounting.periods import PeriodResolver, select_period
from autoledger.accounting.taxonomy import AccountTaxonomy
from autoledger.models.ledger import (
    AccountingPeriod,
    BalanceReport,
    Classification,
    DocumentInput,
    DocumentKind,
    DocumentStatus,
    EntryPreview,
    GenerationResult,
    JournalLine,
    ResolvedAmounts,
    SourceDocument,
)
from autoledger.services.storage.interface import LedgerStorageInterface


logger = structlog.get_logger(__name__)


class EntryGenerationError(Exception):
    """Base exception for entry generation."""
    pass


class UnbalancedEntryError(EntryGenerationError):
    """Generated lines do not balance; the transaction was rolled back."""

    def __init__(self, report: BalanceReport):
        self.report = report
        super().__init__(
            f"Entry for {report.document_number} does not balance: "
            f"debit {report.total_debit} != credit {report.total_credit}"
        )


def format_rate(rate: Decimal) -> str:
    """20.00 -> '20', 5.50 -> '5.5'."""
    return format(rate.normalize(), "f")


class EntryGenerator:
    """
    Generates and persists balanced entries.

    Usage:
        generator = EntryGenerator(storage, classifier, taxonomy)
        result = await generator.generate(document_input)
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        classifier: DocumentClassifier,
        taxonomy: Optional[AccountTaxonomy] = None,
        balance_validator: Optional[BalanceValidator] = None,
        default_tax_rate: Decimal = DEFAULT_TAX_RATE,
        enforce_balance_gate: bool = True,
    ):
        self.storage = storage
        self.classifier = classifier
        self.taxonomy = taxonomy or classifier.taxonomy
        self.periods = PeriodResolver(storage)
        self.balance_validator = balance_validator or BalanceValidator(storage)
        self.default_tax_rate = default_tax_rate
        self.enforce_balance_gate = enforce_balance_gate

    def resolve(self, request: DocumentInput) -> ResolvedAmounts:
        return resolve_amounts(
            tax_exclusive=request.tax_exclusive,
            tax_amount=request.tax_amount,
            tax_inclusive=request.tax_inclusive,
            tax_rate=request.tax_rate,
            default_rate=self.default_tax_rate,
        )

    def classify(self, request: DocumentInput) -> Classification:
        return self.classifier.classify(
            request.document_kind,
            request.label,
            request.description,
        )

    def build_document(
        self,
        request: DocumentInput,
        amounts: ResolvedAmounts,
    ) -> SourceDocument:
        if amounts.tax_inclusive == 0:
            raise EntryGenerationError(
                f"Document {request.document_number} has a zero total; nothing to record"
            )
        return SourceDocument(
            document_number=request.document_number,
            kind=request.document_kind,
            operation_date=request.operation_date,
            label=request.label,
            description=request.description,
            tax_exclusive=amounts.tax_exclusive,
            tax_amount=amounts.tax_amount,
            tax_inclusive=amounts.tax_inclusive,
            tax_rate=amounts.tax_rate,
            status=DocumentStatus.VALID,
        )

    def build_lines(
        self,
        document: SourceDocument,
        classification: Classification,
        period: AccountingPeriod,
    ) -> list[JournalLine]:
        """Lay out the journal lines for the document's kind."""
        keys = self.taxonomy.key_accounts
        tax_label = f"TVA {format_rate(document.tax_rate)}% - {document.label}"

        if document.kind == DocumentKind.PURCHASE_INVOICE:
            legs = [
                (classification.debit_account, document.label, document.tax_exclusive, True),
                (keys.deductible_vat, tax_label, document.tax_amount, True),
                (classification.credit_account, document.label, document.tax_inclusive, False),
            ]
        elif document.kind == DocumentKind.SALES_INVOICE:
            legs = [
                (classification.debit_account, document.label, document.tax_inclusive, True),
                (classification.credit_account, document.label, document.tax_exclusive, False),
                (keys.collected_vat, tax_label, document.tax_amount, False),
            ]
        else:
            legs = [
                (classification.debit_account, document.label, document.tax_inclusive, True),
                (classification.credit_account, document.label, document.tax_inclusive, False),
            ]

        return [
            JournalLine(
                document_number=document.document_number,
                period_id=period.id,
                journal_code=classification.journal_code,
                operation_date=document.operation_date,
                account_code=account,
                label=label,
                debit=amount if is_debit else Decimal("0"),
                credit=Decimal("0") if is_debit else amount,
            )
            for account, label, amount, is_debit in legs
            if amount != 0
        ]

    async def preview(self, request: DocumentInput) -> EntryPreview:
        """Compute the entry without writing anything."""
        amounts = self.resolve(request)
        period = select_period(await self.storage.list_periods(), request.operation_date)
        classification = self.classify(request)
        document = self.build_document(request, amounts)
        return EntryPreview(
            amounts=amounts,
            classification=classification,
            period=period,
            lines=self.build_lines(document, classification, period),
        )

    async def generate(
        self,
        request: DocumentInput,
        amounts: Optional[ResolvedAmounts] = None,
    ) -> GenerationResult:
        """
        Generate and persist the entry for one document.

        Amounts already resolved by the caller are used as given, so the
        figures it audited are the ones written.

        Raises:
            InsufficientAmountData, InconsistentAmounts,
            ImpliedRateOutOfRange: Bad amounts
            NoPeriodFound: No period contains the operation date
            DuplicateDocumentError: Document number already used
            UnbalancedEntryError: Balance gate failed
            EntryGenerationError: Zero-total document
            StorageError: Store failure
        """
        if amounts is None:
            amounts = self.resolve(request)

        async with self.storage.transaction() as tx:
            period = await self.periods.find_period(request.operation_date, tx)
            classification = self.classify(request)
            document = self.build_document(request, amounts)
            lines = self.build_lines(document, classification, period)

            await tx.add_document(document)
            await tx.add_lines(lines)

            if self.enforce_balance_gate:
                report = await self.balance_validator.check(document.document_number, tx)
                if not report.is_balanced:
                    raise UnbalancedEntryError(report)

        logger.info(
            "Entry generated",
            document_number=document.document_number,
            kind=document.kind.value,
            period=period.label,
            lines=len(lines),
            total=str(document.tax_inclusive),
        )
        return GenerationResult(
            document=document,
            lines=lines,
            classification=classification,
            period=period,
        )
