"""
Main Orchestrator for autoledger

This module ties together all the components and defines the
end-to-end flows for:
1. Generation (validate → resolve amounts → period → classify → write)
2. Preview (same computation, nothing written)
3. Suggestions (historical accounts for a label fragment)
4. Balance checks and period registration

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written unless the whole entry is written
- Every failure is surfaced to the caller, never swallowed
- Every step is audited, including defaulted classifications

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from typing import Optional
from uuid import UUID

import structlog

from autoledger.accounting import (
    AccountTaxonomy,
    AmountResolutionError,
    BalanceValidator,
    DocumentClassifier,
    EntryGenerationError,
    EntryGenerator,
    NoPeriodFound,
    SuggestionService,
    UnbalancedEntryError,
    build_default_taxonomy,
    ensure_no_overlap,
)
from autoledger.audit import AuditLogger, create_correlation_id
from autoledger.config import get_settings
from autoledger.config.settings import LedgerSettings
from autoledger.models.ledger import (
    AccountingPeriod,
    AccountSuggestion,
    BalanceReport,
    DocumentInput,
    DocumentKind,
    EntryPreview,
    GenerationResult,
    ValidationResult,
)
from autoledger.queries import LedgerQueryExecutor
from autoledger.services.storage import (
    DuplicateDocumentError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from autoledger.validation import DocumentValidationError, DocumentValidator


logger = structlog.get_logger(__name__)


class LedgerFlow:
    """
    Orchestrates entry generation over one ledger store.

    Flow for generate():
    1. Received → audited
    2. Validate → two-stage validation (optional)
    3. Resolve amounts → audited
    4. Generate → period, classification and lines in one transaction
    5. Audit the classification (and its fallback) and the result

    A failure at any step is audited and re-raised unchanged.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        taxonomy: Optional[AccountTaxonomy] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        validator: Optional[DocumentValidator] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._storage = storage
        self._taxonomy = taxonomy or build_default_taxonomy()
        self._classifier = DocumentClassifier(self._taxonomy)
        self._balance = BalanceValidator(storage, tolerance=self._settings.balance_tolerance)
        self._generator = EntryGenerator(
            storage,
            self._classifier,
            taxonomy=self._taxonomy,
            balance_validator=self._balance,
            default_tax_rate=self._settings.default_tax_rate,
            enforce_balance_gate=self._settings.enforce_balance_gate,
        )
        self._suggestions = SuggestionService(storage, limit=self._settings.suggestion_limit)
        self._validator = validator or DocumentValidator(storage)
        self._audit_logger = audit_logger

    @property
    def classifier(self) -> DocumentClassifier:
        return self._classifier

    async def add_period(self, period: AccountingPeriod) -> AccountingPeriod:
        """
        Register an accounting period.

        Raises:
            OverlappingPeriodError: If it overlaps an existing period
        """
        ensure_no_overlap(await self._storage.list_periods(), period)
        saved = await self._storage.add_period(period)
        if self._audit_logger:
            await self._audit_logger.log_period_added(saved)
        return saved

    async def validate(
        self,
        request: DocumentInput,
        correlation_id: Optional[UUID] = None,
    ) -> ValidationResult:
        """Run the two-stage validation and audit failures."""
        correlation_id = correlation_id or create_correlation_id()

        result = await self._validator.validate(request)

        if self._audit_logger and not result.is_valid:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
            ]
            await self._audit_logger.log_validation_failed(
                document_number=request.document_number,
                issues=issues,
                correlation_id=correlation_id,
            )

        return result

    async def preview(self, request: DocumentInput) -> EntryPreview:
        """
        Compute the proposed entry without writing anything.

        Raises the same domain errors as generate(), except the
        duplicate and balance checks, which need a transaction.
        """
        return await self._generator.preview(request)

    async def generate(
        self,
        request: DocumentInput,
        validate: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> GenerationResult:
        """
        Generate and persist the entry for one document.

        Args:
            request: The generation request
            validate: Run the two-stage validation first; errors block
            correlation_id: Ties the audit events of this call together

        Returns:
            The persisted document with its journal lines

        Raises:
            DocumentValidationError: validate=True and validation failed
            InsufficientAmountData, InconsistentAmounts,
            ImpliedRateOutOfRange: Bad amounts
            NoPeriodFound: No period contains the operation date
            DuplicateDocumentError: Document number already used
            UnbalancedEntryError: Balance gate failed, nothing written
            StorageError: Store failure, nothing written
        """
        correlation_id = correlation_id or create_correlation_id()
        number = request.document_number

        if self._audit_logger:
            await self._audit_logger.log_document_received(
                document_number=number,
                kind=request.document_kind.value,
                correlation_id=correlation_id,
            )

        if validate:
            validation = await self.validate(request, correlation_id)
            if not validation.is_valid:
                error = DocumentValidationError(validation)
                await self._reject(number, error, correlation_id)
                raise error

        try:
            amounts = self._generator.resolve(request)
        except AmountResolutionError as e:
            await self._reject(number, e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_amounts_resolved(number, amounts, correlation_id)

        try:
            result = await self._generator.generate(request, amounts)
        except NoPeriodFound as e:
            if self._audit_logger:
                await self._audit_logger.log_period_not_found(
                    document_number=number,
                    operation_date=e.operation_date.isoformat(),
                    correlation_id=correlation_id,
                )
            await self._reject(number, e, correlation_id)
            raise
        except UnbalancedEntryError as e:
            if self._audit_logger:
                await self._audit_logger.log_balance_check_failed(
                    document_number=number,
                    total_debit=str(e.report.total_debit),
                    total_credit=str(e.report.total_credit),
                    correlation_id=correlation_id,
                )
            await self._reject(number, e, correlation_id)
            raise
        except (EntryGenerationError, DuplicateDocumentError) as e:
            await self._reject(number, e, correlation_id)
            raise
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="generate",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            await self._reject(number, e, correlation_id)
            raise
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"operation": "generate", "document_number": number},
                    correlation_id=correlation_id,
                )
            await self._reject(number, e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_classification(
                document_number=number,
                kind=request.document_kind.value,
                label=request.label,
                classification=result.classification,
                correlation_id=correlation_id,
            )
            await self._audit_logger.log_entries_generated(result, correlation_id)

        return result

    async def _reject(
        self,
        document_number: str,
        error: Exception,
        correlation_id: UUID,
    ) -> None:
        logger.warning(
            "Generation rejected",
            document_number=document_number,
            error_type=type(error).__name__,
            error=str(error),
        )
        if self._audit_logger:
            await self._audit_logger.log_generation_rejected(
                document_number=document_number,
                error=error,
                correlation_id=correlation_id,
            )

    async def suggest(
        self,
        kind: DocumentKind,
        label_fragment: str,
        correlation_id: Optional[UUID] = None,
    ) -> list[AccountSuggestion]:
        """Ranked historical accounts for a label fragment."""
        correlation_id = correlation_id or create_correlation_id()

        suggestions = await self._suggestions.suggest(kind, label_fragment)

        if self._audit_logger:
            await self._audit_logger.log_suggestions_served(
                kind=kind.value,
                label_fragment=label_fragment,
                result_count=len(suggestions),
                correlation_id=correlation_id,
            )
        return suggestions

    async def check_balance(
        self,
        document_number: str,
        correlation_id: Optional[UUID] = None,
    ) -> BalanceReport:
        """Re-check a committed document; imbalances are audited."""
        report = await self._balance.check(document_number)

        if self._audit_logger and not report.is_balanced:
            await self._audit_logger.log_balance_check_failed(
                document_number=document_number,
                total_debit=str(report.total_debit),
                total_credit=str(report.total_credit),
                correlation_id=correlation_id or create_correlation_id(),
            )
        return report


def create_ledger_components(
    storage_backend: Optional[str] = None,
) -> tuple[LedgerFlow, LedgerQueryExecutor, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        storage_backend: "memory" or "google_sheets"; defaults to the
                         LEDGER_STORAGE_BACKEND setting.

    Returns:
        (ledger_flow, query_executor, sheets_client)

    Raises:
        ConnectionError: Google Sheets requested but unreachable
    """
    settings = get_settings()
    backend = storage_backend or settings.ledger.storage_backend
    sheets_client = None

    if backend == "google_sheets":
        sheets_client = GoogleSheetsClient(settings.google_sheets)
        sheets_client.connect()
        ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    elif backend == "memory":
        ledger_storage = InMemoryLedgerStorage()
        audit_storage = InMemoryAuditStorage()
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    taxonomy = build_default_taxonomy()
    audit_logger = AuditLogger(audit_storage)

    flow = LedgerFlow(
        ledger_storage,
        taxonomy=taxonomy,
        audit_logger=audit_logger,
        settings=settings.ledger,
    )
    executor = LedgerQueryExecutor(ledger_storage, taxonomy=taxonomy)

    logger.info("Ledger components created", backend=backend)
    return flow, executor, sheets_client
