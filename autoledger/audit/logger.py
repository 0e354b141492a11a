"""
Audit Logger

DESIGN DECISION: Every step of entry generation is logged.
This provides:
1. Complete traceability of each generated document
2. Visibility of defaulted classifications, which never raise
3. A record of rejected generations and their cause

The audit logger:
- Is async to not block the generation flow
- Gracefully handles failures (a broken audit store never blocks the ledger)
- Supports correlation IDs to trace the events of one generation
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from autoledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from autoledger.models.ledger import (
    AccountingPeriod,
    Classification,
    GenerationResult,
    ResolvedAmounts,
)
from autoledger.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store (for persistence), when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_document_received(
        self,
        document_number: str,
        kind: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.document_received(
            document_number=document_number,
            kind=kind,
            correlation_id=correlation_id,
        ))

    async def log_amounts_resolved(
        self,
        document_number: str,
        amounts: ResolvedAmounts,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.amounts_resolved(
            document_number=document_number,
            tax_exclusive=str(amounts.tax_exclusive),
            tax_amount=str(amounts.tax_amount),
            tax_inclusive=str(amounts.tax_inclusive),
            correlation_id=correlation_id,
        ))

    async def log_period_not_found(
        self,
        document_number: str,
        operation_date: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.period_not_found(
            document_number=document_number,
            operation_date=operation_date,
            correlation_id=correlation_id,
        ))

    async def log_classification(
        self,
        document_number: str,
        kind: str,
        label: str,
        classification: Classification,
        correlation_id: UUID,
    ) -> None:
        """
        Log the classifier's outcome.

        A defaulted classification gets an extra warning-level event so
        silent fallbacks show up in the audit trail.
        """
        await self.log(AuditEventBuilder.document_classified(
            document_number=document_number,
            debit_account=classification.debit_account,
            credit_account=classification.credit_account,
            journal_code=classification.journal_code.value,
            source=classification.source.value,
            correlation_id=correlation_id,
        ))
        if not classification.matched:
            await self.log(AuditEventBuilder.classification_defaulted(
                document_number=document_number,
                kind=kind,
                label=label,
                source=classification.source.value,
                correlation_id=correlation_id,
            ))

    async def log_entries_generated(
        self,
        result: GenerationResult,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.entries_generated(
            document_number=result.document.document_number,
            line_count=len(result.lines),
            total=str(result.total_debit),
            correlation_id=correlation_id,
        ))

    async def log_balance_check_failed(
        self,
        document_number: str,
        total_debit: str,
        total_credit: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.balance_check_failed(
            document_number=document_number,
            total_debit=total_debit,
            total_credit=total_credit,
            correlation_id=correlation_id,
        ))

    async def log_generation_rejected(
        self,
        document_number: str,
        error: Exception,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.generation_rejected(
            document_number=document_number,
            error_type=type(error).__name__,
            error_message=str(error),
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        document_number: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        await self.log(AuditEventBuilder.validation_failed(
            document_number=document_number,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_period_added(self, period: AccountingPeriod) -> None:
        await self.log(AuditEventBuilder.period_added(
            period_id=period.id,
            label=period.label,
            start_date=period.start_date.isoformat(),
            end_date=period.end_date.isoformat(),
        ))

    async def log_suggestions_served(
        self,
        kind: str,
        label_fragment: str,
        result_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.suggestions_served(
            kind=kind,
            label_fragment=label_fragment,
            result_count=result_count,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of one generation (or suggestion request).
    Pass it through all subsequent operations.
    """
    return uuid4()
