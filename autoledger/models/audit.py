"""
Audit Models for autoledger

Every significant step of entry generation is logged for audit purposes.
This provides:
1. Complete traceability of every generated document
2. Visibility of silent heuristics (defaulted classifications)
3. A record of rejected generations and why they failed

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from autoledger.models.ledger import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the generation pipeline has its own event type.
    """
    # Generation pipeline
    DOCUMENT_RECEIVED = "document_received"
    AMOUNTS_RESOLVED = "amounts_resolved"
    PERIOD_NOT_FOUND = "period_not_found"
    DOCUMENT_CLASSIFIED = "document_classified"
    CLASSIFICATION_DEFAULTED = "classification_defaulted"
    ENTRIES_GENERATED = "entries_generated"
    BALANCE_CHECK_FAILED = "balance_check_failed"
    GENERATION_REJECTED = "generation_rejected"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Reference data
    PERIOD_ADDED = "period_added"

    # Read side
    SUGGESTIONS_SERVED = "suggestions_served"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = Field(default=AuditSeverity.INFO)

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'document', 'period', 'suggestion')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Identifier of the entity (document number, period id)"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one generation)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_code, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_code or "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entries_generated(number, 3, "120.00", cid)
        event = AuditEventBuilder.period_not_found(number, day, cid)
    """

    @staticmethod
    def document_received(
        document_number: str,
        kind: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_RECEIVED,
            entity_type="document",
            entity_id=document_number,
            correlation_id=correlation_id,
            description=f"Document received: {document_number} ({kind})",
            details={"kind": kind},
        )

    @staticmethod
    def amounts_resolved(
        document_number: str,
        tax_exclusive: str,
        tax_amount: str,
        tax_inclusive: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AMOUNTS_RESOLVED,
            severity=AuditSeverity.DEBUG,
            entity_type="document",
            entity_id=document_number,
            correlation_id=correlation_id,
            description=f"Amounts resolved: {tax_exclusive} + {tax_amount} = {tax_inclusive}",
            details={
                "tax_exclusive": tax_exclusive,
                "tax_amount": tax_amount,
                "tax_inclusive": tax_inclusive,
            },
        )

    @staticmethod
    def period_not_found(
        document_number: str,
        operation_date: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERIOD_NOT_FOUND,
            severity=AuditSeverity.ERROR,
            entity_type="document",
            entity_id=document_number,
            correlation_id=correlation_id,
            description=f"No accounting period contains {operation_date}",
            details={"operation_date": operation_date},
            error_code="no_period_found",
        )

    @staticmethod
    def document_classified(
        document_number: str,
        debit_account: str,
        credit_account: str,
        journal_code: str,
        source: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_CLASSIFIED,
            entity_type="document",
            entity_id=document_number,
            correlation_id=correlation_id,
            description=f"Classified {debit_account} / {credit_account} in journal {journal_code}",
            details={
                "debit_account": debit_account,
                "credit_account": credit_account,
                "journal_code": journal_code,
                "source": source,
            },
        )

    @staticmethod
    def classification_defaulted(
        document_number: str,
        kind: str,
        label: str,
        source: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLASSIFICATION_DEFAULTED,
            severity=AuditSeverity.WARNING,
            entity_type="document",
            entity_id=document_number,
            correlation_id=correlation_id,
            description=f"No pattern matched for '{label[:80]}', default accounts used",
            details={
                "kind": kind,
                "label": label,
                "source": source,
            },
        )

    @staticmethod
    def entries_generated(
        document_number: str,
        line_count: int,
        total: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRIES_GENERATED,
            entity_type="document",
            entity_id=document_number,
            correlation_id=correlation_id,
            description=f"Generated {line_count} journal lines for {document_number} ({total})",
            details={
                "line_count": line_count,
                "total": total,
            },
        )

    @staticmethod
    def balance_check_failed(
        document_number: str,
        total_debit: str,
        total_credit: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_CHECK_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="document",
            entity_id=document_number,
            correlation_id=correlation_id,
            description=f"Ledger imbalance for {document_number}: {total_debit} != {total_credit}",
            details={
                "total_debit": total_debit,
                "total_credit": total_credit,
            },
            error_code="unbalanced_entry",
        )

    @staticmethod
    def generation_rejected(
        document_number: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GENERATION_REJECTED,
            severity=AuditSeverity.ERROR,
            entity_type="document",
            entity_id=document_number,
            correlation_id=correlation_id,
            description=f"Generation rejected for {document_number}: {error_type}",
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def validation_failed(
        document_number: str,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="document",
            entity_id=document_number,
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def period_added(
        period_id: UUID,
        label: str,
        start_date: str,
        end_date: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERIOD_ADDED,
            entity_type="period",
            entity_id=str(period_id),
            description=f"Accounting period added: {label}",
            details={
                "start_date": start_date,
                "end_date": end_date,
            },
        )

    @staticmethod
    def suggestions_served(
        kind: str,
        label_fragment: str,
        result_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUGGESTIONS_SERVED,
            severity=AuditSeverity.DEBUG,
            entity_type="suggestion",
            correlation_id=correlation_id,
            description=f"{result_count} suggestions for '{label_fragment[:80]}'",
            details={
                "kind": kind,
                "label_fragment": label_fragment,
                "result_count": result_count,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
