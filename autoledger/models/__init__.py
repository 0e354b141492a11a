"""
Data Models Package

This package contains all Pydantic models used by autoledger.
All data flowing through the engine must conform to these schemas.
"""

from autoledger.models.ledger import (
    BALANCE_TOLERANCE,
    AccountBalance,
    AccountCategory,
    AccountSuggestion,
    AccountingPeriod,
    BalanceReport,
    Classification,
    ClassificationSource,
    DocumentInput,
    DocumentKind,
    DocumentStatus,
    EntryPreview,
    GenerationResult,
    Journal,
    JournalCode,
    JournalLine,
    LedgerAccount,
    PeriodSummary,
    ResolvedAmounts,
    SourceDocument,
    ValidationIssue,
    ValidationResult,
    VatPosition,
)
from autoledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "BALANCE_TOLERANCE",
    "AccountBalance",
    "AccountCategory",
    "AccountSuggestion",
    "AccountingPeriod",
    "BalanceReport",
    "Classification",
    "ClassificationSource",
    "DocumentInput",
    "DocumentKind",
    "DocumentStatus",
    "EntryPreview",
    "GenerationResult",
    "Journal",
    "JournalCode",
    "JournalLine",
    "LedgerAccount",
    "PeriodSummary",
    "ResolvedAmounts",
    "SourceDocument",
    "ValidationIssue",
    "ValidationResult",
    "VatPosition",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
