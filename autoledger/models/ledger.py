"""
Core Ledger Models for autoledger

These models define the strict schemas for everything flowing through
the entry generation engine:
1. The generation request (DocumentInput)
2. The persisted records (SourceDocument, JournalLine, AccountingPeriod)
3. Intermediate results (ResolvedAmounts, Classification)
4. Outputs (GenerationResult, BalanceReport, AccountSuggestion)

DESIGN DECISION: All monetary values are Decimal.
Binary floats drift on cent amounts; the ledger tolerance (0.01) is for
rounding of derived tax amounts, not for float noise.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


BALANCE_TOLERANCE = Decimal("0.01")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class DocumentKind(str, Enum):
    """
    Kinds of source documents the engine knows how to record.

    CRITICAL: The kind is chosen by the caller. It is never inferred
    from the label, because the journal line shape depends on it.
    """
    PURCHASE_INVOICE = "purchase_invoice"
    SALES_INVOICE = "sales_invoice"
    EXPENSE_NOTE = "expense_note"
    BANK_STATEMENT_LINE = "bank_statement_line"
    SUPPLIER_CREDIT_NOTE = "supplier_credit_note"
    CUSTOMER_CREDIT_NOTE = "customer_credit_note"
    PAYROLL_SLIP = "payroll_slip"
    VAT_RETURN = "vat_return"
    DEPRECIATION_ENTRY = "depreciation_entry"
    PROVISION_ENTRY = "provision_entry"
    GENERIC_ADJUSTMENT = "generic_adjustment"


class DocumentStatus(str, Enum):
    """Source document status."""
    DRAFT = "draft"
    VALID = "valid"
    CANCELLED = "cancelled"


class AccountCategory(str, Enum):
    """Reporting category of a ledger account. Not used for generation."""
    ASSET = "asset"
    LIABILITY = "liability"
    INCOME = "income"
    EXPENSE = "expense"
    TAX = "tax"
    EQUITY = "equity"


class JournalCode(str, Enum):
    """Journal codes grouping lines by transaction origin."""
    PURCHASES = "AC"
    SALES = "VE"
    BANK = "BQ"
    CASH = "CA"
    MISCELLANEOUS = "OD"
    PAYROLL = "PA"
    FIXED_ASSETS = "IM"
    VAT = "TV"


class ClassificationSource(str, Enum):
    """
    How the classifier reached its answer.

    KIND_RULE and KEYWORD mean some text actually matched.
    KIND_DEFAULT and FALLBACK mean nothing matched and a default was used.
    """
    KIND_RULE = "kind_rule"
    KIND_DEFAULT = "kind_default"
    KEYWORD = "keyword"
    FALLBACK = "fallback"


# =============================================================================
# REFERENCE DATA
# =============================================================================

class LedgerAccount(BaseModel):
    """An entry of the chart of accounts."""
    model_config = ConfigDict(frozen=True)

    code: str = Field(..., pattern=r"^\d{2,8}$")
    label: str
    category: AccountCategory


class Journal(BaseModel):
    """A journal of the reference table."""
    model_config = ConfigDict(frozen=True)

    code: JournalCode
    label: str


class AccountingPeriod(BaseModel):
    """
    An accounting period (fiscal year or shorter).

    Both bounds are inclusive. Periods of one ledger never overlap;
    the stores enforce this when a period is added.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    label: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date
    closed: bool = Field(
        default=False,
        description="Informational only; closing workflows are handled elsewhere"
    )

    @model_validator(mode='after')
    def validate_range(self) -> 'AccountingPeriod':
        if self.end_date < self.start_date:
            raise ValueError("Period end cannot be before start")
        return self

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def overlaps(self, other: 'AccountingPeriod') -> bool:
        return self.start_date <= other.end_date and other.start_date <= self.end_date


# =============================================================================
# GENERATION REQUEST
# =============================================================================

class DocumentInput(BaseModel):
    """
    The raw fields a collaborator hands to the engine.

    Amounts are all optional here; the amount resolver derives the
    missing one and fails loudly when it cannot.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    document_number: str = Field(..., min_length=1, max_length=30)
    document_kind: DocumentKind
    operation_date: date
    label: str = Field(..., max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)

    tax_exclusive: Optional[Decimal] = Field(default=None, ge=0)
    tax_amount: Optional[Decimal] = Field(default=None, ge=0)
    tax_inclusive: Optional[Decimal] = Field(default=None, ge=0)
    tax_rate: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=100,
        description="Tax rate in percent; the configured default applies when absent"
    )


class ResolvedAmounts(BaseModel):
    """Complete HT / tax / TTC triple."""
    model_config = ConfigDict(frozen=True)

    tax_exclusive: Decimal
    tax_amount: Decimal
    tax_inclusive: Decimal
    tax_rate: Decimal


class Classification(BaseModel):
    """Accounts and journal selected for a document."""
    model_config = ConfigDict(frozen=True)

    debit_account: str
    credit_account: str
    journal_code: JournalCode
    source: ClassificationSource
    matched_pattern: Optional[str] = Field(
        default=None,
        description="Pattern or keyword that decided the outcome, if any"
    )

    @property
    def matched(self) -> bool:
        """True when some text matched; False when a default was used."""
        return self.source in (ClassificationSource.KIND_RULE, ClassificationSource.KEYWORD)


# =============================================================================
# PERSISTED RECORDS
# =============================================================================

class SourceDocument(BaseModel):
    """
    One recorded financial event.

    Created once, together with its journal lines. Never mutated after
    validation except for a status transition to cancelled.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    document_number: str = Field(..., min_length=1, max_length=30)
    kind: DocumentKind
    operation_date: date
    label: str = Field(..., max_length=200)
    description: Optional[str] = None

    tax_exclusive: Decimal = Field(..., ge=0)
    tax_amount: Decimal = Field(..., ge=0)
    tax_inclusive: Decimal = Field(..., ge=0)
    tax_rate: Decimal = Field(..., ge=0, le=100)

    status: DocumentStatus = Field(default=DocumentStatus.DRAFT)
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_amounts(self) -> 'SourceDocument':
        """Tax-inclusive must equal tax-exclusive plus tax."""
        gap = abs(self.tax_exclusive + self.tax_amount - self.tax_inclusive)
        if gap >= BALANCE_TOLERANCE:
            raise ValueError(
                f"Tax-inclusive amount {self.tax_inclusive} does not equal "
                f"{self.tax_exclusive} + {self.tax_amount}"
            )
        return self


class JournalLine(BaseModel):
    """
    A single debit or credit against one account.

    Belongs to exactly one source document and one accounting period.
    """

    id: UUID = Field(default_factory=uuid4)
    document_number: str = Field(..., min_length=1)
    period_id: UUID
    journal_code: JournalCode
    operation_date: date
    account_code: str = Field(..., min_length=1)
    label: str
    debit: Decimal = Field(default=Decimal("0"), ge=0)
    credit: Decimal = Field(default=Decimal("0"), ge=0)

    @model_validator(mode='after')
    def validate_single_side(self) -> 'JournalLine':
        if (self.debit > 0) == (self.credit > 0):
            raise ValueError("Exactly one of debit or credit must be non-zero")
        return self

    @property
    def is_debit(self) -> bool:
        return self.debit > 0

    @property
    def amount(self) -> Decimal:
        return self.debit if self.is_debit else self.credit


# =============================================================================
# RESULTS
# =============================================================================

class EntryPreview(BaseModel):
    """Proposed entry, computed without touching storage."""

    amounts: ResolvedAmounts
    classification: Classification
    period: AccountingPeriod
    lines: list[JournalLine]

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))


class GenerationResult(BaseModel):
    """A persisted document with its journal lines."""

    document: SourceDocument
    lines: list[JournalLine]
    classification: Classification
    period: AccountingPeriod

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))


class BalanceReport(BaseModel):
    """Debit and credit totals of one document."""

    document_number: str
    line_count: int = Field(ge=0)
    total_debit: Decimal
    total_credit: Decimal
    tolerance: Decimal = BALANCE_TOLERANCE

    @property
    def difference(self) -> Decimal:
        return self.total_debit - self.total_credit

    @property
    def is_balanced(self) -> bool:
        return abs(self.difference) < self.tolerance


class AccountSuggestion(BaseModel):
    """A historical account choice for a similar label."""

    account_code: str
    sample_label: str
    frequency: int = Field(ge=1)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'inconsistent', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (presence, signs)
    Stage 2: Semantic validation (consistency, duplicates)
    """

    document_number: str
    validated_at: datetime = Field(default_factory=utc_now)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# QUERY MODELS
# =============================================================================

class AccountBalance(BaseModel):
    """Debit/credit movements of one account."""

    account_code: str
    account_label: Optional[str] = None
    total_debit: Decimal = Decimal("0")
    total_credit: Decimal = Decimal("0")
    line_count: int = 0

    @property
    def balance(self) -> Decimal:
        """Debit-positive balance."""
        return self.total_debit - self.total_credit


class PeriodSummary(BaseModel):
    """Headline figures of one accounting period."""

    period_id: UUID
    period_label: str
    revenue: Decimal
    expenses: Decimal
    receivables: Decimal
    payables: Decimal
    treasury: Decimal
    document_count: int = Field(ge=0)

    @property
    def result(self) -> Decimal:
        return self.revenue - self.expenses


class VatPosition(BaseModel):
    """
    VAT owed or carried forward for one period.

    Collected VAT sums the credits of 4457x accounts, deductible VAT
    the debits of 4456x accounts.
    """

    period_id: UUID
    period_label: str
    collected: Decimal
    deductible: Decimal

    @property
    def payable(self) -> Decimal:
        return max(Decimal("0"), self.collected - self.deductible)

    @property
    def credit_carried_forward(self) -> Decimal:
        return max(Decimal("0"), self.deductible - self.collected)
