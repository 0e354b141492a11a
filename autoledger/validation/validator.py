"""
Two-Stage Validation Pipeline

DESIGN DECISION: A generation request is validated in two stages:

STAGE 1 - SCHEMA VALIDATION:
- Enough amounts to derive the others
- Non-zero total
- Tax not larger than the tax-inclusive total
- This catches malformed requests

STAGE 2 - SEMANTIC VALIDATION:
- HT + tax vs TTC consistency
- Unusual VAT rate
- Operation date far in the future
- Duplicate document number
- Operation date outside every accounting period
- This catches requests the generator would reject or that look wrong

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Can skip stage 2 if stage 1 fails
4. Stage 2 needs access to storage for duplicate and period checks

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the generator makes the final call.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from autoledger.accounting.amounts import (
    ImpliedRateOutOfRange,
    InconsistentAmounts,
    resolve_amounts,
)
from autoledger.accounting.periods import NoPeriodFound, select_period
from autoledger.config import get_settings
from autoledger.models.ledger import (
    DocumentInput,
    ValidationIssue,
    ValidationResult,
)
from autoledger.services.storage.interface import LedgerStorageInterface, StorageError


FRENCH_VAT_RATES = frozenset(
    Decimal(rate) for rate in ("20", "10", "5.5", "2.1", "0")
)


class DocumentValidator:
    """
    Validates generation requests through a two-stage pipeline.

    Stage 1: Schema validation (can run without storage)
    Stage 2: Semantic validation (uses storage when available)
    """

    def __init__(
        self,
        storage: Optional[LedgerStorageInterface] = None,
    ):
        """
        Args:
            storage: Ledger store for duplicate and period checks.
                     If None, those checks are skipped.
        """
        self._storage = storage
        self._settings = get_settings().app

    def _validate_schema(
        self,
        request: DocumentInput,
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        if request.tax_exclusive is None and request.tax_inclusive is None:
            issues.append(ValidationIssue(
                field="amounts",
                issue_type="missing",
                message="Either the tax-exclusive or the tax-inclusive amount is required",
                severity="error",
                suggested_fix="Provide the amount before or after tax",
            ))
        elif not any((request.tax_exclusive, request.tax_amount, request.tax_inclusive)):
            issues.append(ValidationIssue(
                field="amounts",
                issue_type="invalid_value",
                message="Document total is zero; there is nothing to record",
                severity="error",
            ))

        if (
            request.tax_amount is not None
            and request.tax_inclusive is not None
            and request.tax_amount > request.tax_inclusive
        ):
            issues.append(ValidationIssue(
                field="tax_amount",
                issue_type="invalid_value",
                message=(
                    f"Tax amount ({request.tax_amount}) exceeds the tax-inclusive "
                    f"amount ({request.tax_inclusive})"
                ),
                severity="error",
            ))

        if not request.label:
            issues.append(ValidationIssue(
                field="label",
                issue_type="missing",
                message="Label is empty; classification will fall back to defaults",
                severity="warning",
                suggested_fix="Describe the operation in a few words",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        request: DocumentInput,
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        try:
            resolve_amounts(
                tax_exclusive=request.tax_exclusive,
                tax_amount=request.tax_amount,
                tax_inclusive=request.tax_inclusive,
                tax_rate=request.tax_rate,
            )
        except InconsistentAmounts as e:
            issues.append(ValidationIssue(
                field="tax_inclusive",
                issue_type="inconsistent",
                message=f"Amounts do not add up: {e}",
                severity="error",
                suggested_fix="Check the tax-exclusive, tax and tax-inclusive amounts",
            ))
        except ImpliedRateOutOfRange as e:
            issues.append(ValidationIssue(
                field="tax_amount",
                issue_type="invalid_value",
                message=str(e),
                severity="error",
                suggested_fix="Give the tax rate, or check the tax amount",
            ))

        if request.tax_rate is not None and request.tax_rate not in FRENCH_VAT_RATES:
            issues.append(ValidationIssue(
                field="tax_rate",
                issue_type="suspicious_value",
                message=f"Tax rate {request.tax_rate}% is not a standard French VAT rate",
                severity="warning",
                suggested_fix="Usual rates are 20, 10, 5.5, 2.1 and 0",
            ))

        max_future_date = date.today() + timedelta(
            days=self._settings.future_date_tolerance_days
        )
        if request.operation_date > max_future_date:
            issues.append(ValidationIssue(
                field="operation_date",
                issue_type="future_date",
                message=f"Operation date ({request.operation_date}) is far in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    async def _check_storage(
        self,
        request: DocumentInput,
    ) -> list[ValidationIssue]:
        """Duplicate number and period existence."""
        issues = []

        if self._storage is None:
            return issues

        try:
            existing = await self._storage.get_document(request.document_number)
            periods = await self._storage.list_periods()
        except StorageError as e:
            issues.append(ValidationIssue(
                field="storage",
                issue_type="unavailable",
                message=f"Could not check the ledger: {e}",
                severity="warning",
            ))
            return issues

        if existing is not None:
            issues.append(ValidationIssue(
                field="document_number",
                issue_type="duplicate",
                message=f"Document number {request.document_number} is already recorded",
                severity="error",
                suggested_fix="Use the next free document number",
            ))

        try:
            select_period(periods, request.operation_date)
        except NoPeriodFound as e:
            issues.append(ValidationIssue(
                field="operation_date",
                issue_type="no_period",
                message=str(e),
                severity="error",
                suggested_fix="Open an accounting period covering this date",
            ))

        return issues

    async def validate(
        self,
        request: DocumentInput,
        check_storage: bool = True,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            request: The generation request to validate
            check_storage: Whether to run the duplicate and period checks

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(request)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(request)
            all_issues.extend(semantic_issues)

            if check_storage:
                storage_issues = await self._check_storage(request)
                all_issues.extend(storage_issues)
                if any(issue.severity == "error" for issue in storage_issues):
                    semantic_valid = False

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            document_number=request.document_number,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )


class DocumentValidationError(Exception):
    """A generation request failed validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        errors = [issue.message for issue in result.issues if issue.severity == "error"]
        super().__init__(
            f"Document {result.document_number} failed validation: " + "; ".join(errors)
        )
