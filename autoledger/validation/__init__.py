"""Request validation package."""

from autoledger.validation.validator import (
    FRENCH_VAT_RATES,
    DocumentValidationError,
    DocumentValidator,
)

__all__ = ["DocumentValidationError", "DocumentValidator", "FRENCH_VAT_RATES"]
