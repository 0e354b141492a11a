"""
Accounting engine: taxonomy, classification, amounts, periods,
entry generation, balance checks and suggestions.
"""

from autoledger.accounting.amounts import (
    AmountResolutionError,
    ImpliedRateOutOfRange,
    InconsistentAmounts,
    InsufficientAmountData,
    resolve_amounts,
)
from autoledger.accounting.balance import BalanceValidator, lines_balance
from autoledger.accounting.classifier import DocumentClassifier
from autoledger.accounting.generator import (
    EntryGenerationError,
    EntryGenerator,
    UnbalancedEntryError,
)
from autoledger.accounting.periods import (
    NoPeriodFound,
    PeriodError,
    PeriodResolver,
    ensure_no_overlap,
    select_period,
)
from autoledger.accounting.suggestions import SuggestionService
from autoledger.accounting.taxonomy import (
    AccountTaxonomy,
    KeyAccounts,
    TaxonomyCategory,
    build_default_taxonomy,
)

__all__ = [
    "AccountTaxonomy",
    "AmountResolutionError",
    "BalanceValidator",
    "DocumentClassifier",
    "EntryGenerationError",
    "EntryGenerator",
    "ImpliedRateOutOfRange",
    "InconsistentAmounts",
    "InsufficientAmountData",
    "KeyAccounts",
    "NoPeriodFound",
    "PeriodError",
    "PeriodResolver",
    "SuggestionService",
    "TaxonomyCategory",
    "UnbalancedEntryError",
    "build_default_taxonomy",
    "ensure_no_overlap",
    "lines_balance",
    "resolve_amounts",
    "select_period",
]
