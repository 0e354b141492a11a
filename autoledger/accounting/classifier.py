"""
Document Classifier

Picks the debit account, credit account and journal for a document.

Two layers:
1. A handler per DocumentKind with fixed default accounts and an ordered
   list of text patterns that redirect them (first match wins)
2. A keyword scan over the taxonomy categories for kinds without
   dedicated rules (credit notes, depreciation, provisions, adjustments)

DESIGN DECISION: Classification never fails.
Unmatched text falls through to a default, but the result says so
(Classification.source), so callers can audit or flag it.

Text is lower-cased and stripped of accents before matching, so
"Hôtel" and "hotel" hit the same rule.
"""

import unicodedata
from typing import Callable, NamedTuple, Optional

import structlog

from autoledger.accounting.taxonomy import AccountTaxonomy, build_default_taxonomy
from autoledger.models.ledger import (
    Classification,
    ClassificationSource,
    DocumentKind,
    JournalCode,
)


logger = structlog.get_logger(__name__)


def normalize_text(text: str) -> str:
    """Lower-case and drop accents."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


class PatternRule(NamedTuple):
    """
    A text override inside a kind handler.

    Matches when any of `any_of` and all of `all_of` occur in the text.
    Unset accounts/journal keep the handler defaults.
    """
    any_of: tuple[str, ...]
    debit: Optional[str] = None
    credit: Optional[str] = None
    journal: Optional[JournalCode] = None
    all_of: tuple[str, ...] = ()

    def match(self, text: str) -> Optional[str]:
        for term in self.any_of:
            if term in text and all(extra in text for extra in self.all_of):
                return term
        return None


class KindHandler(NamedTuple):
    """Default accounts for one document kind plus its overrides."""
    debit: str
    credit: str
    journal: JournalCode
    rules: tuple[PatternRule, ...] = ()

    def __call__(self, text: str) -> Classification:
        for rule in self.rules:
            term = rule.match(text)
            if term is not None:
                return Classification(
                    debit_account=rule.debit or self.debit,
                    credit_account=rule.credit or self.credit,
                    journal_code=rule.journal or self.journal,
                    source=ClassificationSource.KIND_RULE,
                    matched_pattern=term,
                )
        return Classification(
            debit_account=self.debit,
            credit_account=self.credit,
            journal_code=self.journal,
            source=ClassificationSource.KIND_DEFAULT,
        )


Handler = Callable[[str], Classification]


class DocumentClassifier:
    """
    Kind-dispatched classifier.

    Usage:
        classifier = DocumentClassifier(build_default_taxonomy())
        result = classifier.classify(DocumentKind.PURCHASE_INVOICE, "Loyer mars")
        result.debit_account  # "6132"
    """

    def __init__(self, taxonomy: Optional[AccountTaxonomy] = None):
        self.taxonomy = taxonomy or build_default_taxonomy()
        self._handlers: dict[DocumentKind, Handler] = self._build_handlers()

        missing = [kind.value for kind in DocumentKind if kind not in self._handlers]
        if missing:
            raise ValueError(f"No classification handler for: {', '.join(missing)}")

    def _build_handlers(self) -> dict[DocumentKind, Handler]:
        keys = self.taxonomy.key_accounts

        purchase = KindHandler(
            debit="607",
            credit=keys.payables,
            journal=JournalCode.PURCHASES,
            rules=(
                PatternRule(("ordinateur", "informatique"), debit="2183"),
                PatternRule(("vehicule", "voiture"), debit="2182"),
                PatternRule(("mobilier",), debit="2184"),
                PatternRule(("fourniture",), debit="6064", all_of=("bureau",)),
                PatternRule(("location", "loyer"), debit="6132"),
                PatternRule(("assurance",), debit="616"),
                PatternRule(("publicite", "marketing"), debit="623"),
                PatternRule(("honoraire", "consultant"), debit="622"),
                PatternRule(("transport", "livraison"), debit="624"),
                PatternRule(("telephone", "internet"), debit="626"),
            ),
        )

        sales = KindHandler(
            debit=keys.receivables,
            credit="707",
            journal=JournalCode.SALES,
            rules=(
                PatternRule(("prestation", "service"), credit="706"),
                PatternRule(("commission",), credit="7084"),
            ),
        )

        expense_note = KindHandler(
            debit="625",
            credit=keys.staff_payables,
            journal=JournalCode.MISCELLANEOUS,
            rules=(
                PatternRule(("restaurant", "repas"), debit="6256"),
                PatternRule(("hotel", "hebergement"), debit="6251"),
                PatternRule(("essence", "carburant"), debit="6061"),
                PatternRule(("train", "avion"), debit="6251"),
                PatternRule(("taxi", "uber"), debit="6251"),
            ),
        )

        bank_line = KindHandler(
            debit=keys.payables,
            credit=keys.bank,
            journal=JournalCode.BANK,
            rules=(
                PatternRule(("frais", "commission bancaire"), debit="627"),
                PatternRule(("interet",), debit="661", all_of=("credit",)),
                PatternRule(("remboursement",), debit="164", all_of=("emprunt",)),
            ),
        )

        payroll = KindHandler(
            debit="641",
            credit=keys.staff_payables,
            journal=JournalCode.MISCELLANEOUS,
        )

        vat_return = KindHandler(
            debit=keys.vat_payable,
            credit=keys.bank,
            journal=JournalCode.BANK,
            rules=(
                PatternRule(
                    ("credit",),
                    debit=keys.vat_credit,
                    credit=keys.vat_payable,
                    journal=JournalCode.MISCELLANEOUS,
                ),
            ),
        )

        handlers: dict[DocumentKind, Handler] = {
            DocumentKind.PURCHASE_INVOICE: purchase,
            DocumentKind.SALES_INVOICE: sales,
            DocumentKind.EXPENSE_NOTE: expense_note,
            DocumentKind.BANK_STATEMENT_LINE: bank_line,
            DocumentKind.PAYROLL_SLIP: payroll,
            DocumentKind.VAT_RETURN: vat_return,
        }
        for kind in (
            DocumentKind.SUPPLIER_CREDIT_NOTE,
            DocumentKind.CUSTOMER_CREDIT_NOTE,
            DocumentKind.DEPRECIATION_ENTRY,
            DocumentKind.PROVISION_ENTRY,
            DocumentKind.GENERIC_ADJUSTMENT,
        ):
            handlers[kind] = self.classify_by_keywords
        return handlers

    def classify_by_keywords(self, text: str) -> Classification:
        """
        Scan the taxonomy categories in order; the first keyword found
        selects that category's primary account, debited against bank.
        """
        keys = self.taxonomy.key_accounts
        for category in self.taxonomy.categories:
            for keyword in category.keywords:
                if normalize_text(keyword) in text:
                    return Classification(
                        debit_account=category.primary_account,
                        credit_account=keys.bank,
                        journal_code=JournalCode.MISCELLANEOUS,
                        source=ClassificationSource.KEYWORD,
                        matched_pattern=keyword,
                    )
        return Classification(
            debit_account=keys.misc_expense,
            credit_account=keys.bank,
            journal_code=JournalCode.MISCELLANEOUS,
            source=ClassificationSource.FALLBACK,
        )

    def classify(
        self,
        kind: DocumentKind,
        label: str,
        description: Optional[str] = "",
    ) -> Classification:
        """
        Classify a document.

        Args:
            kind: Document kind chosen by the caller
            label: Short label, may be empty
            description: Optional free text

        Returns:
            Classification; never raises for any text
        """
        text = normalize_text(f"{label or ''} {description or ''}")
        result = self._handlers[kind](text)

        logger.debug(
            "Document classified",
            kind=kind.value,
            debit=result.debit_account,
            credit=result.credit_account,
            journal=result.journal_code.value,
            source=result.source.value,
        )
        return result
