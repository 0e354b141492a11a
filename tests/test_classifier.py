"""Tests for the taxonomy and the document classifier."""

import pytest

from autoledger.accounting.classifier import DocumentClassifier, normalize_text
from autoledger.accounting.taxonomy import build_default_taxonomy
from autoledger.models.ledger import ClassificationSource, DocumentKind, JournalCode


class TestTaxonomy:
    """Tests for the static account taxonomy."""

    def test_category_order_is_the_scan_order(self, taxonomy):
        """Categories are scanned in a fixed order."""
        names = [category.name for category in taxonomy.categories]
        assert names == [
            "purchases",
            "external_services",
            "payroll",
            "sales",
            "tax",
            "fixed_assets",
            "third_parties",
            "treasury",
        ]

    def test_key_accounts(self, taxonomy):
        """Key accounts hold the PCG codes."""
        keys = taxonomy.key_accounts
        assert keys.deductible_vat == "44566"
        assert keys.collected_vat == "44571"
        assert keys.receivables == "411"
        assert keys.payables == "401"
        assert keys.bank == "512"

    def test_chart_covers_every_emitted_code(self, taxonomy):
        """Every code the engine can emit has a label."""
        emitted = {
            "607", "2183", "2182", "2184", "6064", "6132", "616", "623", "622",
            "624", "626", "411", "707", "706", "7084", "625", "421", "6256",
            "6251", "6061", "627", "661", "164", "401", "512", "641", "44551",
            "44567", "44566", "44571", "658",
        }
        for category in taxonomy.categories:
            emitted.add(category.primary_account)
        missing = {code for code in emitted if taxonomy.account(code) is None}
        assert missing == set()

    def test_taxonomy_is_immutable(self, taxonomy):
        """The taxonomy cannot be changed after construction."""
        with pytest.raises(ValueError):
            taxonomy.key_accounts.bank = "531"

    def test_concept_lookup(self, taxonomy):
        """Accounts can be looked up by concept."""
        assert taxonomy.category("fixed_assets").code_for("computer_equipment") == "2183"
        assert taxonomy.category("treasury").code_for("unknown") is None


class TestKindRules:
    """Kind-specific handlers, first matching pattern wins."""

    @pytest.mark.parametrize("label,expected", [
        ("Achat marchandises", "607"),
        ("Ordinateur portable", "2183"),
        ("Véhicule utilitaire", "2182"),
        ("Mobilier de réception", "2184"),
        ("Fournitures de bureau", "6064"),
        ("Loyer mars", "6132"),
        ("Assurance multirisque", "616"),
        ("Campagne publicité", "623"),
        ("Honoraires expert-comptable", "622"),
        ("Livraison palettes", "624"),
        ("Forfait téléphone", "626"),
    ])
    def test_purchase_invoice_debit(self, classifier, label, expected):
        """Purchase labels select the expense or asset account."""
        result = classifier.classify(DocumentKind.PURCHASE_INVOICE, label)
        assert result.debit_account == expected
        assert result.credit_account == "401"
        assert result.journal_code == JournalCode.PURCHASES

    def test_purchase_default_is_reported(self, classifier):
        """An unmatched purchase uses 607 and says so."""
        result = classifier.classify(DocumentKind.PURCHASE_INVOICE, "Achat marchandises")
        assert result.source == ClassificationSource.KIND_DEFAULT
        assert not result.matched

    def test_purchase_rule_records_pattern(self, classifier):
        """The matched term is recorded."""
        result = classifier.classify(DocumentKind.PURCHASE_INVOICE, "Location matériel")
        assert result.source == ClassificationSource.KIND_RULE
        assert result.matched_pattern == "location"

    def test_first_matching_rule_wins(self, classifier):
        """Computer rule is checked before rent."""
        result = classifier.classify(DocumentKind.PURCHASE_INVOICE, "Location ordinateur")
        assert result.debit_account == "2183"

    def test_office_supplies_need_both_words(self, classifier):
        """Office supplies need both terms present."""
        result = classifier.classify(DocumentKind.PURCHASE_INVOICE, "Fournitures atelier")
        assert result.debit_account == "607"

    @pytest.mark.parametrize("label,expected", [
        ("Vente de marchandises", "707"),
        ("Prestation de conseil", "706"),
        ("Commission apport d'affaires", "7084"),
    ])
    def test_sales_invoice_credit(self, classifier, label, expected):
        """Sales labels select the income account."""
        result = classifier.classify(DocumentKind.SALES_INVOICE, label)
        assert result.debit_account == "411"
        assert result.credit_account == expected
        assert result.journal_code == JournalCode.SALES

    @pytest.mark.parametrize("label,expected", [
        ("Note de frais diverse", "625"),
        ("Restaurant client", "6256"),
        ("Hôtel Lyon", "6251"),
        ("Carburant", "6061"),
        ("Billet de train", "6251"),
        ("Taxi aéroport", "6251"),
    ])
    def test_expense_note_debit(self, classifier, label, expected):
        """Expense notes select the travel or meal account."""
        result = classifier.classify(DocumentKind.EXPENSE_NOTE, label)
        assert result.debit_account == expected
        assert result.credit_account == "421"
        assert result.journal_code == JournalCode.MISCELLANEOUS

    @pytest.mark.parametrize("label,expected", [
        ("Frais de tenue de compte", "627"),
        ("Intérêts crédit immobilier", "661"),
        ("Remboursement emprunt BPI", "164"),
        ("Virement fournisseur Dupont", "401"),
    ])
    def test_bank_statement_line_debit(self, classifier, label, expected):
        """Bank lines select fees, interest or loan accounts."""
        result = classifier.classify(DocumentKind.BANK_STATEMENT_LINE, label)
        assert result.debit_account == expected
        assert result.credit_account == "512"
        assert result.journal_code == JournalCode.BANK

    def test_interest_needs_credit_mention(self, classifier):
        """Interest alone is not enough for 661."""
        result = classifier.classify(DocumentKind.BANK_STATEMENT_LINE, "Intérêts créditeurs livret")
        assert result.debit_account == "661"
        result = classifier.classify(DocumentKind.BANK_STATEMENT_LINE, "Intérêts livret")
        assert result.debit_account == "401"

    def test_payroll_slip(self, classifier):
        """Payroll slips post salaries against staff payables."""
        result = classifier.classify(DocumentKind.PAYROLL_SLIP, "Salaires janvier")
        assert (result.debit_account, result.credit_account) == ("641", "421")
        assert result.journal_code == JournalCode.MISCELLANEOUS

    def test_vat_return_payment(self, classifier):
        """A VAT return pays VAT from the bank."""
        result = classifier.classify(DocumentKind.VAT_RETURN, "TVA décembre")
        assert (result.debit_account, result.credit_account) == ("44551", "512")
        assert result.journal_code == JournalCode.BANK

    def test_vat_return_credit(self, classifier):
        """A VAT credit moves to the credit account."""
        result = classifier.classify(DocumentKind.VAT_RETURN, "Crédit de TVA")
        assert (result.debit_account, result.credit_account) == ("44567", "44551")
        assert result.journal_code == JournalCode.MISCELLANEOUS

    def test_description_is_searched(self, classifier):
        """The description is matched as well as the label."""
        result = classifier.classify(
            DocumentKind.PURCHASE_INVOICE,
            "Facture 2024-118",
            "Abonnement internet fibre",
        )
        assert result.debit_account == "626"


class TestKeywordFallback:
    """Keyword scan for kinds without dedicated rules."""

    def test_keyword_selects_category_primary_account(self, classifier):
        """A keyword selects its category's primary account."""
        result = classifier.classify(DocumentKind.GENERIC_ADJUSTMENT, "Régularisation cotisation URSSAF")
        assert result.debit_account == "641"
        assert result.credit_account == "512"
        assert result.journal_code == JournalCode.MISCELLANEOUS
        assert result.source == ClassificationSource.KEYWORD
        assert result.matched_pattern == "cotisation"

    def test_first_category_in_order_wins(self, classifier):
        """Text with services and treasury keywords resolves to services."""
        result = classifier.classify(DocumentKind.GENERIC_ADJUSTMENT, "Virement banque loyer")
        assert result.debit_account == "6132"
        assert result.matched_pattern == "loyer"

    def test_accented_keyword_matches_plain_text(self, classifier):
        """Accents do not affect matching."""
        result = classifier.classify(DocumentKind.PROVISION_ENTRY, "Provision materiel")
        assert result.debit_account == "205"
        assert result.matched_pattern == "matériel"

    def test_no_match_falls_back_to_misc_expense(self, classifier):
        """Unmatched text falls back to 658."""
        result = classifier.classify(DocumentKind.GENERIC_ADJUSTMENT, "Régularisation diverse")
        assert (result.debit_account, result.credit_account) == ("658", "512")
        assert result.journal_code == JournalCode.MISCELLANEOUS
        assert result.source == ClassificationSource.FALLBACK
        assert not result.matched

    def test_empty_text_never_fails(self, classifier):
        """Empty text still classifies."""
        for kind in DocumentKind:
            result = classifier.classify(kind, "", None)
            assert result.debit_account
            assert result.credit_account

    @pytest.mark.parametrize("kind", [
        DocumentKind.SUPPLIER_CREDIT_NOTE,
        DocumentKind.CUSTOMER_CREDIT_NOTE,
        DocumentKind.DEPRECIATION_ENTRY,
        DocumentKind.PROVISION_ENTRY,
        DocumentKind.GENERIC_ADJUSTMENT,
    ])
    def test_other_kinds_use_keywords(self, classifier, kind):
        """Kinds without rules go through the keyword scan."""
        result = classifier.classify(kind, "Avoir fournisseur")
        assert result.source == ClassificationSource.KEYWORD
        assert result.debit_account == "411"


class TestClassifierContract:
    """Determinism and exhaustive dispatch."""

    def test_deterministic(self, classifier):
        """Same input, same classification."""
        first = classifier.classify(DocumentKind.EXPENSE_NOTE, "Repas équipe", "Restaurant")
        second = classifier.classify(DocumentKind.EXPENSE_NOTE, "Repas équipe", "Restaurant")
        assert first == second

    def test_handlers_must_cover_every_kind(self):
        """A registry missing a kind is refused."""
        class PartialClassifier(DocumentClassifier):
            def _build_handlers(self):
                handlers = super()._build_handlers()
                del handlers[DocumentKind.VAT_RETURN]
                return handlers

        with pytest.raises(ValueError, match="vat_return"):
            PartialClassifier(build_default_taxonomy())

    def test_normalize_text(self):
        """Text is lower-cased and stripped of accents."""
        assert normalize_text("Hôtel ÉTÉ") == "hotel ete"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
