"""
Account Taxonomy

The static table the classifier works from:
1. Semantic categories (purchases, services, payroll, ...) with their
   trigger keywords and canonical account codes
2. The key accounts every entry shape needs (VAT, receivables, bank, ...)
3. The chart of accounts and the journal reference table

DESIGN DECISION: The taxonomy is an immutable object built once at
startup and handed to the classifier, rather than module-level state
that anything could patch. Category order matters: the keyword
fallback scans categories in the order they are declared here.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from autoledger.models.ledger import (
    AccountCategory,
    Journal,
    JournalCode,
    LedgerAccount,
)


class TaxonomyCategory(BaseModel):
    """One semantic category of the taxonomy."""
    model_config = ConfigDict(frozen=True)

    name: str
    keywords: tuple[str, ...]
    # Ordered (concept, code) pairs; the first one is the category's
    # representative account
    accounts: tuple[tuple[str, str], ...] = Field(..., min_length=1)

    @property
    def primary_account(self) -> str:
        return self.accounts[0][1]

    def code_for(self, concept: str) -> Optional[str]:
        for name, code in self.accounts:
            if name == concept:
                return code
        return None


class KeyAccounts(BaseModel):
    """Accounts used directly by the entry shapes."""
    model_config = ConfigDict(frozen=True)

    deductible_vat: str = "44566"
    collected_vat: str = "44571"
    vat_payable: str = "44551"
    vat_credit: str = "44567"
    receivables: str = "411"
    payables: str = "401"
    bank: str = "512"
    cash: str = "531"
    staff_payables: str = "421"
    misc_expense: str = "658"


class AccountTaxonomy(BaseModel):
    """
    Read-only account taxonomy.

    Built with build_default_taxonomy() unless a caller needs a
    different chart.
    """
    model_config = ConfigDict(frozen=True)

    categories: tuple[TaxonomyCategory, ...]
    key_accounts: KeyAccounts = Field(default_factory=KeyAccounts)
    chart: tuple[LedgerAccount, ...] = ()
    journals: tuple[Journal, ...] = ()

    @model_validator(mode='after')
    def validate_unique_categories(self) -> 'AccountTaxonomy':
        names = [c.name for c in self.categories]
        if len(names) != len(set(names)):
            raise ValueError("Category names must be unique")
        return self

    def category(self, name: str) -> TaxonomyCategory:
        for category in self.categories:
            if category.name == name:
                return category
        raise KeyError(name)

    def account(self, code: str) -> Optional[LedgerAccount]:
        """Look up a chart entry by code."""
        for account in self.chart:
            if account.code == code:
                return account
        return None

    def account_label(self, code: str) -> Optional[str]:
        account = self.account(code)
        return account.label if account else None

    def journal(self, code: JournalCode) -> Optional[Journal]:
        for journal in self.journals:
            if journal.code == code:
                return journal
        return None


# =============================================================================
# DEFAULT FRENCH PCG TAXONOMY
# =============================================================================

_CATEGORIES = (
    TaxonomyCategory(
        name="purchases",
        keywords=("achat", "fourniture", "marchandise", "stock", "approvisionnement"),
        accounts=(
            ("goods", "607"),
            ("raw_materials", "601"),
            ("office_supplies", "6064"),
            ("small_equipment", "6063"),
        ),
    ),
    TaxonomyCategory(
        name="external_services",
        keywords=("location", "loyer", "maintenance", "entretien", "assurance", "publicité"),
        accounts=(
            ("property_rent", "6132"),
            ("equipment_rent", "6135"),
            ("repairs", "6152"),
            ("insurance", "616"),
            ("advertising", "623"),
            ("fees", "622"),
            ("bank_charges", "627"),
        ),
    ),
    TaxonomyCategory(
        name="payroll",
        keywords=("salaire", "paie", "cotisation", "urssaf", "retraite", "mutuelle"),
        accounts=(
            ("gross_salaries", "641"),
            ("social_security", "6451"),
            ("pension", "6453"),
            ("health_cover", "6454"),
            ("training", "6333"),
        ),
    ),
    TaxonomyCategory(
        name="sales",
        keywords=("vente", "chiffre", "facture client", "prestation", "service rendu"),
        accounts=(
            ("goods_sold", "707"),
            ("services_rendered", "706"),
            ("commissions", "7084"),
            ("ancillary_income", "708"),
        ),
    ),
    TaxonomyCategory(
        name="tax",
        keywords=("tva", "taxe valeur ajoutée"),
        accounts=(
            ("deductible_vat", "44566"),
            ("collected_vat", "44571"),
            ("vat_payable", "44551"),
            ("vat_credit", "44567"),
        ),
    ),
    TaxonomyCategory(
        name="fixed_assets",
        keywords=("ordinateur", "véhicule", "mobilier", "matériel", "logiciel", "brevet"),
        accounts=(
            ("software", "205"),
            ("computer_equipment", "2183"),
            ("furniture", "2184"),
            ("vehicles", "2182"),
            ("fixtures", "2135"),
        ),
    ),
    TaxonomyCategory(
        name="third_parties",
        keywords=("client", "fournisseur", "créance", "dette"),
        accounts=(
            ("receivables", "411"),
            ("payables", "401"),
            ("doubtful_receivables", "416"),
            ("asset_payables", "404"),
        ),
    ),
    TaxonomyCategory(
        name="treasury",
        keywords=("banque", "virement", "chèque", "espèces", "caisse", "carte bancaire"),
        accounts=(
            ("bank", "512"),
            ("cash", "531"),
            ("internal_transfers", "58"),
        ),
    ),
)

_A = AccountCategory

_CHART = (
    LedgerAccount(code="164", label="Emprunts auprès des établissements de crédit", category=_A.LIABILITY),
    LedgerAccount(code="205", label="Concessions, brevets, licences, logiciels", category=_A.ASSET),
    LedgerAccount(code="2135", label="Installations générales, agencements", category=_A.ASSET),
    LedgerAccount(code="2182", label="Matériel de transport", category=_A.ASSET),
    LedgerAccount(code="2183", label="Matériel de bureau et informatique", category=_A.ASSET),
    LedgerAccount(code="2184", label="Mobilier", category=_A.ASSET),
    LedgerAccount(code="401", label="Fournisseurs", category=_A.LIABILITY),
    LedgerAccount(code="404", label="Fournisseurs d'immobilisations", category=_A.LIABILITY),
    LedgerAccount(code="411", label="Clients", category=_A.ASSET),
    LedgerAccount(code="416", label="Clients douteux", category=_A.ASSET),
    LedgerAccount(code="421", label="Personnel - Rémunérations dues", category=_A.LIABILITY),
    LedgerAccount(code="44551", label="TVA à décaisser", category=_A.TAX),
    LedgerAccount(code="44566", label="TVA déductible sur autres biens et services", category=_A.TAX),
    LedgerAccount(code="44567", label="Crédit de TVA à reporter", category=_A.TAX),
    LedgerAccount(code="44571", label="TVA collectée", category=_A.TAX),
    LedgerAccount(code="512", label="Banques", category=_A.ASSET),
    LedgerAccount(code="531", label="Caisse", category=_A.ASSET),
    LedgerAccount(code="58", label="Virements internes", category=_A.ASSET),
    LedgerAccount(code="601", label="Achats stockés - Matières premières", category=_A.EXPENSE),
    LedgerAccount(code="6061", label="Fournitures non stockables (eau, énergie, carburant)", category=_A.EXPENSE),
    LedgerAccount(code="6063", label="Fournitures d'entretien et petit équipement", category=_A.EXPENSE),
    LedgerAccount(code="6064", label="Fournitures administratives", category=_A.EXPENSE),
    LedgerAccount(code="607", label="Achats de marchandises", category=_A.EXPENSE),
    LedgerAccount(code="6132", label="Locations immobilières", category=_A.EXPENSE),
    LedgerAccount(code="6135", label="Locations mobilières", category=_A.EXPENSE),
    LedgerAccount(code="6152", label="Entretien et réparations", category=_A.EXPENSE),
    LedgerAccount(code="616", label="Primes d'assurance", category=_A.EXPENSE),
    LedgerAccount(code="622", label="Rémunérations d'intermédiaires et honoraires", category=_A.EXPENSE),
    LedgerAccount(code="623", label="Publicité, publications, relations publiques", category=_A.EXPENSE),
    LedgerAccount(code="624", label="Transports de biens", category=_A.EXPENSE),
    LedgerAccount(code="625", label="Déplacements, missions et réceptions", category=_A.EXPENSE),
    LedgerAccount(code="6251", label="Voyages et déplacements", category=_A.EXPENSE),
    LedgerAccount(code="6256", label="Missions", category=_A.EXPENSE),
    LedgerAccount(code="626", label="Frais postaux et de télécommunications", category=_A.EXPENSE),
    LedgerAccount(code="627", label="Services bancaires et assimilés", category=_A.EXPENSE),
    LedgerAccount(code="6333", label="Participation à la formation professionnelle", category=_A.EXPENSE),
    LedgerAccount(code="641", label="Rémunérations du personnel", category=_A.EXPENSE),
    LedgerAccount(code="6451", label="Cotisations à l'URSSAF", category=_A.EXPENSE),
    LedgerAccount(code="6453", label="Cotisations aux caisses de retraite", category=_A.EXPENSE),
    LedgerAccount(code="6454", label="Cotisations aux mutuelles", category=_A.EXPENSE),
    LedgerAccount(code="658", label="Charges diverses de gestion courante", category=_A.EXPENSE),
    LedgerAccount(code="661", label="Charges d'intérêts", category=_A.EXPENSE),
    LedgerAccount(code="706", label="Prestations de services", category=_A.INCOME),
    LedgerAccount(code="707", label="Ventes de marchandises", category=_A.INCOME),
    LedgerAccount(code="708", label="Produits des activités annexes", category=_A.INCOME),
    LedgerAccount(code="7084", label="Commissions et courtages", category=_A.INCOME),
)

_JOURNALS = (
    Journal(code=JournalCode.PURCHASES, label="Achats"),
    Journal(code=JournalCode.SALES, label="Ventes"),
    Journal(code=JournalCode.BANK, label="Banque"),
    Journal(code=JournalCode.CASH, label="Caisse"),
    Journal(code=JournalCode.MISCELLANEOUS, label="Opérations diverses"),
    Journal(code=JournalCode.PAYROLL, label="Paie"),
    Journal(code=JournalCode.FIXED_ASSETS, label="Immobilisations"),
    Journal(code=JournalCode.VAT, label="TVA"),
)


def build_default_taxonomy() -> AccountTaxonomy:
    """Build the French PCG taxonomy used by default."""
    return AccountTaxonomy(
        categories=_CATEGORIES,
        key_accounts=KeyAccounts(),
        chart=_CHART,
        journals=_JOURNALS,
    )
