"""
Query Execution Engine

DESIGN DECISION: Queries are DETERMINISTIC aggregations over committed
journal lines. They return numbers only; presentation belongs to the
caller.

Three queries:
1. Account balances (optionally per period and/or account prefix)
2. Period summary: revenue (class 7), expenses (class 6), result,
   receivables (411), payables (401), treasury (class 5)
3. VAT position: collected (4457x credits) against deductible
   (4456x debits), giving VAT payable or a credit carried forward
"""

from collections import defaultdict
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from autoledger.accounting.taxonomy import AccountTaxonomy, build_default_taxonomy
from autoledger.models.ledger import (
    AccountBalance,
    AccountingPeriod,
    JournalLine,
    PeriodSummary,
    VatPosition,
)
from autoledger.services.storage.interface import LedgerStorageInterface, StorageError


logger = structlog.get_logger(__name__)

VAT_PREFIX = "445"
COLLECTED_VAT_PREFIX = "4457"
DEDUCTIBLE_VAT_PREFIX = "4456"


class QueryExecutionError(Exception):
    """Error during query execution."""
    pass


def _net(lines: list[JournalLine], prefix: str) -> Decimal:
    """Debit minus credit over accounts starting with prefix."""
    total = Decimal("0")
    for line in lines:
        if line.account_code.startswith(prefix):
            total += line.debit - line.credit
    return total


class LedgerQueryExecutor:
    """
    Executes read-only queries against the ledger store.

    GUARANTEES:
    - Only returns figures computed from stored lines
    - Never invents or estimates
    - An unknown period is an error, not an empty result
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        taxonomy: Optional[AccountTaxonomy] = None,
    ):
        self._storage = storage
        self._taxonomy = taxonomy or build_default_taxonomy()

    async def _lines(
        self,
        period_id: Optional[UUID] = None,
        account_prefix: Optional[str] = None,
    ) -> list[JournalLine]:
        try:
            return await self._storage.list_lines(
                period_id=period_id,
                account_prefix=account_prefix,
            )
        except StorageError as e:
            raise QueryExecutionError(f"Could not read journal lines: {e}") from e

    async def account_balances(
        self,
        period_id: Optional[UUID] = None,
        account_prefix: Optional[str] = None,
    ) -> list[AccountBalance]:
        """
        Debit/credit totals per account, ordered by account code.
        """
        lines = await self._lines(period_id, account_prefix)

        totals: dict[str, AccountBalance] = {}
        for line in lines:
            balance = totals.get(line.account_code)
            if balance is None:
                balance = AccountBalance(
                    account_code=line.account_code,
                    account_label=self._taxonomy.account_label(line.account_code),
                )
                totals[line.account_code] = balance
            balance.total_debit += line.debit
            balance.total_credit += line.credit
            balance.line_count += 1

        return [totals[code] for code in sorted(totals)]

    async def _period(self, period_id: UUID) -> AccountingPeriod:
        try:
            periods = await self._storage.list_periods()
        except StorageError as e:
            raise QueryExecutionError(f"Could not read periods: {e}") from e

        period = next((p for p in periods if p.id == period_id), None)
        if period is None:
            raise QueryExecutionError(f"Unknown accounting period: {period_id}")
        return period

    async def period_summary(self, period_id: UUID) -> PeriodSummary:
        """
        Headline figures of one period.

        Raises:
            QueryExecutionError: Unknown period or store failure
        """
        period = await self._period(period_id)
        lines = await self._lines(period_id)
        documents = defaultdict(int)
        for line in lines:
            documents[line.document_number] += 1

        summary = PeriodSummary(
            period_id=period.id,
            period_label=period.label,
            revenue=-_net(lines, "7"),
            expenses=_net(lines, "6"),
            receivables=_net(lines, "411"),
            payables=-_net(lines, "401"),
            treasury=_net(lines, "5"),
            document_count=len(documents),
        )
        logger.info(
            "Period summary computed",
            period=period.label,
            documents=summary.document_count,
            result=str(summary.result),
        )
        return summary

    async def vat_position(self, period_id: UUID) -> VatPosition:
        """
        VAT to declare for one period (the figure a VAT return records).

        Raises:
            QueryExecutionError: Unknown period or store failure
        """
        period = await self._period(period_id)
        lines = await self._lines(period_id, account_prefix=VAT_PREFIX)

        position = VatPosition(
            period_id=period.id,
            period_label=period.label,
            collected=sum(
                (line.credit for line in lines if line.account_code.startswith(COLLECTED_VAT_PREFIX)),
                Decimal("0"),
            ),
            deductible=sum(
                (line.debit for line in lines if line.account_code.startswith(DEDUCTIBLE_VAT_PREFIX)),
                Decimal("0"),
            ),
        )
        logger.info(
            "VAT position computed",
            period=period.label,
            payable=str(position.payable),
            credit=str(position.credit_carried_forward),
        )
        return position
