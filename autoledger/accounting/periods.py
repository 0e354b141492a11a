"""
Period Resolver

Finds the accounting period containing an operation date.

CRITICAL: A missing period is fatal. We never create a period on the
fly; the generation is aborted and nothing is written.
"""

from datetime import date
from typing import Optional, Protocol

from autoledger.models.ledger import AccountingPeriod
from autoledger.services.storage.interface import OverlappingPeriodError


class PeriodSource(Protocol):
    """Anything that can list periods: a store or an open transaction."""

    async def list_periods(self) -> list[AccountingPeriod]:
        ...


class PeriodError(Exception):
    """Base exception for period resolution."""
    pass


class NoPeriodFound(PeriodError):
    """No accounting period contains the operation date."""

    def __init__(self, operation_date: date):
        self.operation_date = operation_date
        super().__init__(f"No accounting period contains {operation_date.isoformat()}")


def select_period(periods: list[AccountingPeriod], operation_date: date) -> AccountingPeriod:
    """
    Pick the period whose inclusive [start, end] range contains the date.

    Raises:
        NoPeriodFound: If none does
    """
    for period in periods:
        if period.contains(operation_date):
            return period
    raise NoPeriodFound(operation_date)


def ensure_no_overlap(periods: list[AccountingPeriod], candidate: AccountingPeriod) -> None:
    """
    Raises:
        OverlappingPeriodError: If candidate overlaps one of periods
    """
    for existing in periods:
        if existing.id != candidate.id and existing.overlaps(candidate):
            raise OverlappingPeriodError(candidate, existing)


class PeriodResolver:
    """Resolves periods against a store."""

    def __init__(self, source: PeriodSource):
        self.source = source

    async def find_period(
        self,
        operation_date: date,
        source: Optional[PeriodSource] = None,
    ) -> AccountingPeriod:
        """
        Find the period of an operation date.

        Args:
            operation_date: Date of the financial event
            source: Read from this instead of the default store, e.g. an
                    open transaction

        Raises:
            NoPeriodFound: If no period contains the date
        """
        periods = await (source or self.source).list_periods()
        return select_period(periods, operation_date)
