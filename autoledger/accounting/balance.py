"""
Balance Validator

Sums the debit and credit legs of one document and checks that they
agree within the ledger tolerance.

Runs in two places:
1. Inside the generation transaction, before commit (blocking gate)
2. On demand, over committed lines, as an audit tool
"""

from decimal import Decimal
from typing import Optional, Protocol

from autoledger.models.ledger import BALANCE_TOLERANCE, BalanceReport, JournalLine


class LineSource(Protocol):
    """A store or an open transaction."""

    async def get_lines(self, document_number: str) -> list[JournalLine]:
        ...


def lines_balance(
    lines: list[JournalLine],
    tolerance: Decimal = BALANCE_TOLERANCE,
) -> bool:
    total_debit = sum((line.debit for line in lines), Decimal("0"))
    total_credit = sum((line.credit for line in lines), Decimal("0"))
    return abs(total_debit - total_credit) < tolerance


class BalanceValidator:

    def __init__(self, source: LineSource, tolerance: Decimal = BALANCE_TOLERANCE):
        self.source = source
        self.tolerance = tolerance

    def report(self, document_number: str, lines: list[JournalLine]) -> BalanceReport:
        """Build the report for lines already at hand."""
        return BalanceReport(
            document_number=document_number,
            line_count=len(lines),
            total_debit=sum((line.debit for line in lines), Decimal("0")),
            total_credit=sum((line.credit for line in lines), Decimal("0")),
            tolerance=self.tolerance,
        )

    async def check(
        self,
        document_number: str,
        source: Optional[LineSource] = None,
    ) -> BalanceReport:
        """Load the lines of a document and report its totals."""
        lines = await (source or self.source).get_lines(document_number)
        return self.report(document_number, lines)

    async def is_balanced(
        self,
        document_number: str,
        source: Optional[LineSource] = None,
    ) -> bool:
        report = await self.check(document_number, source)
        return report.is_balanced
