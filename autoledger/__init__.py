"""
autoledger - Source Package

Automatic double-entry ledger generation: turns a loosely structured
source document into a balanced set of journal lines tied to an
accounting period (French PCG chart of accounts).

DESIGN PRINCIPLES:
1. The ledger always balances, checked before anything is committed
2. Fail early, fail visibly (missing period, missing amounts)
3. Heuristics never fail, but say when they fell back to a default
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "autoledger Team"
