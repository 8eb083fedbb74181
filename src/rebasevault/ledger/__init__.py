"""Ledger package.

Public API:
- RebaseLedger: principals, personal rates, linear interest accrual, transfers.
- PRECISION, MAX_AMOUNT: fixed-point scale and the "full balance" sentinel.
"""

from .ledger import RebaseLedger, DEFAULT_BASE_INTEREST_RATE  # re-export
from .model import MAX_AMOUNT, PRECISION, ZERO_ADDRESS, Account, AccountRow
