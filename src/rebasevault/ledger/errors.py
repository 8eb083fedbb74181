"""Errors raised by the ledger and the vault.

Every error aborts the whole operation; state is rolled back before the
exception reaches the caller.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all rebasevault operation failures."""

    reason = "ledger_error"


class Unauthorized(LedgerError):
    reason = "unauthorized"

    def __init__(self, caller: str, capability: str):
        self.caller = caller
        self.capability = capability
        super().__init__(f"{caller} lacks capability {capability}")


class RateIncreaseRejected(LedgerError):
    reason = "rate_increase_rejected"

    def __init__(self, current_rate: int, requested_rate: int):
        self.current_rate = current_rate
        self.requested_rate = requested_rate
        super().__init__(
            f"interest rate can only decrease: current={current_rate} requested={requested_rate}"
        )


class InsufficientBalance(LedgerError):
    reason = "insufficient_balance"

    def __init__(self, account: str, available: int, requested: int):
        self.account = account
        self.available = available
        self.requested = requested
        super().__init__(f"{account} has {available}, needs {requested}")


class InsufficientAllowance(LedgerError):
    reason = "insufficient_allowance"

    def __init__(self, owner: str, spender: str, available: int, requested: int):
        self.owner = owner
        self.spender = spender
        self.available = available
        self.requested = requested
        super().__init__(f"{spender} may spend {available} of {owner}, needs {requested}")


class InsufficientReserve(LedgerError):
    reason = "insufficient_reserve"

    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(f"reserve holds {available}, redemption needs {requested}")


class InvalidAmount(LedgerError):
    reason = "invalid_amount"

    def __init__(self, amount: int, detail: str = "amount must be a positive integer"):
        self.amount = amount
        super().__init__(f"{detail}: {amount!r}")
