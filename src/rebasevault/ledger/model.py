from __future__ import annotations

from dataclasses import dataclass

# Fixed-point scale for interest rates and growth factors.
PRECISION = 10**18
# Passing this amount to transfer/transfer_from/redeem means "everything".
MAX_AMOUNT = 2**256 - 1
# Sender/recipient used for mint and burn notifications.
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass
class Account:
    principal: int = 0
    personal_rate: int = 0
    last_accrual_time: int = 0


@dataclass
class AccountRow:
    ts: int
    account: str
    principal: int
    balance: int
    personal_rate: int
    last_accrual_time: int
