from __future__ import annotations

from typing import List, Literal, Optional, Union
from pydantic import BaseModel


# ---- Base + envelope ----

class BaseEvent(BaseModel):
    event_type: str
    ts: int
    run_id: str = "r1"
    token: str = "RBT"
    account: Optional[str] = None  # primary account touched, if any
    tags: List[str] = []


class EventEnvelope(BaseModel):
    schema_version: str = "v1"
    correlation_id: str
    sequence: int = 0
    event: BaseEvent


# ---- Ledger events ----

class Transfer(BaseEvent):
    """Principal movement. Mints come from and burns go to the zero address."""
    event_type: Literal["transfer"] = "transfer"
    sender: str
    recipient: str
    amount: int


class Approval(BaseEvent):
    event_type: Literal["approval"] = "approval"
    owner: str
    spender: str
    amount: int


class InterestRateSet(BaseEvent):
    event_type: Literal["interest_rate_set"] = "interest_rate_set"
    new_rate: int


class MintAndBurnRoleGranted(BaseEvent):
    event_type: Literal["mint_and_burn_role_granted"] = "mint_and_burn_role_granted"
    granted_by: str


class MintAndBurnRoleRevoked(BaseEvent):
    event_type: Literal["mint_and_burn_role_revoked"] = "mint_and_burn_role_revoked"
    revoked_by: str


# ---- Vault events ----

class Deposited(BaseEvent):
    event_type: Literal["deposited"] = "deposited"
    amount: int
    interest_rate: int


class Redeemed(BaseEvent):
    event_type: Literal["redeemed"] = "redeemed"
    amount: int


class RewardsAdded(BaseEvent):
    event_type: Literal["rewards_added"] = "rewards_added"
    amount: int
    reserve: int


AnyEvent = Union[
    Transfer,
    Approval,
    InterestRateSet,
    MintAndBurnRoleGranted,
    MintAndBurnRoleRevoked,
    Deposited,
    Redeemed,
    RewardsAdded,
]
