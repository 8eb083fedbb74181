"""Owner and mint/burn role table.

The ledger only consumes `has_privileged_role` and `is_owner`; this module is
the default implementation of those capability checks. Ownership transfer is
not supported: the owner is fixed at construction.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional, Set

from ..events.schema import EventEnvelope, MintAndBurnRoleGranted, MintAndBurnRoleRevoked
from ..events.bus import publish as publish_event
from ..ledger.clock import wall_clock
from ..ledger.errors import Unauthorized

MINT_AND_BURN_ROLE = "MINT_AND_BURN_ROLE"
OWNER = "OWNER"

logger = logging.getLogger(__name__)


class AccessControl:
    def __init__(self, owner: str, clock: Optional[Callable[[], int]] = None):
        self.owner = owner
        self.clock = clock or wall_clock
        self._minters: Set[str] = set()

    def is_owner(self, caller: str) -> bool:
        return caller == self.owner

    def has_privileged_role(self, caller: str) -> bool:
        return caller in self._minters

    def grant_mint_and_burn_role(self, caller: str, account: str) -> None:
        if not self.is_owner(caller):
            raise Unauthorized(caller, OWNER)
        if account in self._minters:
            return
        self._minters.add(account)
        logger.info(f"{MINT_AND_BURN_ROLE} granted to {account}")
        publish_event(EventEnvelope(
            correlation_id=f"role:{account}",
            event=MintAndBurnRoleGranted(ts=self.clock(), account=account, granted_by=caller),
        ))

    def revoke_mint_and_burn_role(self, caller: str, account: str) -> None:
        if not self.is_owner(caller):
            raise Unauthorized(caller, OWNER)
        if account not in self._minters:
            return
        self._minters.discard(account)
        logger.info(f"{MINT_AND_BURN_ROLE} revoked from {account}")
        publish_event(EventEnvelope(
            correlation_id=f"role:{account}",
            event=MintAndBurnRoleRevoked(ts=self.clock(), account=account, revoked_by=caller),
        ))
