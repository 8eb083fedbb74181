from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from functools import partial
from typing import Iterator

from .asset import BaseAsset
from ..ledger.errors import InsufficientReserve, InvalidAmount
from ..ledger.ledger import RebaseLedger
from ..ledger.model import MAX_AMOUNT
from ..events.schema import Deposited, Redeemed, RewardsAdded
from ..metrics.ledger import get_deposits_total, get_redemptions_total, get_rewards_total, set_reserve


logger = logging.getLogger(__name__)


def _positive(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(amount)
    return amount


class Vault:
    """Exchanges the base asset for ledger units 1:1 and back.

    The vault's address must hold the ledger's mint/burn role. Its asset
    balance is the reserve backing redemptions; anyone may top it up with
    rewards so that accrued interest can be paid out.
    """

    def __init__(self, ledger: RebaseLedger, asset: BaseAsset, address: str = "vault"):
        self.ledger = ledger
        self.asset = asset
        self.address = address
        self.deposits = get_deposits_total()
        self.redemptions = get_redemptions_total()
        self.rewards = get_rewards_total()

    def reserve(self) -> int:
        return self.asset.balance_of(self.address)

    @contextmanager
    def _atomic(self, operation: str) -> Iterator[None]:
        with self.ledger.atomic(operation), self.asset.atomic():
            yield


    def deposit(self, caller: str, asset_amount: int) -> None:
        """Take `asset_amount` from `caller` and mint the same number of units.

        The caller's rate is locked to the ledger's current base rate.
        """
        with self._atomic("deposit"):
            _positive(asset_amount)
            self.asset.transfer(caller, self.address, asset_amount)
            rate = self.ledger.get_base_interest_rate()
            self.ledger.mint(self.address, caller, asset_amount, rate)
            self.ledger.emit(
                Deposited(ts=self.ledger.now(), token=self.ledger.symbol, account=caller, amount=asset_amount, interest_rate=rate),
                f"deposit:{caller}",
            )
            self.ledger.on_commit(partial(self._committed, self.deposits, "deposit", caller, asset_amount))

    def redeem(self, caller: str, amount: int) -> int:
        """Burn `amount` units of `caller` and pay out the same amount of asset.

        `MAX_AMOUNT` redeems the caller's full current balance. Units are
        burned before the payout runs any recipient code, so a reentrant
        redeem only sees what is left. Returns the amount paid.
        """
        with self._atomic("redeem"):
            if amount == MAX_AMOUNT:
                amount = self.ledger.balance_of(caller)
            _positive(amount)
            self.ledger.burn(self.address, caller, amount)
            available = self.reserve()
            if available < amount:
                raise InsufficientReserve(available, amount)
            self.asset.transfer(self.address, caller, amount)
            self.ledger.emit(
                Redeemed(ts=self.ledger.now(), token=self.ledger.symbol, account=caller, amount=amount),
                f"redeem:{caller}",
            )
            self.ledger.on_commit(partial(self._committed, self.redemptions, "redeem", caller, amount))
        return amount

    def add_rewards(self, caller: str, amount: int) -> None:
        """Top up the reserve without minting anything."""
        with self._atomic("add_rewards"):
            _positive(amount)
            self.asset.transfer(caller, self.address, amount)
            self.ledger.emit(
                RewardsAdded(ts=self.ledger.now(), token=self.ledger.symbol, account=caller, amount=amount, reserve=self.reserve()),
                f"rewards:{caller}",
            )
            self.ledger.on_commit(partial(self._committed, self.rewards, "add_rewards", caller, amount))

    def _committed(self, counter, event: str, caller: str, amount: int) -> None:
        counter.labels(self.asset.symbol).inc(amount)
        reserve = self.reserve()
        set_reserve(self.asset.symbol, reserve)
        logger.info(json.dumps({"event": event, "account": caller, "amount": amount, "reserve": reserve}))
