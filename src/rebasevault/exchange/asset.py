from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from ..ledger.errors import InsufficientBalance, InvalidAmount


logger = logging.getLogger(__name__)

# hook(sender, amount) runs when an address receives the asset
ReceiveHook = Callable[[str, int], None]


class BaseAsset:
    """In-memory balance table for the asset backing the vault.

    Receive hooks model recipients that run their own code when paid; a
    hook that raises fails the transfer, which is then rolled back.
    """

    def __init__(self, symbol: str = "ETH"):
        self.symbol = symbol
        self.balances: Dict[str, int] = {}
        self.receive_hooks: Dict[str, ReceiveHook] = {}
        # (holder, prior balance) entries for rollback
        self._undo: List[Tuple[str, Optional[int]]] = []
        self._depth = 0

    def balance_of(self, holder: str) -> int:
        return self.balances.get(holder, 0)

    def credit(self, holder: str, amount: int) -> None:
        """Fund `holder` from outside the system (faucet for demos and tests)."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise InvalidAmount(amount)
        self._set_balance(holder, self.balance_of(holder) + amount)

    def set_receive_hook(self, holder: str, hook: ReceiveHook) -> None:
        self.receive_hooks[holder] = hook

    @contextmanager
    def atomic(self) -> Iterator["BaseAsset"]:
        mark = len(self._undo)
        self._depth += 1
        try:
            yield self
        except BaseException:
            for holder, prior in reversed(self._undo[mark:]):
                if prior is None:
                    self.balances.pop(holder, None)
                else:
                    self.balances[holder] = prior
            del self._undo[mark:]
            raise
        finally:
            self._depth -= 1
        if self._depth == 0:
            self._undo.clear()

    def transfer(self, sender: str, to: str, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise InvalidAmount(amount)
        with self.atomic():
            available = self.balance_of(sender)
            if amount > available:
                raise InsufficientBalance(sender, available, amount)
            self._set_balance(sender, available - amount)
            self._set_balance(to, self.balance_of(to) + amount)
            hook = self.receive_hooks.get(to)
            if hook is not None:
                hook(sender, amount)
        logger.debug(f"{self.symbol} transfer {sender} -> {to}: {amount}")

    def _set_balance(self, holder: str, value: int) -> None:
        if self._depth:
            self._undo.append((holder, self.balances.get(holder)))
        self.balances[holder] = value
