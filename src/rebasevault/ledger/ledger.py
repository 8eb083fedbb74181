from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from dataclasses import replace
from functools import partial
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import pandas as pd

from .clock import wall_clock
from .errors import (
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAmount,
    LedgerError,
    RateIncreaseRejected,
    Unauthorized,
)
from .model import MAX_AMOUNT, PRECISION, ZERO_ADDRESS, Account, AccountRow
from ..events.schema import Approval, BaseEvent, EventEnvelope, InterestRateSet, Transfer
from ..events.bus import publish as publish_event
from ..metrics.ledger import (
    get_base_interest_rate_gauge,
    get_burns_total,
    get_interest_realized_total,
    get_mints_total,
    get_operations_rejected_total,
    get_transfers_total,
)

# 5e-8 per second (about 158% a year), scaled by PRECISION.
DEFAULT_BASE_INTEREST_RATE = (5 * PRECISION) // 10**8

logger = logging.getLogger(__name__)


def _check_amount(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidAmount(amount, "amount must be a non-negative integer")
    return amount


class RebaseLedger:
    """Interest-bearing ledger with per-account locked-in rates.

    Stored state is only the realized principal, the personal rate and the
    last accrual timestamp of each account. The current balance is derived:

        balance = principal * (PRECISION + personal_rate * elapsed) // PRECISION

    Every mutating operation first realizes the interest accrued by the
    accounts it touches, so principal equals the true balance right after
    any touch. Operations run inside `atomic()`: on error the touched state
    is restored and buffered events, metrics and logs are discarded.
    """

    def __init__(
        self,
        has_privileged_role: Callable[[str], bool],
        is_owner: Callable[[str], bool],
        clock: Optional[Callable[[], int]] = None,
        base_interest_rate: int = DEFAULT_BASE_INTEREST_RATE,
        name: str = "Rebase Token",
        symbol: str = "RBT",
        decimals: int = 18,
    ):
        self.has_privileged_role = has_privileged_role
        self.is_owner = is_owner
        self.clock = clock or wall_clock
        self.name = name
        self.symbol = symbol
        self.decimals = int(decimals)
        self._base_interest_rate = _check_amount(base_interest_rate)
        self.accounts: Dict[str, Account] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}
        self.rows: List[AccountRow] = []
        # side effects of the running operation, run on outermost commit
        self._pending: List[Callable[[], None]] = []
        # (kind, key, prior value) entries for rollback
        self._undo: List[Tuple[str, object, object]] = []
        self._now: Optional[int] = None
        self._sequence = 0
        self._depth = 0
        self._mints = get_mints_total()
        self._burns = get_burns_total()
        self._transfers = get_transfers_total()
        self._interest_realized = get_interest_realized_total()
        self._rejected = get_operations_rejected_total()
        self._rate_gauge = get_base_interest_rate_gauge()
        self._update_rate_gauge()

    # ---- transactions ----

    @contextmanager
    def atomic(self, operation: str = "operation") -> Iterator["RebaseLedger"]:
        """Run a block as one all-or-nothing operation.

        Nested blocks act as savepoints. The clock is read once on entry to
        the outermost block and `now()` returns that time until it exits.
        Events, metric updates and success logs registered inside run only
        when the outermost block commits.
        """
        outermost = self._depth == 0
        if outermost:
            self._now = self.clock()
        undo_mark = len(self._undo)
        pending_mark = len(self._pending)
        self._depth += 1
        try:
            yield self
        except BaseException as e:
            self._rollback(undo_mark)
            del self._pending[pending_mark:]
            if outermost and isinstance(e, Exception):
                self._on_rejected(operation, e)
            raise
        finally:
            self._depth -= 1
            if outermost:
                self._now = None
        if outermost:
            self._undo.clear()
            self._flush_pending()

    def now(self) -> int:
        """Time of the running operation, or the clock outside one."""
        return self._now if self._depth else self.clock()

    def on_commit(self, fn: Callable[[], None]) -> None:
        """Run `fn` when the current operation commits, or now outside one."""
        if self._depth:
            self._pending.append(fn)
        else:
            fn()

    def emit(self, event: BaseEvent, correlation_id: str) -> None:
        """Buffer an event for publication when the current operation commits."""
        self._sequence += 1
        env = EventEnvelope(correlation_id=correlation_id, sequence=self._sequence, event=event)
        self.on_commit(partial(self._publish, env))

    def _publish(self, env: EventEnvelope) -> None:
        publish_event(env)

    def _flush_pending(self) -> None:
        pending, self._pending = self._pending, []
        for fn in pending:
            fn()

    def _rollback(self, mark: int) -> None:
        for kind, key, prior in reversed(self._undo[mark:]):
            if kind == "account":
                if prior is None:
                    self.accounts.pop(key, None)
                elif key in self.accounts:
                    # restore in place so held references stay valid
                    self.accounts[key].__dict__.update(prior.__dict__)
                else:
                    self.accounts[key] = prior
            elif kind == "allowance":
                if prior is None:
                    self.allowances.pop(key, None)
                else:
                    self.allowances[key] = prior
            else:
                self._base_interest_rate = prior
        del self._undo[mark:]

    def _on_rejected(self, operation: str, exc: Exception) -> None:
        reason = exc.reason if isinstance(exc, LedgerError) else type(exc).__name__
        self._rejected.labels(operation, reason).inc()
        self._log("operation_rejected", operation=operation, reason=reason, detail=str(exc))

    # ---- reads ----

    def get_base_interest_rate(self) -> int:
        return self._base_interest_rate

    def get_user_interest_rate(self, account: str) -> int:
        acct = self.accounts.get(account)
        return acct.personal_rate if acct else 0

    def principal_balance_of(self, account: str) -> int:
        acct = self.accounts.get(account)
        return acct.principal if acct else 0

    def balance_of(self, account: str) -> int:
        return self._balance_at(account, self.now())

    def total_supply(self) -> int:
        """Realized supply: sum of principals, excluding unrealized interest."""
        return sum(a.principal for a in self.accounts.values())

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def _balance_at(self, account: str, now: int) -> int:
        acct = self.accounts.get(account)
        if acct is None or acct.principal == 0:
            return 0
        elapsed = max(0, now - acct.last_accrual_time)
        growth = PRECISION + acct.personal_rate * elapsed
        return acct.principal * growth // PRECISION

    # ---- privileged operations ----

    def mint(self, caller: str, account: str, amount: int, rate: int) -> None:
        """Mint `amount` to `account` and lock its personal rate to `rate`."""
        with self.atomic("mint"):
            self._require_privileged(caller)
            _check_amount(amount)
            _check_amount(rate)
            now = self.now()
            self._realize_interest(account, now)
            self._account(account).personal_rate = rate
            self._mint(account, amount, now)
            self.on_commit(partial(self._mints.labels(self.symbol).inc, amount))
            self.on_commit(partial(self._log, "mint", caller=caller, account=account, amount=amount, rate=rate))

    def burn(self, caller: str, account: str, amount: int) -> None:
        with self.atomic("burn"):
            self._require_privileged(caller)
            _check_amount(amount)
            now = self.now()
            self._realize_interest(account, now)
            self._burn(account, amount, now)
            self.on_commit(partial(self._burns.labels(self.symbol).inc, amount))
            self.on_commit(partial(self._log, "burn", caller=caller, account=account, amount=amount))

    def set_base_interest_rate(self, caller: str, new_rate: int) -> None:
        """Lower the global rate. Rates already locked into accounts are unaffected."""
        with self.atomic("set_base_interest_rate"):
            if not self.is_owner(caller):
                raise Unauthorized(caller, "OWNER")
            _check_amount(new_rate)
            if new_rate >= self._base_interest_rate:
                raise RateIncreaseRejected(self._base_interest_rate, new_rate)
            self._undo.append(("rate", None, self._base_interest_rate))
            self._base_interest_rate = new_rate
            self.emit(InterestRateSet(ts=self.now(), token=self.symbol, new_rate=new_rate), "interest_rate")
            self.on_commit(self._update_rate_gauge)
            self.on_commit(partial(self._log, "interest_rate_set", caller=caller, new_rate=new_rate))

    # ---- holder operations ----

    def transfer(self, caller: str, to: str, amount: int) -> bool:
        with self.atomic("transfer"):
            self._transfer(caller, to, amount, spender=None)
        return True

    def transfer_from(self, caller: str, sender: str, to: str, amount: int) -> bool:
        """Move units from `sender` to `to`, spending `caller`'s allowance."""
        with self.atomic("transfer_from"):
            self._transfer(sender, to, amount, spender=caller)
        return True

    def approve(self, caller: str, spender: str, amount: int) -> bool:
        with self.atomic("approve"):
            _check_amount(amount)
            self._set_allowance(caller, spender, amount)
            self.emit(
                Approval(ts=self.now(), token=self.symbol, account=caller, owner=caller, spender=spender, amount=amount),
                f"approval:{caller}",
            )
        return True

    # ---- snapshots ----

    def snapshot(self, ts: Optional[int] = None) -> List[AccountRow]:
        """Record one row per account with its principal and derived balance."""
        now = self.now() if ts is None else int(ts)
        batch = [
            AccountRow(
                ts=now,
                account=name,
                principal=acct.principal,
                balance=self._balance_at(name, now),
                personal_rate=acct.personal_rate,
                last_accrual_time=acct.last_accrual_time,
            )
            for name, acct in sorted(self.accounts.items())
        ]
        self.rows.extend(batch)
        return batch

    def write_parquet(self, base_dir: str = "data") -> str:
        os.makedirs(base_dir, exist_ok=True)
        path = os.path.join(base_dir, "accounts.parquet")
        records = []
        for r in self.rows:
            rec = dict(r.__dict__)
            # uint256-sized values overflow int64 columns
            for key in ("principal", "balance", "personal_rate"):
                rec[key] = str(rec[key])
            records.append(rec)
        pd.DataFrame(records).to_parquet(path)
        return path

    # ---- internals ----

    def _require_privileged(self, caller: str) -> None:
        if not self.has_privileged_role(caller):
            raise Unauthorized(caller, "MINT_AND_BURN_ROLE")

    def _account(self, account: str) -> Account:
        """Account record for writing. Records its prior state for rollback."""
        acct = self.accounts.get(account)
        if self._depth:
            self._undo.append(("account", account, replace(acct) if acct is not None else None))
        if acct is None:
            acct = Account()
            self.accounts[account] = acct
        return acct

    def _set_allowance(self, owner: str, spender: str, amount: int) -> None:
        key = (owner, spender)
        if self._depth:
            self._undo.append(("allowance", key, self.allowances.get(key)))
        self.allowances[key] = amount

    def _realize_interest(self, account: str, now: int) -> int:
        """Fold accrued interest into principal and restart the accrual clock."""
        accrued = self._balance_at(account, now) - self.principal_balance_of(account)
        self._account(account).last_accrual_time = now
        if accrued > 0:
            self._mint(account, accrued, now)
            self.on_commit(partial(self._interest_realized.labels(self.symbol).inc, accrued))
        return accrued

    def _mint(self, account: str, amount: int, now: int) -> None:
        self._account(account).principal += amount
        self.emit(
            Transfer(ts=now, token=self.symbol, account=account, sender=ZERO_ADDRESS, recipient=account, amount=amount),
            f"mint:{account}",
        )

    def _burn(self, account: str, amount: int, now: int) -> None:
        acct = self._account(account)
        if amount > acct.principal:
            raise InsufficientBalance(account, acct.principal, amount)
        acct.principal -= amount
        self.emit(
            Transfer(ts=now, token=self.symbol, account=account, sender=account, recipient=ZERO_ADDRESS, amount=amount),
            f"burn:{account}",
        )

    def _transfer(self, sender: str, to: str, amount: int, spender: Optional[str]) -> None:
        _check_amount(amount)
        now = self.now()
        self._realize_interest(sender, now)
        self._realize_interest(to, now)
        if amount == MAX_AMOUNT:
            amount = self._balance_at(sender, now)
        if spender is not None:
            self._spend_allowance(sender, spender, amount)
        src = self._account(sender)
        dst = self._account(to)
        if dst.principal == 0:
            # An empty recipient inherits the sender's locked-in rate
            dst.personal_rate = src.personal_rate
        if amount > src.principal:
            raise InsufficientBalance(sender, src.principal, amount)
        src.principal -= amount
        dst.principal += amount
        self.emit(
            Transfer(ts=now, token=self.symbol, account=sender, sender=sender, recipient=to, amount=amount),
            f"transfer:{sender}",
        )
        self.on_commit(self._transfers.labels(self.symbol).inc)
        self.on_commit(partial(self._log, "transfer", sender=sender, recipient=to, amount=amount, spender=spender))

    def _spend_allowance(self, owner: str, spender: str, amount: int) -> None:
        current = self.allowance(owner, spender)
        if current == MAX_AMOUNT:
            return
        if amount > current:
            raise InsufficientAllowance(owner, spender, current, amount)
        self._set_allowance(owner, spender, current - amount)

    def _update_rate_gauge(self) -> None:
        self._rate_gauge.labels(self.symbol).set(float(self._base_interest_rate))

    def _log(self, event: str, **fields) -> None:
        payload = {"event": event, "token": self.symbol, **fields}
        try:
            logger.info(json.dumps(payload))
        except Exception:
            logger.info(event, extra=payload)
