"""
Main entrypoint for rebasevault.

What it does:
- Loads settings from `config/config.yaml` plus `REBASEVAULT_*` env overrides.
- Wires the role table, the rebase ledger, the base asset and the vault on a
  manual clock starting at `demo.start_ts`.
- Runs an offline scenario: deposits, a time warp, an optional base-rate cut,
  a transfer to an empty account, reward funding and full redemptions.
- Logs balances, journals every operation and writes `accounts.parquet`.

Where it is used:
- Invoked by `python -m rebasevault.main` or the `rebasevault-demo` script.
"""
import logging
import os
import time
from typing import Any, Dict

from rebasevault.access.roles import AccessControl
from rebasevault.config.loader import Settings, load_settings
from rebasevault.exchange.asset import BaseAsset
from rebasevault.exchange.vault import Vault
from rebasevault.ledger.clock import ManualClock
from rebasevault.ledger.ledger import RebaseLedger
from rebasevault.ledger.model import MAX_AMOUNT
from rebasevault.logs.journal import append_jsonl
from rebasevault.metrics.core import start_server_safe


def _journal(path: str, ledger: RebaseLedger, vault: Vault, operation: str, caller: str, account: str, amount: int) -> None:
    append_jsonl(path, {
        "ts": ledger.now(),
        "operation": operation,
        "caller": caller,
        "account": account,
        "amount": amount,
        "balance_after": ledger.balance_of(account),
        "principal_after": ledger.principal_balance_of(account),
        "personal_rate": ledger.get_user_interest_rate(account),
        "reserve_after": vault.reserve(),
        "outcome": "committed",
    })


def run_demo(settings: Settings) -> Dict[str, Any]:
    """Run the offline scenario and return what each holder was paid."""
    demo = settings.demo
    journal_path = os.path.join(settings.data_dir, "journal.jsonl")
    clock = ManualClock(demo.start_ts)
    access = AccessControl(settings.owner, clock)
    ledger = RebaseLedger(
        access.has_privileged_role,
        access.is_owner,
        clock=clock,
        base_interest_rate=settings.token.base_interest_rate,
        name=settings.token.name,
        symbol=settings.token.symbol,
        decimals=settings.token.decimals,
    )
    asset = BaseAsset(settings.asset_symbol)
    vault = Vault(ledger, asset, settings.vault_address)
    access.grant_mint_and_burn_role(settings.owner, settings.vault_address)

    for holder, amount in demo.depositors.items():
        asset.credit(holder, amount)
        vault.deposit(holder, amount)
        _journal(journal_path, ledger, vault, "deposit", holder, holder, amount)
        logging.info(f"deposit: {holder} {amount} @ rate {ledger.get_user_interest_rate(holder)}")

    clock.advance(demo.accrual_seconds)
    for row in ledger.snapshot():
        logging.info(f"accrued: {row.account} principal={row.principal} balance={row.balance}")

    if demo.rate_cut is not None:
        ledger.set_base_interest_rate(settings.owner, demo.rate_cut)
        logging.info(f"base interest rate cut to {ledger.get_base_interest_rate()}")

    holders = list(demo.depositors)
    if demo.transfer_to and holders:
        sender = holders[0]
        amount = ledger.balance_of(sender) // 2
        ledger.transfer(sender, demo.transfer_to, amount)
        _journal(journal_path, ledger, vault, "transfer", sender, demo.transfer_to, amount)
        holders.append(demo.transfer_to)
        logging.info(f"transfer: {sender} -> {demo.transfer_to} {amount}")

    clock.advance(demo.accrual_seconds)
    ledger.snapshot()

    owed = sum(ledger.balance_of(h) for h in holders)
    shortfall = owed - vault.reserve()
    if shortfall > 0:
        asset.credit(settings.owner, shortfall)
        vault.add_rewards(settings.owner, shortfall)
        _journal(journal_path, ledger, vault, "add_rewards", settings.owner, settings.owner, shortfall)
        logging.info(f"rewards funded: {shortfall}")

    paid: Dict[str, int] = {}
    for holder in holders:
        if ledger.balance_of(holder) == 0:
            continue
        paid[holder] = vault.redeem(holder, MAX_AMOUNT)
        _journal(journal_path, ledger, vault, "redeem", holder, holder, paid[holder])
        logging.info(f"redeem: {holder} received {paid[holder]} {asset.symbol}")

    ledger.snapshot()
    path = ledger.write_parquet(settings.data_dir)
    logging.info(f"account snapshots written to {path}")
    return {"paid": paid, "reserve": vault.reserve(), "total_supply": ledger.total_supply()}


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    settings = load_settings(os.getenv("REBASEVAULT_CONFIG", "config/config.yaml"))
    logging.info(f"Token: {settings.token.name} ({settings.token.symbol}), owner: {settings.owner}")
    start_server_safe(settings.prometheus_port)
    summary = run_demo(settings)
    logging.info(f"demo complete: {summary}")
    # Optional: keep the metrics server alive for inspection
    hold = int(os.getenv("HOLD_METRICS_SECONDS", "0"))
    if hold > 0:
        logging.info(f"holding metrics server for {hold}s before exit")
        time.sleep(hold)


if __name__ == "__main__":
    main()
