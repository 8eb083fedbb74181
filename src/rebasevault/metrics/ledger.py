from __future__ import annotations

from typing import Optional
import os
from prometheus_client import Counter, Gauge, REGISTRY

_mints_total: Optional[Counter] = None
_burns_total: Optional[Counter] = None
_transfers_total: Optional[Counter] = None
_interest_realized_total: Optional[Counter] = None
_operations_rejected_total: Optional[Counter] = None
_base_interest_rate: Optional[Gauge] = None
_deposits_total: Optional[Counter] = None
_redemptions_total: Optional[Counter] = None
_rewards_total: Optional[Counter] = None
_reserve_units: Optional[Gauge] = None


class _NoOp:
    def labels(self, *args, **kwargs):
        return self
    def inc(self, *args, **kwargs):
        return None
    def set(self, *args, **kwargs):
        return None


def _disabled() -> bool:
    return os.getenv("DISABLE_PROMETHEUS", "0") == "1"


def _find_registered(name: str, kind):
    try:
        coll = getattr(REGISTRY, "_names_to_collectors", {}).get(name)
        if isinstance(coll, kind):
            return coll
        for coll in list(getattr(REGISTRY, "_collector_to_names", {}).keys()):  # type: ignore[attr-defined]
            if isinstance(coll, kind) and getattr(coll, "_name", None) == name:
                return coll
    except Exception:
        pass
    return None


def _safe_counter(name: str, doc: str, labelnames):
    if _disabled():
        return _NoOp()
    try:
        return Counter(name, doc, labelnames)
    except ValueError:
        # Already registered (module reloaded in tests): reuse the collector
        return _find_registered(name, Counter) or _NoOp()


def _safe_gauge(name: str, doc: str, labelnames=()):
    if _disabled():
        return _NoOp()
    try:
        return Gauge(name, doc, labelnames)
    except ValueError:
        return _find_registered(name, Gauge) or _NoOp()


# ---- ledger ----

def get_mints_total():
    global _mints_total
    if _mints_total is None:
        _mints_total = _safe_counter("ledger_mints_total", "Units minted by privileged callers", ["token"])
    return _mints_total


def get_burns_total():
    global _burns_total
    if _burns_total is None:
        _burns_total = _safe_counter("ledger_burns_total", "Units burned by privileged callers", ["token"])
    return _burns_total


def get_transfers_total():
    global _transfers_total
    if _transfers_total is None:
        _transfers_total = _safe_counter("ledger_transfers_total", "Transfers executed", ["token"])
    return _transfers_total


def get_interest_realized_total():
    """Counter: accrued interest folded into principal, in ledger units."""
    global _interest_realized_total
    if _interest_realized_total is None:
        _interest_realized_total = _safe_counter(
            "ledger_interest_realized_total", "Interest realized into principal", ["token"]
        )
    return _interest_realized_total


def get_operations_rejected_total():
    global _operations_rejected_total
    if _operations_rejected_total is None:
        _operations_rejected_total = _safe_counter(
            "ledger_operations_rejected_total", "Operations aborted and rolled back", ["operation", "reason"]
        )
    return _operations_rejected_total


def get_base_interest_rate_gauge():
    global _base_interest_rate
    if _base_interest_rate is None:
        _base_interest_rate = _safe_gauge(
            "ledger_base_interest_rate", "Global interest rate per second, scaled by 1e18", ["token"]
        )
    return _base_interest_rate


# ---- vault ----

def get_deposits_total():
    global _deposits_total
    if _deposits_total is None:
        _deposits_total = _safe_counter("vault_deposits_total", "Base asset deposited", ["asset"])
    return _deposits_total


def get_redemptions_total():
    global _redemptions_total
    if _redemptions_total is None:
        _redemptions_total = _safe_counter("vault_redemptions_total", "Base asset paid out", ["asset"])
    return _redemptions_total


def get_rewards_total():
    global _rewards_total
    if _rewards_total is None:
        _rewards_total = _safe_counter("vault_rewards_total", "Base asset added as rewards", ["asset"])
    return _rewards_total


def get_reserve_gauge():
    global _reserve_units
    if _reserve_units is None:
        _reserve_units = _safe_gauge("vault_reserve_units", "Base asset held by the vault", ["asset"])
    return _reserve_units


def set_reserve(asset: str, units: int) -> None:
    try:
        get_reserve_gauge().labels(asset=str(asset)).set(float(units))  # type: ignore[attr-defined]
    except Exception:
        # Metrics are optional in constrained environments
        pass
