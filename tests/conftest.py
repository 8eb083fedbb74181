import os

import pytest

# Keep tests off the network; events are still counted and logged.
os.environ.setdefault("EVENTS_REDIS_ENABLED", "0")

from rebasevault.access.roles import AccessControl
from rebasevault.exchange.asset import BaseAsset
from rebasevault.exchange.vault import Vault
from rebasevault.ledger.clock import ManualClock
from rebasevault.ledger.ledger import RebaseLedger

OWNER = "owner"
VAULT = "vault"
START_TS = 1_700_000_000


class TickingClock(ManualClock):
    """Moves one second forward on every read."""

    def __call__(self) -> int:
        self.now += 1
        return self.now


@pytest.fixture
def clock():
    return ManualClock(START_TS)


@pytest.fixture
def access(clock):
    acl = AccessControl(OWNER, clock)
    acl.grant_mint_and_burn_role(OWNER, VAULT)
    return acl


@pytest.fixture
def ledger(access, clock):
    return RebaseLedger(access.has_privileged_role, access.is_owner, clock=clock)


@pytest.fixture
def asset():
    return BaseAsset("ETH")


@pytest.fixture
def vault(ledger, asset):
    return Vault(ledger, asset, VAULT)


@pytest.fixture
def published(monkeypatch):
    events = []
    monkeypatch.setattr("rebasevault.ledger.ledger.publish_event", events.append)
    monkeypatch.setattr("rebasevault.access.roles.publish_event", events.append)
    return events
