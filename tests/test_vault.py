import pytest

from rebasevault.exchange.vault import Vault
from rebasevault.events.schema import Deposited, Redeemed, RewardsAdded, Transfer
from rebasevault.ledger.errors import (
    InsufficientBalance,
    InsufficientReserve,
    InvalidAmount,
    LedgerError,
    Unauthorized,
)
from rebasevault.ledger.ledger import DEFAULT_BASE_INTEREST_RATE, RebaseLedger
from rebasevault.ledger.model import MAX_AMOUNT, ZERO_ADDRESS

from conftest import OWNER, VAULT, START_TS, TickingClock

ONE = 10**18
RATE = DEFAULT_BASE_INTEREST_RATE


def _fund(asset, holder, amount):
    asset.credit(holder, amount)


def test_deposit_mints_one_to_one_at_base_rate(ledger, asset, vault):
    _fund(asset, "alice", ONE)
    vault.deposit("alice", ONE)
    assert ledger.balance_of("alice") == ONE
    assert ledger.get_user_interest_rate("alice") == RATE
    assert vault.reserve() == ONE
    assert asset.balance_of("alice") == 0


def test_deposit_locks_current_rate(ledger, asset, vault):
    ledger.set_base_interest_rate(OWNER, RATE // 2)
    _fund(asset, "carol", ONE)
    vault.deposit("carol", ONE)
    assert ledger.get_user_interest_rate("carol") == RATE // 2


@pytest.mark.parametrize("amount", [0, -1])
def test_deposit_rejects_degenerate_amounts(ledger, asset, vault, amount):
    _fund(asset, "alice", ONE)
    with pytest.raises(InvalidAmount):
        vault.deposit("alice", amount)
    assert asset.balance_of("alice") == ONE
    assert vault.reserve() == 0


def test_deposit_without_asset_mints_nothing(ledger, asset, vault):
    with pytest.raises(InsufficientBalance):
        vault.deposit("alice", ONE)
    assert ledger.balance_of("alice") == 0


def test_deposit_fails_when_vault_lacks_role(ledger, asset):
    rogue = Vault(ledger, asset, address="rogue-vault")
    _fund(asset, "alice", ONE)
    with pytest.raises(Unauthorized):
        rogue.deposit("alice", ONE)
    assert asset.balance_of("alice") == ONE
    assert rogue.reserve() == 0


def test_redeem_max_right_after_deposit(ledger, asset, vault):
    _fund(asset, "alice", ONE)
    vault.deposit("alice", ONE)
    paid = vault.redeem("alice", MAX_AMOUNT)
    assert paid == ONE
    assert asset.balance_of("alice") == ONE
    assert ledger.balance_of("alice") == 0
    assert vault.reserve() == 0


def test_redeem_after_time_with_rewards(ledger, asset, vault, clock):
    _fund(asset, "alice", ONE)
    vault.deposit("alice", ONE)
    clock.advance(3600)
    balance = ledger.balance_of("alice")
    assert balance > ONE
    _fund(asset, OWNER, balance - ONE)
    vault.add_rewards(OWNER, balance - ONE)
    paid = vault.redeem("alice", MAX_AMOUNT)
    assert paid == balance
    assert asset.balance_of("alice") == balance
    assert ledger.balance_of("alice") == 0
    assert vault.reserve() == 0


def test_partial_redeem(ledger, asset, vault):
    _fund(asset, "alice", ONE)
    vault.deposit("alice", ONE)
    vault.redeem("alice", ONE // 4)
    assert ledger.balance_of("alice") == ONE - ONE // 4
    assert vault.reserve() == ONE - ONE // 4


def test_redeem_without_rewards_rolls_back(ledger, asset, vault, clock):
    _fund(asset, "alice", ONE)
    vault.deposit("alice", ONE)
    clock.advance(3600)
    balance = ledger.balance_of("alice")
    with pytest.raises(InsufficientReserve) as exc:
        vault.redeem("alice", MAX_AMOUNT)
    assert exc.value.available == ONE
    assert exc.value.requested == balance
    # the burn that preceded the failed payout is undone
    assert ledger.principal_balance_of("alice") == ONE
    assert ledger.balance_of("alice") == balance
    assert vault.reserve() == ONE


def test_redeem_more_than_balance(ledger, asset, vault):
    _fund(asset, "alice", ONE)
    vault.deposit("alice", ONE)
    with pytest.raises(InsufficientBalance):
        vault.redeem("alice", 2 * ONE)
    assert vault.reserve() == ONE


def test_redeem_max_of_empty_account_is_invalid(vault):
    with pytest.raises(InvalidAmount):
        vault.redeem("nobody", MAX_AMOUNT)


def test_reentrant_redeem_sees_burned_balance(ledger, asset, vault):
    _fund(asset, "mallory", ONE)
    vault.deposit("mallory", ONE)
    _fund(asset, "alice", ONE)
    vault.deposit("alice", ONE)
    seen = {}

    def on_receive(sender, amount):
        seen["principal"] = ledger.principal_balance_of("mallory")
        try:
            vault.redeem("mallory", ONE)
        except LedgerError as e:
            seen["error"] = type(e)

    asset.set_receive_hook("mallory", on_receive)
    assert vault.redeem("mallory", MAX_AMOUNT) == ONE
    assert seen == {"principal": 0, "error": InsufficientBalance}
    assert asset.balance_of("mallory") == ONE
    assert vault.reserve() == ONE
    assert ledger.balance_of("alice") == ONE


def test_failed_payout_rolls_back_everything(ledger, asset, vault):
    _fund(asset, "alice", ONE)
    vault.deposit("alice", ONE)

    def reject(sender, amount):
        raise RuntimeError("receiver refused payment")

    asset.set_receive_hook("alice", reject)
    with pytest.raises(RuntimeError):
        vault.redeem("alice", MAX_AMOUNT)
    assert ledger.principal_balance_of("alice") == ONE
    assert asset.balance_of("alice") == 0
    assert vault.reserve() == ONE


def test_rewards_only_grow_reserve(ledger, asset, vault):
    _fund(asset, "alice", ONE)
    vault.deposit("alice", ONE)
    _fund(asset, "sponsor", 5 * ONE)
    vault.add_rewards("sponsor", ONE)
    # a plain asset transfer to the vault address is a top-up as well
    asset.transfer("sponsor", VAULT, ONE)
    assert vault.reserve() == 3 * ONE
    assert ledger.principal_balance_of("alice") == ONE
    assert ledger.get_user_interest_rate("alice") == RATE
    assert ledger.principal_balance_of("sponsor") == 0
    assert ledger.total_supply() == ONE


def test_rewards_reject_zero(asset, vault):
    with pytest.raises(InvalidAmount):
        vault.add_rewards("sponsor", 0)


def test_vault_events(ledger, asset, vault, published):
    _fund(asset, "alice", ONE)
    vault.deposit("alice", ONE)
    _fund(asset, OWNER, 10)
    vault.add_rewards(OWNER, 10)
    vault.redeem("alice", MAX_AMOUNT)
    kinds = [type(env.event) for env in published]
    assert Deposited in kinds and RewardsAdded in kinds and Redeemed in kinds
    dep = next(env.event for env in published if isinstance(env.event, Deposited))
    assert dep.amount == ONE and dep.interest_rate == RATE and dep.account == "alice"
    published.clear()
    with pytest.raises(InvalidAmount):
        vault.deposit("alice", 0)
    assert published == []


def test_redeem_max_with_moving_clock_pays_the_burned_amount(access, asset, published):
    clock = TickingClock(START_TS)
    ledger = RebaseLedger(access.has_privileged_role, access.is_owner, clock=clock)
    vault = Vault(ledger, asset, VAULT)
    _fund(asset, "alice", 2 * ONE)
    vault.deposit("alice", ONE)
    vault.add_rewards("alice", ONE)
    paid = vault.redeem("alice", MAX_AMOUNT)
    # deposit, rewards and redeem each see one tick of the clock
    assert paid == ONE + 2 * RATE
    assert ledger.principal_balance_of("alice") == 0
    assert asset.balance_of("alice") == paid
    assert vault.reserve() == 2 * ONE - paid
    redeemed = [env.event for env in published if isinstance(env.event, Redeemed)]
    burns = [env.event for env in published if isinstance(env.event, Transfer) and env.event.recipient == ZERO_ADDRESS]
    assert redeemed[0].ts == burns[-1].ts
