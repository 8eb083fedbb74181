import pytest

from rebasevault.access.roles import AccessControl
from rebasevault.events.schema import MintAndBurnRoleGranted, MintAndBurnRoleRevoked
from rebasevault.ledger.errors import Unauthorized


def test_only_owner_grants_role(published):
    acl = AccessControl("owner")
    with pytest.raises(Unauthorized):
        acl.grant_mint_and_burn_role("alice", "alice")
    assert not acl.has_privileged_role("alice")
    acl.grant_mint_and_burn_role("owner", "minter")
    assert acl.has_privileged_role("minter")
    assert acl.is_owner("owner") and not acl.is_owner("minter")
    granted = [env.event for env in published if isinstance(env.event, MintAndBurnRoleGranted)]
    assert len(granted) == 1 and granted[0].account == "minter" and granted[0].granted_by == "owner"


def test_revoke_role(published):
    acl = AccessControl("owner")
    acl.grant_mint_and_burn_role("owner", "minter")
    acl.grant_mint_and_burn_role("owner", "minter")
    acl.revoke_mint_and_burn_role("owner", "minter")
    assert not acl.has_privileged_role("minter")
    kinds = [type(env.event) for env in published]
    assert kinds == [MintAndBurnRoleGranted, MintAndBurnRoleRevoked]


def test_revoked_minter_cannot_mint(access, ledger):
    ledger.mint("vault", "alice", 1, 0)
    access.revoke_mint_and_burn_role("owner", "vault")
    with pytest.raises(Unauthorized):
        ledger.mint("vault", "alice", 1, 0)
    assert ledger.principal_balance_of("alice") == 1
