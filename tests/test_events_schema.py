from rebasevault.events.schema import EventEnvelope, Transfer, InterestRateSet, Deposited
from rebasevault.ledger.model import MAX_AMOUNT, ZERO_ADDRESS


def test_event_envelope_roundtrip():
    evt = InterestRateSet(ts=1, new_rate=40_000_000_000)
    env = EventEnvelope(correlation_id="c1", event=evt)
    js = env.model_dump_json()
    assert "interest_rate_set" in js


def test_transfer_event_holds_uint256_amounts():
    t = Transfer(ts=2, account="alice", sender=ZERO_ADDRESS, recipient="alice", amount=MAX_AMOUNT)
    assert t.model_dump()["amount"] == MAX_AMOUNT
    dep = Deposited(ts=3, account="alice", amount=10, interest_rate=5)
    assert dep.event_type == "deposited" and dep.token == "RBT"
