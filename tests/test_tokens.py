import pytest

from models import EventLog
from core.lottery_manager import LotteryManager
from core.exceptions import AuthorizationMismatch
from services.assets import Balance, PrizeAsset
from services.clock import FixedClock
from services.randomness import FixedOracle, SystemRandomOracle


def test_transferred_ticket_claims_for_new_owner(db, lottery_ids):
    lottery_id, _ = lottery_ids
    ticket, _ = LotteryManager.buy(db, lottery_id, 42, Balance(100), "bob", 150)
    ticket_id = ticket.id

    LotteryManager.transfer_ticket(db, lottery_id, ticket_id, "bob", "carol")
    LotteryManager.run(db, lottery_id, 250, oracle=FixedOracle(42))

    with pytest.raises(AuthorizationMismatch):
        LotteryManager.claim_prize(db, lottery_id, ticket_id, "bob", "bob")

    prize = LotteryManager.claim_prize(db, lottery_id, ticket_id, "carol", "carol")
    assert prize.id == "golden-goose"


def test_only_holder_can_transfer(db, lottery_ids):
    lottery_id, capability_id = lottery_ids

    with pytest.raises(AuthorizationMismatch):
        LotteryManager.transfer_capability(db, lottery_id, capability_id, "mallory", "mallory")

    assert LotteryManager.find_capability(db, capability_id).owner == "alice"


def test_transferred_capability_withdraws_for_new_owner(db, lottery_ids):
    lottery_id, capability_id = lottery_ids
    LotteryManager.buy(db, lottery_id, 1, Balance(100), "bob", 150)
    LotteryManager.run(db, lottery_id, 250, oracle=FixedOracle(1))

    LotteryManager.transfer_capability(db, lottery_id, capability_id, "alice", "treasury")

    with pytest.raises(AuthorizationMismatch):
        LotteryManager.withdraw(db, lottery_id, capability_id, "alice", "alice")
    assert LotteryManager.withdraw(db, lottery_id, capability_id, "treasury", "treasury").value_of() == 100

    transfers = db.query(EventLog).filter(
        EventLog.lottery_id == lottery_id, EventLog.event_type == "TOKEN_TRANSFERRED"
    ).all()
    assert [e.data["to"] for e in transfers] == ["treasury"]


def test_balance_moves_value_without_creating_it():
    wallet = Balance(150)
    pool = Balance.zero()

    pool.join(wallet.split(100))

    assert wallet.value_of() == 50
    assert pool.value_of() == 100
    with pytest.raises(ValueError):
        wallet.split(51)
    with pytest.raises(ValueError):
        Balance(-1)


def test_join_empties_the_other_balance():
    a, b = Balance(30), Balance(12)
    a.join(b)
    assert (a.value_of(), b.value_of()) == (42, 0)


def test_prize_asset_is_an_opaque_value():
    assert PrizeAsset("x", {"a": 1}) == PrizeAsset("x", {"a": 1})


def test_fixed_clock_only_moves_forward():
    clock = FixedClock(150)
    clock.advance(100)
    assert clock.now() == 250
    with pytest.raises(ValueError):
        clock.advance(-1)


def test_system_oracle_stays_in_range():
    oracle = SystemRandomOracle()
    assert all(0 <= oracle.draw(101) <= 101 for _ in range(200))


def test_balance_cannot_join_itself():
    wallet = Balance(100)
    with pytest.raises(ValueError):
        wallet.join(wallet)
    assert wallet.value_of() == 100
