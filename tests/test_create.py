import pytest

from models import Lottery, Capability, EventLog, LotteryState
from core.lottery_manager import LotteryManager
from core.exceptions import InvalidConfiguration
from services.assets import PrizeAsset


def _create(db, now=50, **overrides):
    params = dict(
        min_participants=1,
        ticket_price=100,
        number_range=1000,
        start_time=100,
        end_time=200,
    )
    params.update(overrides)
    return LotteryManager.create(
        db, prize=PrizeAsset(id="painting"), recipient="alice", now=now, **params
    )


def test_create_opens_lottery_and_mints_single_capability(db):
    lottery, capability = _create(db)

    assert LotteryManager.get_state(db, lottery.id) == LotteryState.OPEN
    assert lottery.prize_id == "painting"
    assert lottery.proceeds == 0
    assert lottery.winning_number is None
    assert lottery.cancelled is False
    assert LotteryManager.get_sold_numbers(db, lottery.id) == []

    capabilities = db.query(Capability).filter(Capability.lottery_id == lottery.id).all()
    assert [c.id for c in capabilities] == [capability.id]
    assert capability.owner == "alice"

    events = db.query(EventLog).filter(EventLog.lottery_id == lottery.id).all()
    assert [e.event_type for e in events] == ["LOTTERY_CREATED"]


def test_create_uses_configured_defaults(db):
    lottery, _ = _create(db)

    assert lottery.grace_period == 7 * 24 * 60 * 60
    assert lottery.return_change is True
    assert lottery.enforce_min_participants is False


def test_start_time_equal_to_now_is_allowed(db):
    lottery, _ = _create(db, now=100)
    assert lottery.start_time == 100


@pytest.mark.parametrize("overrides", [
    {"number_range": 100},
    {"number_range": 5},
    {"min_participants": 0},
    {"ticket_price": 0},
    {"ticket_price": -5},
    {"start_time": 200, "end_time": 200},
    {"start_time": 300, "end_time": 200},
])
def test_invalid_parameters_are_rejected(db, overrides):
    with pytest.raises(InvalidConfiguration):
        _create(db, **overrides)

    assert db.query(Lottery).count() == 0
    assert db.query(Capability).count() == 0


def test_start_in_the_past_is_rejected(db):
    with pytest.raises(InvalidConfiguration):
        _create(db, now=101)

    assert db.query(Lottery).count() == 0


def test_number_range_just_above_minimum_is_accepted(db):
    lottery, _ = _create(db, number_range=101)
    assert lottery.number_range == 101
