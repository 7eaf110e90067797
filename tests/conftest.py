import pytest
from sqlalchemy.orm import sessionmaker

from database import Base, build_engine
import models  # noqa: F401
from core.lottery_manager import LotteryManager
from services.assets import PrizeAsset

GRACE = 7 * 24 * 60 * 60

SCENARIO = dict(
    min_participants=1,
    ticket_price=100,
    number_range=1000,
    start_time=100,
    end_time=200,
)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'lottery.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_lottery(db):
    """Create a lottery with the scenario parameters; returns (lottery_id, capability_id)."""
    def _make(prize_id="golden-goose", owner="alice", now=50, **overrides):
        params = dict(SCENARIO, grace_period=GRACE)
        params.update(overrides)
        lottery, capability = LotteryManager.create(
            db,
            prize=PrizeAsset(id=prize_id, payload={"kind": "collectible"}),
            recipient=owner,
            now=now,
            **params,
        )
        return lottery.id, capability.id

    return _make


@pytest.fixture
def lottery_ids(make_lottery):
    return make_lottery()
