import pytest
from fastapi.testclient import TestClient

from main import app
from core.lottery_manager import LotteryManager
from database import get_db
from api.dependencies import get_clock, get_oracle
from services.clock import FixedClock
from services.randomness import FixedOracle

GRACE = 7 * 24 * 60 * 60


@pytest.fixture
def clock():
    return FixedClock(50)


@pytest.fixture
def client(session_factory, clock):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_oracle] = lambda: FixedOracle(42)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create(client, **overrides):
    body = {
        "prize_id": "golden-goose",
        "prize_payload": {"kind": "collectible"},
        "min_participants": 1,
        "ticket_price": 100,
        "number_range": 1000,
        "start_time": 100,
        "end_time": 200,
        "recipient": "alice",
    }
    body.update(overrides)
    return client.post("/api/lotteries", json=body)


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_lottery_happy_path_over_http(client, clock):
    created = _create(client)
    assert created.status_code == 201
    lottery_id = created.json()["lottery_id"]
    capability_id = created.json()["capability_id"]

    clock.current = 150
    bought = client.post(
        f"/api/lotteries/{lottery_id}/tickets",
        json={"ticket_number": 42, "payment": 150, "recipient": "bob"},
    )
    assert bought.status_code == 201
    assert bought.json()["change"] == 50
    ticket_id = bought.json()["ticket_id"]

    duplicate = client.post(
        f"/api/lotteries/{lottery_id}/tickets",
        json={"ticket_number": 42, "payment": 100, "recipient": "carol"},
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["error"] == "NumberUnavailable"

    too_early = client.post(f"/api/lotteries/{lottery_id}/run")
    assert too_early.status_code == 409

    clock.current = 250
    assert client.post(f"/api/lotteries/{lottery_id}/run").json() == {"winning_number": 42}
    assert client.post(f"/api/lotteries/{lottery_id}/run").status_code == 409

    stolen = client.post(
        f"/api/lotteries/{lottery_id}/claim",
        json={"ticket_id": ticket_id, "holder": "mallory", "recipient": "mallory"},
    )
    assert stolen.status_code == 403

    claimed = client.post(
        f"/api/lotteries/{lottery_id}/claim",
        json={"ticket_id": ticket_id, "holder": "bob", "recipient": "bob"},
    )
    assert claimed.status_code == 200
    assert claimed.json()["prize_id"] == "golden-goose"
    assert claimed.json()["prize_payload"] == {"kind": "collectible"}

    withdrawn = client.post(
        f"/api/lotteries/{lottery_id}/withdraw",
        json={"capability_id": capability_id, "holder": "alice", "recipient": "alice"},
    )
    assert withdrawn.json() == {"amount": 100, "recipient": "alice"}

    burned = client.delete(f"/api/lotteries/{lottery_id}/tickets/{ticket_id}", params={"holder": "bob"})
    assert burned.status_code == 204

    snapshot = client.get(f"/api/lotteries/{lottery_id}").json()
    assert snapshot["state"] == "PRIZE_CLAIMED"
    assert snapshot["proceeds"] == 0
    assert snapshot["sold_numbers"] == []
    assert snapshot["winning_number"] == 42

    events = [e["event_type"] for e in client.get(f"/api/lotteries/{lottery_id}/events").json()]
    assert events[0] == "LOTTERY_CREATED"
    assert events[-1] == "TICKET_BURNED"


def test_unwind_over_http(client, clock):
    created = _create(client).json()
    lottery_id = created["lottery_id"]

    clock.current = 150
    ticket_id = client.post(
        f"/api/lotteries/{lottery_id}/tickets",
        json={"ticket_number": 7, "payment": 100, "recipient": "bob"},
    ).json()["ticket_id"]

    clock.current = 200 + GRACE + 1
    refunded = client.post(
        f"/api/lotteries/{lottery_id}/refund",
        json={"ticket_id": ticket_id, "holder": "bob", "recipient": "bob"},
    )
    assert refunded.json() == {"amount": 100, "recipient": "bob"}

    returned = client.post(
        f"/api/lotteries/{lottery_id}/return-prize",
        json={"capability_id": created["capability_id"], "holder": "alice", "recipient": "alice"},
    )
    assert returned.status_code == 200

    snapshot = client.get(f"/api/lotteries/{lottery_id}").json()
    assert snapshot["state"] == "UNWOUND"
    assert snapshot["cancelled"] is True
    assert client.get(f"/api/capabilities/{created['capability_id']}").status_code == 404


def test_ticket_transfer_over_http(client, clock):
    lottery_id = _create(client).json()["lottery_id"]
    clock.current = 150
    ticket_id = client.post(
        f"/api/lotteries/{lottery_id}/tickets",
        json={"ticket_number": 1, "payment": 100, "recipient": "bob"},
    ).json()["ticket_id"]

    moved = client.post(f"/api/tickets/{ticket_id}/transfer", json={"holder": "bob", "new_owner": "carol"})
    assert moved.status_code == 200
    assert client.get(f"/api/tickets/{ticket_id}").json()["owner"] == "carol"

    again = client.post(f"/api/tickets/{ticket_id}/transfer", json={"holder": "bob", "new_owner": "bob"})
    assert again.status_code == 403


def test_invalid_creation_is_a_bad_request(client):
    response = _create(client, number_range=100)
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "InvalidConfiguration"


def test_unknown_lottery_is_not_found(client):
    response = client.get("/api/lotteries/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404


def test_unexpected_read_failures_are_internal_errors(client, monkeypatch):
    lottery_id = _create(client).json()["lottery_id"]

    def broken(*args):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(LotteryManager, "get_lottery", staticmethod(broken))
    monkeypatch.setattr(LotteryManager, "get_ticket", staticmethod(broken))
    monkeypatch.setattr(LotteryManager, "find_capability", staticmethod(broken))

    some_id = "00000000-0000-0000-0000-000000000001"
    for path in [
        f"/api/lotteries/{lottery_id}",
        f"/api/lotteries/{lottery_id}/events",
        f"/api/tickets/{some_id}",
        f"/api/capabilities/{some_id}",
    ]:
        response = client.get(path)
        assert response.status_code == 500, path
        assert response.json()["detail"] == "Internal error"
