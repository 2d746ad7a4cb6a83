import asyncio
import time
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.exc import OperationalError

from stance_backend.backend import create_app
from stance_backend.db_session import get_async_session
from stance_backend.dependencies import get_session_factory
from stance_backend.services import errors


@pytest.fixture
def app(fake_store, session_factory):
    app = create_app(store=fake_store, guards=False)

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def _vote(client, stance="agree", take_id="phi001", **extra):
    return client.post("/api/vote", json={"take_id": take_id, "stance": stance, **extra})


def test_votes_health_route_not_shadowed(client):
    response = client.get("/api/votes/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "votes_api"}


def test_first_vote_returns_its_own_aggregate(client):
    response = _vote(client, "disagree", reason_tags=["Too extreme"])

    assert response.status_code == 200
    payload = response.json()
    assert isinstance(payload["vote_id"], int)
    assert payload["aggregate"] == {
        "total_votes": 1,
        "agree_percentage": 0.0,
        "top_reason": "Too extreme",
    }


def test_aggregate_after_several_votes(client):
    for _ in range(3):
        _vote(client, "agree", reason_tags=["Makes sense"])
    response = _vote(client, "disagree")

    aggregate = response.json()["aggregate"]
    assert aggregate["total_votes"] == 4
    assert aggregate["agree_percentage"] == 75.0
    assert aggregate["top_reason"] == "Makes sense"

    stats = client.get("/api/takes/phi001/stats").json()
    assert stats == aggregate


@pytest.mark.parametrize(
    "body",
    [
        {"stance": "agree"},
        {"take_id": "phi001"},
        {"take_id": "phi001", "stance": "meh"},
        {"take_id": "phi001", "stance": "agree", "explanation": "x" * 500},
    ],
)
def test_invalid_votes_are_rejected(client, body):
    assert client.post("/api/vote", json=body).status_code == 400


def test_slow_write_answers_pending_and_lands_once(app, client, session_factory, monkeypatch):
    @asynccontextmanager
    async def slow_session():
        await asyncio.sleep(0.3)
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session_factory] = lambda: slow_session
    monkeypatch.setattr(errors, "BACKING_STORE_TIMEOUT_SECONDS", 0.05)

    response = _vote(client, session_id="slow1")

    assert response.status_code == 202
    assert response.json()["status"] == "pending"
    assert response.json()["vote_id"] is None

    monkeypatch.setattr(errors, "BACKING_STORE_TIMEOUT_SECONDS", 8)
    time.sleep(0.6)
    assert client.get("/api/votes/session/slow1").json()["count"] == 1


def test_failed_write_returns_503_and_stores_nothing(app, client, session_factory):
    def unreachable_session():
        raise ConnectionError("database is down")

    app.dependency_overrides[get_session_factory] = lambda: unreachable_session

    response = _vote(client, session_id="down1")

    assert response.status_code == 503
    assert "not recorded" in response.json()["detail"]
    assert client.get("/api/votes/session/down1").json()["count"] == 0


def test_vote_serves_default_aggregate_when_stats_read_fails(client, monkeypatch):
    failing_stats = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("gone")))
    monkeypatch.setattr("stance_backend.votes_api.get_take_stats", failing_stats)

    response = _vote(client, "agree")

    assert response.status_code == 200
    assert response.json()["aggregate"] == {
        "total_votes": 1,
        "agree_percentage": 100.0,
        "top_reason": None,
    }
    failing_stats.assert_awaited_once()


def test_stats_for_unvoted_take_are_zero(client):
    assert client.get("/api/takes/phi002/stats").json() == {
        "total_votes": 0,
        "agree_percentage": 0.0,
        "top_reason": None,
    }


def test_amend_vote(client):
    vote_id = _vote(client, "agree").json()["vote_id"]

    response = client.patch(
        f"/api/vote/{vote_id}",
        json={"reason_tags": ["Personal experience"], "explanation": "Lived it"},
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert client.get("/api/takes/phi001/stats").json()["top_reason"] == "Personal experience"


def test_amend_unknown_vote_is_404(client):
    assert client.patch("/api/vote/9999", json={"reason_tags": ["x"]}).status_code == 404


def test_amend_rejects_long_explanation(client):
    vote_id = _vote(client).json()["vote_id"]

    assert client.patch(f"/api/vote/{vote_id}", json={"explanation": "x" * 281}).status_code == 400


def test_session_votes_and_stitch(client):
    _vote(client, "agree", take_id="phi001", session_id="s1")
    _vote(client, "disagree", take_id="wor001", session_id="s1")
    _vote(client, "agree", take_id="mon001", session_id="s1", user_id="userA")

    listed = client.get("/api/votes/session/s1").json()
    assert listed["count"] == 3
    assert [v["take_id"] for v in listed["votes"]] == ["mon001", "wor001", "phi001"]

    first = client.post("/api/stitch", json={"session_id": "s1", "user_id": "userB"}).json()
    repeat = client.post("/api/stitch", json={"session_id": "s1", "user_id": "userB"}).json()
    assert first == {"ok": True, "rows_updated": 2}
    assert repeat == {"ok": True, "rows_updated": 0}

    owners = [v["user_id"] for v in client.get("/api/votes/session/s1").json()["votes"]]
    assert owners == ["userA", "userB", "userB"]


def test_stitch_requires_both_ids(client):
    response = client.post("/api/stitch", json={"session_id": "", "user_id": "userA"})

    assert response.status_code == 400
