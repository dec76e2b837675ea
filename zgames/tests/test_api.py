"""
HTTP API Test Suite

Drives the FastAPI app in-process through httpx. The app is built with the
test session factory, which both the score recorder and the read routes use.
"""
import pytest
from httpx import AsyncClient, ASGITransport

from zgames.main import create_app
from zgames.orm.tournament import TournamentStatus
from zgames.rate_limit import limiter
from zgames.services.tournament_service import set_tournament_status


@pytest.fixture
def app(session_factory, broadcast_adapter):
    limiter.reset()
    return create_app(session_factory=session_factory, broadcast_adapter=broadcast_adapter)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def scores_url(tournament_id, game_id):
    return f"/api/leaderboardScoring/{tournament_id}/games/{game_id}/scores"


# =============================================================================
# Score submission
# =============================================================================

@pytest.mark.asyncio
async def test_submit_team_scores(client, seeded):
    response = await client.post(scores_url(seeded.tournament.id, seeded.tug.id), json={
        "score_type": "team",
        "team_scores": [
            {"team_id": seeded.red.id, "score": 100, "reason": "win"},
            {"team_id": seeded.blue.id, "score": -10, "reason": "foul"},
        ],
        "request_id": "api-1",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    summary = body["data"]["summary"]
    assert summary["count"] == 2
    assert summary["highest"] == 100
    assert summary["lowest"] == -10
    assert summary["average"] == 45.0
    assert body["data"]["request_id"] == "api-1"
    assert body["data"]["already_processed"] is False
    assert body["data"]["version"] == 1


@pytest.mark.asyncio
async def test_score_type_inferred_from_player_list(client, seeded):
    response = await client.post(scores_url(seeded.tournament.id, seeded.sack.id), json={
        "player_scores": [{"player_id": seeded.alice.id, "score": 20}],
    })

    assert response.status_code == 200
    assert response.json()["data"]["score_type"] == "player"


@pytest.mark.asyncio
async def test_replayed_request_reports_already_processed(client, seeded):
    payload = {"team_scores": [{"team_id": seeded.red.id, "score": 5}], "request_id": "api-replay"}

    await client.post(scores_url(seeded.tournament.id, seeded.tug.id), json=payload)
    response = await client.post(scores_url(seeded.tournament.id, seeded.tug.id), json=payload)

    assert response.status_code == 200
    assert response.json()["data"]["already_processed"] is True


@pytest.mark.asyncio
async def test_duplicate_ids_rejected(client, seeded):
    response = await client.post(scores_url(seeded.tournament.id, seeded.tug.id), json={
        "team_scores": [
            {"team_id": seeded.red.id, "score": 5},
            {"team_id": seeded.red.id, "score": 7},
        ],
    })

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "DUPLICATE_ENTRY"
    assert body["details"]["duplicates"] == [seeded.red.id]


@pytest.mark.asyncio
async def test_missing_score_list_rejected(client, seeded):
    response = await client.post(scores_url(seeded.tournament.id, seeded.tug.id), json={})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_bad_score_reports_item_index(client, seeded):
    response = await client.post(scores_url(seeded.tournament.id, seeded.tug.id), json={
        "team_scores": [
            {"team_id": seeded.red.id, "score": 5},
            {"team_id": seeded.blue.id, "score": "lots"},
        ],
    })

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["details"]["index"] == 1


@pytest.mark.asyncio
async def test_unknown_tournament_is_404(client, seeded):
    response = await client.post(scores_url("missing", seeded.tug.id), json={
        "team_scores": [{"team_id": seeded.red.id, "score": 5}],
    })
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


# =============================================================================
# Leaderboards
# =============================================================================

@pytest.mark.asyncio
async def test_tournament_leaderboard(client, seeded):
    await client.post(scores_url(seeded.tournament.id, seeded.tug.id), json={
        "team_scores": [{"team_id": seeded.blue.id, "score": 30}],
    })

    response = await client.get(f"/api/leaderboardScoring/{seeded.tournament.id}/leaderboard")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["team_rankings"][0]["name"] == "Blue"
    assert data["team_rankings"][0]["total_score"] == 30


@pytest.mark.asyncio
async def test_reads_use_the_app_session_factory(app, client, seeded):
    """Leaderboard reads hit the same database the recorder writes to."""
    assert app.dependency_overrides == {}

    post = await client.post(scores_url(seeded.tournament.id, seeded.tug.id), json={
        "team_scores": [{"team_id": seeded.red.id, "score": 42}],
        "request_id": "api-same-db",
    })
    assert post.status_code == 200

    response = await client.get(f"/api/leaderboardScoring/{seeded.tournament.id}/leaderboard")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["tournament"]["version"] == 1
    assert data["highest_team"]["name"] == "Red"
    assert data["highest_team"]["score"] == 42


@pytest.mark.asyncio
async def test_active_leaderboard(client, seeded, db):
    response = await client.get("/api/leaderboardScoring/leaderboard/active")
    assert response.json()["data"]["tournament"]["id"] == seeded.tournament.id

    await set_tournament_status(db, seeded.tournament.id, TournamentStatus.INACTIVE.value)
    response = await client.get("/api/leaderboardScoring/leaderboard/active")
    assert response.status_code == 200
    assert response.json()["data"] is None


@pytest.mark.asyncio
async def test_unknown_tournament_leaderboard_is_404(client, seeded):
    response = await client.get("/api/leaderboardScoring/nope/leaderboard")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_game_leaderboard(client, seeded):
    await client.post(scores_url(seeded.tournament.id, seeded.sack.id), json={
        "player_scores": [{"player_id": seeded.carol.id, "score": 12}],
    })

    response = await client.get(
        f"/api/leaderboardScoring/{seeded.tournament.id}/games/{seeded.sack.id}/leaderboard"
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["game"]["name"] == "Sack Race"
    assert data["player_rankings"][0]["player_name"] == "Carol"


@pytest.mark.asyncio
async def test_unselected_game_leaderboard_is_404(client, seeded):
    response = await client.get(
        f"/api/leaderboardScoring/{seeded.tournament.id}/games/{seeded.dodgeball.id}/leaderboard"
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
