"""
HTTP endpoint integration tests for the match weather sync API.

These tests verify that FastAPI endpoints:
- Return correct HTTP status codes
- Validate query parameters and request bodies
- Map domain errors to HTTP errors
- Start syncs in the background without running them

Uses FastAPI TestClient for in-memory HTTP testing; provider clients are
replaced with fakes so no request leaves the process.
"""
import sys
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(PROJECT_ROOT / "tests"))
from conftest import make_event, store_match

from app.models.schemas import SportsDbEvent, SportsDbVenue, WeatherSnapshot
from app.services.sync.exceptions import PredictionError


# =============================================================================
# FAKES
# =============================================================================

class FakeSportsClient:

    async def list_upcoming_matches(self, league_id):
        return [SportsDbEvent.model_validate(make_event(
            id_event="7001", league_id=league_id, season="2025-2026", home_score=None,
            away_score=None, status="Not Started", timestamp="2025-11-01T20:00:00",
        ))]

    async def search_venue(self, name):
        return SportsDbVenue.model_validate({"idVenue": "16163", "strVenue": name, "strMap": "40.4530, -3.6883"})


class FakeWeatherClient:

    async def fetch(self, lat, lon, iso_timestamp):
        return WeatherSnapshot(weather="Clouds", temperature=14.0, lat=lat, lon=lon, timestamp=iso_timestamp)


class FakeDeepSeek:

    def __init__(self, error=None):
        self.error = error

    async def ask(self, context, question, history=None):
        if self.error:
            raise self.error
        return "Real Madrid edge it"


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def sample_matches(db_session: Session) -> Session:
    store_match(db_session, id_event="1", season="2023-2024", date_event="2023-09-01",
                home_team="Real Madrid", away_team="Barcelona", home_score="2", away_score="1", weather="Rain")
    store_match(db_session, id_event="2", season="2023-2024", date_event="2023-09-08",
                home_team="Barcelona", away_team="Sevilla", home_score="1", away_score="0", weather="Clear")
    return db_session


@pytest.fixture
def fake_orchestrator(client, db_session, kv_store):
    from app.api.routes.sync import get_orchestrator
    from app.main import app
    from app.services.sync.lock import SyncLock
    from app.services.sync.orchestrator import SyncOrchestrator

    app.dependency_overrides[get_orchestrator] = lambda: SyncOrchestrator(
        db_session, lock=SyncLock(kv_store),
        sports_client=FakeSportsClient(), weather_client=FakeWeatherClient(),
    )
    return client


def override_deepseek(db_session, kv_store, deepseek):
    from app.api.routes.predictions import get_prediction_service
    from app.main import app
    from app.services.prediction.prediction_service import PredictionService

    app.dependency_overrides[get_prediction_service] = lambda: PredictionService(
        db_session, kv_store, deepseek=deepseek
    )


@pytest.fixture
def prediction_client(client, sample_matches, kv_store):
    override_deepseek(sample_matches, kv_store, FakeDeepSeek())
    return client


def upcoming_payload(**fields):
    match = {
        "id_event": 7001,
        "league_id": "4335",
        "league_name": "Spanish La Liga",
        "season": "2025-2026",
        "home_team": "Real Madrid",
        "away_team": "Barcelona",
        "date_event": "2025-11-01",
        "venue_name": "Estadio Santiago Bernabéu",
        "country": "Spain",
        "weather_at_match_time": {"weather": "Clouds", "temperature": 14.0},
    }
    match.update(fields)
    return match


# =============================================================================
# ROOT AND HEALTH
# =============================================================================

class TestRootAndHealth:

    def test_root_lists_endpoints(self, client):
        response = client.get("/")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "running"
        assert body["endpoints"]["sync"]["previous_matches"] == "/api/v1/sync/previous-matches"

    def test_health(self, client, session_factory, kv_store, monkeypatch):
        """Should report the database and store as connected."""
        import app.main as main

        monkeypatch.setattr(main, "SessionLocal", session_factory)
        monkeypatch.setattr(main, "get_kv_store", lambda: kv_store)

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"]["database"]["status"] == "connected"
        assert body["components"]["kv_store"]["sync_running"] is False

    def test_health_degraded_when_store_fails(self, client, session_factory, monkeypatch):
        import app.main as main

        class BrokenStore:
            async def get(self, key):
                raise ConnectionError("redis unavailable")

        monkeypatch.setattr(main, "SessionLocal", session_factory)
        monkeypatch.setattr(main, "get_kv_store", lambda: BrokenStore())

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_correlation_id_echoed(self, client):
        response = client.get("/", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"


# =============================================================================
# SYNC ENDPOINTS
# =============================================================================

class TestSyncEndpoints:
    """Test /api/v1/sync endpoints."""

    def test_status_idle(self, client):
        response = client.get("/api/v1/sync/sync-status")
        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {"is_running": False, "status": None}}

    def test_start_sync(self, client, task_runner):
        """Should take the lock, spawn the run and return immediately."""
        response = client.post("/api/v1/sync/previous-matches?years_to_sync=2")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "started"
        assert data["years_to_sync"] == 2
        assert data["leagues"] == ["4335", "4346"]
        assert len(task_runner.spawned) == 1

        status = client.get("/api/v1/sync/sync-status").json()["data"]
        assert status["is_running"] is True
        assert status["status"]["status"] == "running"

    def test_default_years(self, client):
        response = client.post("/api/v1/sync/previous-matches")
        assert response.json()["data"]["years_to_sync"] == 5

    def test_second_start_conflicts(self, client, task_runner):
        """Should return 409 SYNC_IN_PROGRESS while a run holds the lock."""
        client.post("/api/v1/sync/previous-matches?years_to_sync=1")
        response = client.post("/api/v1/sync/previous-matches?years_to_sync=1")

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "SYNC_IN_PROGRESS"
        assert len(task_runner.spawned) == 1

    @pytest.mark.parametrize("years", [0, 21])
    def test_years_out_of_range(self, client, years):
        response = client.post(f"/api/v1/sync/previous-matches?years_to_sync={years}")
        assert response.status_code == 422

    def test_upcoming_invalid_league(self, client):
        response = client.get("/api/v1/sync/upcoming-matches?league_id=1234")
        assert response.status_code == 400

    def test_upcoming_requires_league(self, client):
        assert client.get("/api/v1/sync/upcoming-matches").status_code == 422

    def test_upcoming_enriched(self, fake_orchestrator):
        response = fake_orchestrator.get("/api/v1/sync/upcoming-matches?league_id=4335")

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        match = body["data"][0]
        assert match["id_event"] == "7001"
        assert match["lat"] == pytest.approx(40.4530)
        assert match["weather_at_match_time"]["weather"] == "Clouds"


# =============================================================================
# STATISTICS ENDPOINTS
# =============================================================================

class TestStatisticsEndpoints:
    """Test /api/v1/statistics endpoints."""

    def test_year_statistics(self, client, sample_matches):
        response = client.get("/api/v1/statistics/year?year=2023&league_id=4335")

        assert response.status_code == 200
        body = response.json()
        assert body["meta"] == {"year": 2023, "league_id": "4335", "season": "2023-2024", "total_teams": 3}
        assert body["data"]["league_table"][0]["team"] == "Real Madrid"
        assert {w["weather"] for w in body["data"]["weather_impact"]} == {"Rain", "Clear"}

    def test_unsynced_season_is_empty(self, client):
        response = client.get("/api/v1/statistics/year?year=2015&league_id=4346")

        assert response.status_code == 200
        assert response.json()["meta"]["season"] == "2015"
        assert response.json()["data"]["league_table"] == []

    def test_invalid_league(self, client):
        assert client.get("/api/v1/statistics/year?year=2023&league_id=39").status_code == 400

    def test_year_out_of_range(self, client):
        assert client.get("/api/v1/statistics/year?year=1999&league_id=4335").status_code == 422


# =============================================================================
# PREDICTION ENDPOINTS
# =============================================================================

class TestPredictionEndpoints:
    """Test /api/v1/prediction endpoints."""

    def test_ask(self, prediction_client):
        response = prediction_client.post("/api/v1/prediction/ask", json={"question": "Who wins in the rain?"})

        assert response.status_code == 200
        assert response.json()["data"] == {"answer": "Real Madrid edge it", "matches_used": 2, "cached": False}

        again = prediction_client.post("/api/v1/prediction/ask", json={"question": "Who wins in the rain?"})
        assert again.json()["data"]["cached"] is True

    @pytest.mark.parametrize("body", [{}, {"question": "   "}, {"question": "x", "league_id": "39"},
                                      {"question": "x", "limit": 0}, {"question": "x", "limit": 501}])
    def test_ask_validation(self, prediction_client, body):
        assert prediction_client.post("/api/v1/prediction/ask", json=body).status_code == 400

    def test_ask_no_matching_data(self, prediction_client):
        response = prediction_client.post(
            "/api/v1/prediction/ask", json={"question": "Who wins?", "season": "1990-1991"}
        )
        assert response.status_code == 404

    def test_ask_provider_failure(self, client, sample_matches, kv_store):
        override_deepseek(sample_matches, kv_store, FakeDeepSeek(PredictionError("DeepSeek API error: 500")))

        response = client.post("/api/v1/prediction/ask", json={"question": "Who wins?"})

        assert response.status_code == 502

    def test_predict_match_and_conversation(self, prediction_client):
        """Should start a conversation that can be inspected, continued and deleted."""
        response = prediction_client.post("/api/v1/prediction/predict-match", json={
            "matches": [upcoming_payload()],
            "question": "Who wins?",
        })

        assert response.status_code == 200
        data = response.json()["data"]
        conversation_id = data["conversation_id"]
        assert data["matches_used"] == 2
        assert data["upcoming_matches"] == [{
            "home_team": "Real Madrid", "away_team": "Barcelona", "venue": "Estadio Santiago Bernabéu",
            "date": "2025-11-01", "weather": {"weather": "Clouds", "temperature": 14.0},
        }]

        follow_up = prediction_client.post("/api/v1/prediction/predict-match", json={
            "matches": [upcoming_payload()],
            "question": "By how much?",
            "conversation_id": conversation_id,
        })
        assert follow_up.json()["data"]["conversation_id"] == conversation_id

        summary = prediction_client.get(f"/api/v1/prediction/conversation/{conversation_id}")
        assert summary.status_code == 200
        assert summary.json()["data"]["messages_count"] == 4
        assert summary.json()["data"]["matches"][0]["id_event"] == "7001"

        deleted = prediction_client.delete(f"/api/v1/prediction/conversation/{conversation_id}")
        assert deleted.status_code == 200
        assert prediction_client.get(f"/api/v1/prediction/conversation/{conversation_id}").status_code == 404

    @pytest.mark.parametrize("body", [
        {"question": "Who wins?"},
        {"matches": [], "question": "Who wins?"},
        {"matches": [{"league_id": "4335", "home_team": "Real Madrid"}], "question": "Who wins?"},
        {"matches": [{"league_id": "39", "home_team": "A", "away_team": "B"}], "question": "Who wins?"},
        {"matches": [{"league_id": "4335", "home_team": "A", "away_team": "B"}]},
    ])
    def test_predict_match_validation(self, prediction_client, body):
        assert prediction_client.post("/api/v1/prediction/predict-match", json=body).status_code == 400

    def test_unknown_conversation(self, prediction_client):
        assert prediction_client.get("/api/v1/prediction/conversation/conv_nope").status_code == 404
        assert prediction_client.delete("/api/v1/prediction/conversation/conv_nope").status_code == 404
