"""Tests for one-shot predictions and prediction conversations."""
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from sqlalchemy.orm import Session

sys.path.insert(0, str(Path(__file__).parent.parent))
from conftest import store_match

from app.services.prediction.prediction_service import (
    CACHE_TTL_SECONDS,
    CONVERSATION_TTL_SECONDS,
    PredictionService,
    build_context,
    conversation_key,
    format_upcoming,
)
from app.services.sync.exceptions import NoMatchDataError, PredictionError


class FakeDeepSeek:
    """Records prompts and returns numbered answers."""

    def __init__(self, error: Optional[Exception] = None):
        self.calls: List[Dict] = []
        self.error = error

    async def ask(self, context, question, history=None):
        self.calls.append({
            "context": context,
            "question": question,
            "history": [dict(m) for m in history] if history else None,
        })
        if self.error:
            raise self.error
        return f"answer {len(self.calls)}"


def upcoming(id_event: str = "5001", league_id: str = "4335", **fields) -> Dict:
    match = {
        "id_event": id_event,
        "league_id": league_id,
        "league_name": "Spanish La Liga",
        "season": "2025-2026",
        "home_team": "Real Madrid",
        "away_team": "Barcelona",
        "date_event": "2025-10-26",
        "time": "19:00:00",
        "venue_name": "Estadio Santiago Bernabéu",
        "city": "Madrid",
        "country": "Spain",
        "status": "Not Started",
        "weather_at_match_time": {"weather": "Rain", "temperature": 12.5, "humidity": 80},
    }
    match.update(fields)
    return match


@pytest.fixture
def history(db_session: Session) -> Session:
    store_match(db_session, id_event="1", date_event="2024-09-01", home_team="Real Madrid",
                away_team="Barcelona", weather="Rain")
    store_match(db_session, id_event="2", date_event="2024-09-08", home_team="Sevilla",
                away_team="Valencia", home_score="0", away_score="0")
    store_match(db_session, id_event="3", league_id="4346", season="2024", date_event="2024-09-10",
                home_team="Austin FC", away_team="LA Galaxy", weather="Clear")
    return db_session


@pytest.fixture
def deepseek() -> FakeDeepSeek:
    return FakeDeepSeek()


@pytest.fixture
def service(history, kv_store, deepseek) -> PredictionService:
    return PredictionService(history, kv_store, deepseek=deepseek)


class TestContextFormatting:

    def test_empty_history(self):
        assert build_context([]) == "No historical match data available."

    def test_history_lines(self, history):
        from app.models.models import Match

        context = build_context(history.query(Match).order_by(Match.id_event).all())

        assert context.startswith("Historical Match Data (3 matches):")
        assert "Match: Real Madrid vs Barcelona" in context
        assert "Score: 2 - 1" in context
        assert "Weather: Rain (15.0°C)" in context
        assert "Weather: N/A (N/A°C)" in context
        assert "Score: 0 - 0" in context

    def test_single_upcoming_block(self):
        text = format_upcoming([upcoming()])
        assert text.startswith("UPCOMING MATCH TO PREDICT:")
        assert "Venue: Estadio Santiago Bernabéu, Spain, Madrid" in text
        assert "Pressure: N/A hPa" in text

    def test_multiple_upcoming_blocks(self):
        text = format_upcoming([upcoming(), upcoming("5002", home_team="Girona")])
        assert text.startswith("UPCOMING MATCHES TO PREDICT (2 matches):")
        assert "MATCH 2:\nHome Team: Girona" in text


class TestAsk:
    """One-shot questions with answer caching."""

    @pytest.mark.asyncio
    async def test_answer_then_cache_hit(self, service, deepseek, kv_store, clock):
        """Should call the model once and serve the repeat from cache."""
        first = await service.ask("Who wins in the rain?", league_id="4335")
        second = await service.ask("Who wins in the rain?", league_id="4335")

        assert first == {"answer": "answer 1", "matches_used": 2, "cached": False}
        assert second == {"answer": "answer 1", "matches_used": 2, "cached": True}
        assert len(deepseek.calls) == 1

        clock.advance(CACHE_TTL_SECONDS)
        third = await service.ask("Who wins in the rain?", league_id="4335")
        assert third["cached"] is False
        assert len(deepseek.calls) == 2

    @pytest.mark.asyncio
    async def test_filters_by_team_either_side(self, service, deepseek):
        """Should keep matches where any of the named teams played."""
        result = await service.ask("Form?", home_team="galaxy", away_team="sevilla")

        assert result["matches_used"] == 2
        context = deepseek.calls[0]["context"]
        assert "Austin FC vs LA Galaxy" in context
        assert "Sevilla vs Valencia" in context
        assert "Real Madrid" not in context

    @pytest.mark.asyncio
    async def test_limit_caps_context(self, service):
        result = await service.ask("Anything?", limit=1)
        assert result["matches_used"] == 1

    @pytest.mark.asyncio
    async def test_no_matching_data(self, service, deepseek):
        with pytest.raises(NoMatchDataError):
            await service.ask("?", league_id="4335", season="1999-2000")
        assert deepseek.calls == []

    @pytest.mark.asyncio
    async def test_provider_error_not_cached(self, history, kv_store):
        service = PredictionService(history, kv_store, deepseek=FakeDeepSeek(PredictionError("down")))

        with pytest.raises(PredictionError):
            await service.ask("Who wins?")

        assert await kv_store.get(PredictionService.cache_key("Who wins?")) is None

    def test_cache_key_shape(self):
        key = PredictionService.cache_key("Will it rain?", league_id="4335", home_team="Real Madrid")
        parts = key.split(":")
        assert parts[:6] == ["prediction", "4335", "all", "Real Madrid", "all", "150"]
        assert len(parts[6]) == 20


class TestPredictMatch:
    """Conversations about upcoming fixtures."""

    @pytest.mark.asyncio
    async def test_new_conversation(self, service, deepseek, kv_store, clock):
        """Should build context once and store the first exchange for a day."""
        result = await service.predict_match([upcoming()], "Who wins?")

        conversation_id = result["conversation_id"]
        assert conversation_id.startswith("conv_")
        assert result["answer"] == "answer 1"
        assert result["matches_used"] == 3
        assert result["cached"] is False

        call = deepseek.calls[0]
        assert call["history"] is None
        assert call["context"].startswith("UPCOMING MATCH TO PREDICT:")
        assert "Historical Match Data (3 matches):" in call["context"]

        stored = await kv_store.get(conversation_key(conversation_id))
        assert [m["role"] for m in stored["messages"]] == ["user", "assistant"]
        assert stored["messages"][0]["content"].endswith("\n\nQuestion: Who wins?")
        assert stored["matches"][0] == {
            "id_event": "5001", "league_id": "4335", "home_team": "Real Madrid",
            "away_team": "Barcelona", "date_event": "2025-10-26",
        }

        clock.advance(CONVERSATION_TTL_SECONDS)
        assert await kv_store.get(conversation_key(conversation_id)) is None

    @pytest.mark.asyncio
    async def test_follow_up_replays_history(self, service, deepseek):
        """Should send only the new question on top of the stored messages."""
        first = await service.predict_match([upcoming()], "Who wins?")
        second = await service.predict_match([upcoming()], "And the score?", conversation_id=first["conversation_id"])

        assert second["conversation_id"] == first["conversation_id"]
        follow_up = deepseek.calls[1]
        assert follow_up["question"] == "And the score?"
        assert [m["role"] for m in follow_up["history"]] == ["user", "assistant"]

        conversation = await service.get_conversation(first["conversation_id"])
        assert len(conversation["messages"]) == 4
        assert conversation["messages"][2] == {"role": "user", "content": "And the score?"}

    @pytest.mark.asyncio
    async def test_changed_fixtures_reset_context(self, service, deepseek):
        """Should rebuild the context and clear history when the fixtures change."""
        first = await service.predict_match([upcoming()], "Who wins?")
        await service.predict_match([upcoming("5009", home_team="Girona")], "This one?",
                                    conversation_id=first["conversation_id"])

        assert deepseek.calls[1]["history"] is None
        assert "Home Team: Girona" in deepseek.calls[1]["context"]

        conversation = await service.get_conversation(first["conversation_id"])
        assert len(conversation["messages"]) == 2
        assert conversation["matches"][0]["id_event"] == "5009"

    @pytest.mark.asyncio
    async def test_changed_league_resets_context(self, service, deepseek):
        first = await service.predict_match([upcoming()], "Who wins?")
        await service.predict_match([upcoming(league_id="4346")], "Now MLS?", conversation_id=first["conversation_id"])

        assert deepseek.calls[1]["history"] is None

    @pytest.mark.asyncio
    async def test_unknown_conversation_starts_new(self, service):
        result = await service.predict_match([upcoming()], "Who wins?", conversation_id="conv_missing")

        assert result["conversation_id"] != "conv_missing"
        assert await service.get_conversation(result["conversation_id"]) is not None

    @pytest.mark.asyncio
    async def test_empty_database(self, db_session, kv_store, deepseek):
        service = PredictionService(db_session, kv_store, deepseek=deepseek)

        with pytest.raises(NoMatchDataError):
            await service.predict_match([upcoming()], "Who wins?")

    @pytest.mark.asyncio
    async def test_delete_conversation(self, service):
        result = await service.predict_match([upcoming()], "Who wins?")

        assert await service.delete_conversation(result["conversation_id"]) is True
        assert await service.delete_conversation(result["conversation_id"]) is False
        assert await service.get_conversation(result["conversation_id"]) is None
