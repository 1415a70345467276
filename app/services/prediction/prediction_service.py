"""
Natural-language match predictions.

Two flows:
- ask(): one-shot question over filtered historical matches; answers are
  cached in the key-value store for an hour, keyed on the query.
- predict_match(): conversation about specific upcoming fixtures. The
  historical context is sent once; follow-ups replay the stored message
  history. Changing the league or the set of fixtures rebuilds the
  context and clears the history. Conversations live for 24 hours.
"""
import base64
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.kv_store import KeyValueStore
from app.core.logging import get_logger
from app.core.metrics import record_prediction_cache
from app.models.models import Match
from app.repositories.match_repository import MatchRepository
from app.services.prediction.deepseek_client import DeepSeekClient
from app.services.sync.exceptions import NoMatchDataError

logger = get_logger(__name__)

CACHE_TTL_SECONDS = 3600
CONVERSATION_TTL_SECONDS = 86400
DEFAULT_MATCH_LIMIT = 150  # Reported in the cache key and response when no limit is given
FETCH_ALL_LIMIT = 10000


def _na(value: Any) -> Any:
    return "N/A" if value is None or value == "" else value


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def conversation_key(conversation_id: str) -> str:
    return f"conversation:{conversation_id}"


def new_conversation_id() -> str:
    return f"conv_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def format_match(match: Match) -> str:
    """One historical match as context text."""
    weather = match.weather_at_match_time or {}
    return (
        f"Match: {match.home_team} vs {match.away_team}\n"
        f"Date: {match.date_event} {match.time or ''}\n"
        f"Venue: {match.venue_name}, {match.country}\n"
        f"Score: {_na(match.home_score)} - {_na(match.away_score)}\n"
        f"Status: {match.status}\n"
        f"Weather: {_na(weather.get('weather'))} ({_na(weather.get('temperature'))}°C), "
        f"Humidity: {_na(weather.get('humidity'))}%, Wind: {_na(weather.get('wind_speed'))} m/s\n"
        f"---"
    )


def format_upcoming(matches: List[Dict[str, Any]]) -> str:
    """Upcoming fixtures as context text; a single fixture gets more detail."""
    if len(matches) == 1:
        match = matches[0]
        weather = match.get("weather_at_match_time") or {}
        city = f", {match['city']}" if match.get("city") else ""
        return (
            f"UPCOMING MATCH TO PREDICT:\n"
            f"Home Team: {match.get('home_team')}\n"
            f"Away Team: {match.get('away_team')}\n"
            f"Date: {match.get('date_event')} {match.get('time') or ''}\n"
            f"Venue: {match.get('venue_name')}, {match.get('country')}{city}\n"
            f"League: {match.get('league_name')} (Season: {match.get('season')})\n"
            f"Status: {match.get('status')}\n"
            f"Weather Forecast: {_na(weather.get('weather'))} ({_na(weather.get('temperature'))}°C), "
            f"Humidity: {_na(weather.get('humidity'))}%, Wind: {_na(weather.get('wind_speed'))} m/s, "
            f"Pressure: {_na(weather.get('pressure'))} hPa\n"
            f"Weather Description: {_na(weather.get('weather_description'))}\n"
            f"---"
        )

    blocks = []
    for index, match in enumerate(matches, start=1):
        weather = match.get("weather_at_match_time") or {}
        blocks.append(
            f"MATCH {index}:\n"
            f"Home Team: {match.get('home_team')}\n"
            f"Away Team: {match.get('away_team')}\n"
            f"Date: {match.get('date_event')} {match.get('time') or ''}\n"
            f"Venue: {match.get('venue_name')}, {match.get('country')}\n"
            f"League: {match.get('league_name')} (Season: {match.get('season')})\n"
            f"Weather Forecast: {_na(weather.get('weather'))} ({_na(weather.get('temperature'))}°C)"
        )
    return f"UPCOMING MATCHES TO PREDICT ({len(matches)} matches):\n\n" + "\n\n".join(blocks) + "\n---"


def build_context(matches: List[Match]) -> str:
    if not matches:
        return "No historical match data available."
    return "\n".join(
        [f"Historical Match Data ({len(matches)} matches):", ""] + [format_match(m) for m in matches]
    )


class PredictionService:
    """
    Prediction answers and conversations.

    Usage:
        service = PredictionService(db, get_kv_store())
        result = await service.ask(question="Does rain favour the away side?", league_id="4335")
    """

    def __init__(self, db: Session, store: KeyValueStore, deepseek: Optional[DeepSeekClient] = None):
        self.db = db
        self.store = store
        self.deepseek = deepseek or DeepSeekClient()
        self.matches = MatchRepository(db)

    @staticmethod
    def cache_key(
        question: str,
        league_id: Optional[str] = None,
        season: Optional[str] = None,
        home_team: Optional[str] = None,
        away_team: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> str:
        question_digest = base64.b64encode(question.encode("utf-8")).decode("ascii")[:20]
        return ":".join([
            "prediction",
            league_id or "all",
            season or "all",
            home_team or "all",
            away_team or "all",
            str(limit or DEFAULT_MATCH_LIMIT),
            question_digest,
        ])

    async def ask(
        self,
        question: str,
        league_id: Optional[str] = None,
        season: Optional[str] = None,
        home_team: Optional[str] = None,
        away_team: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Answer a question over stored matches.

        Returns:
            {answer, matches_used, cached}

        Raises:
            NoMatchDataError: If no stored match fits the filters
            ConfigurationError / PredictionError: From the DeepSeek client
        """
        key = self.cache_key(question, league_id, season, home_team, away_team, limit)
        cached = await self.store.get(key)
        if cached:
            record_prediction_cache(hit=True)
            logger.info(f"[PREDICTION] Cache hit for key: {key}")
            return {**cached, "cached": True}

        record_prediction_cache(hit=False)
        matches = self.matches.search(
            league_id=league_id,
            season=season,
            teams=[t for t in (home_team, away_team) if t],
            limit=limit or FETCH_ALL_LIMIT,
        )
        logger.info(f"[PREDICTION] Found {len(matches)} matches for context")
        if not matches:
            raise NoMatchDataError("No matches found with weather data matching the specified criteria.")

        answer = await self.deepseek.ask(build_context(matches), question)
        result = {"answer": answer, "matches_used": len(matches)}
        await self.store.set(key, result, ttl=CACHE_TTL_SECONDS)
        logger.info(f"[PREDICTION] Prediction generated and cached for {CACHE_TTL_SECONDS}s")
        return {**result, "cached": False}

    async def predict_match(
        self,
        upcoming: List[Dict[str, Any]],
        question: str,
        limit: Optional[int] = None,
        conversation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Predict upcoming fixtures, continuing a conversation when possible.

        Args:
            upcoming: Fixtures as dicts (league_id, home_team, away_team, id_event, ...)
            question: The user's question
            limit: Historical matches to include (all when omitted)
            conversation_id: Existing conversation to continue

        Returns:
            {answer, matches_used, cached, conversation_id}

        Raises:
            NoMatchDataError: If nothing has been synced yet
        """
        league_id = str(upcoming[0].get("league_id")) if upcoming else None
        match_ids = ",".join(str(m.get("id_event")) for m in upcoming)

        conversation: Optional[Dict[str, Any]] = None
        needs_context = True

        if conversation_id:
            conversation = await self.store.get(conversation_key(conversation_id))
            if conversation is None:
                logger.warning(f"[PREDICTION] Conversation {conversation_id} not found, starting new conversation")
                conversation_id = None
            else:
                previous = conversation.get("matches") or []
                previous_league = previous[0].get("league_id") if previous else None
                previous_ids = ",".join(str(m.get("id_event")) for m in previous)
                if previous_league != league_id or previous_ids != match_ids:
                    logger.info(
                        f"[PREDICTION] Matches changed (league: {previous_league} -> {league_id}). "
                        f"Regenerating context"
                    )
                else:
                    needs_context = False

        if needs_context:
            conversation_id = conversation_id or new_conversation_id()
            history = self.matches.search(limit=limit or FETCH_ALL_LIMIT)
            if not history:
                raise NoMatchDataError("No historical matches found in database. Please sync matches first.")

            context = f"{format_upcoming(upcoming)}\n\n{build_context(history)}"
            logger.info(f"[PREDICTION] Context built: {len(context)} characters from {len(history)} matches")

            summary = [
                {
                    "id_event": m.get("id_event"),
                    "league_id": str(m.get("league_id")),
                    "home_team": m.get("home_team"),
                    "away_team": m.get("away_team"),
                    "date_event": m.get("date_event"),
                }
                for m in upcoming
            ]
            now = _utc_now_iso()
            if conversation is None:
                conversation = {
                    "conversation_id": conversation_id,
                    "created_at": now,
                }
            conversation.update({
                "matches": summary,
                "context": context,
                "messages": [],
                "matches_used": len(history),
                "last_activity": now,
            })

        messages: List[Dict[str, str]] = conversation["messages"]
        answer = await self.deepseek.ask(conversation["context"], question, messages or None)

        if messages:
            messages.append({"role": "user", "content": question})
        else:
            messages.append({"role": "user", "content": f"{conversation['context']}\n\nQuestion: {question}"})
        messages.append({"role": "assistant", "content": answer})
        conversation["last_activity"] = _utc_now_iso()

        await self.store.set(conversation_key(conversation_id), conversation, ttl=CONVERSATION_TTL_SECONDS)
        logger.info(
            f"[PREDICTION] Match prediction generated. Conversation {conversation_id} "
            f"has {len(messages)} messages"
        )

        return {
            "answer": answer,
            "matches_used": conversation["matches_used"],
            "cached": False,
            "conversation_id": conversation_id,
        }

    async def get_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.get(conversation_key(conversation_id))

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation; False when it did not exist."""
        deleted = await self.store.delete(conversation_key(conversation_id))
        if deleted:
            logger.info(f"[PREDICTION] Deleted conversation {conversation_id}")
        return deleted
