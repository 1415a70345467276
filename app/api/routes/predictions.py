"""
Prediction routes.

Natural-language questions over synced matches, answered by DeepSeek:
- /prediction/ask: one-shot question with optional filters (cached 1 hour)
- /prediction/predict-match: conversation about specific upcoming fixtures
- /prediction/conversation/{id}: inspect or delete a conversation
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.kv_store import KeyValueStore, get_kv_store
from app.core.rate_limit import GENERAL_LIMIT, PREDICTION_LIMIT, limiter
from app.services.prediction.prediction_service import PredictionService
from app.services.sync.exceptions import ConfigurationError, NoMatchDataError, PredictionError
from app.services.sync.leagues import supported_league_ids

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prediction", tags=["prediction"])

MAX_LIMIT = 500


# ============================================================================
# Request models
# ============================================================================

class AskRequest(BaseModel):
    """Question with optional match filters."""
    question: Optional[str] = None
    league_id: Optional[str] = None
    season: Optional[str] = None
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    limit: Optional[int] = None


class UpcomingMatchIn(BaseModel):
    """An upcoming fixture as returned by /sync/upcoming-matches."""
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id_event: Optional[str] = None
    league_id: Optional[str] = None
    league_name: Optional[str] = None
    season: Optional[str] = None
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    date_event: Optional[str] = None
    time: Optional[str] = None
    venue_name: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    status: Optional[str] = None
    weather_at_match_time: Optional[Dict[str, Any]] = None


class PredictMatchRequest(BaseModel):
    """Upcoming fixtures plus a question, optionally continuing a conversation."""
    matches: Optional[List[UpcomingMatchIn]] = None
    question: Optional[str] = None
    limit: Optional[int] = None
    conversation_id: Optional[str] = None


def get_prediction_service(
    db: Session = Depends(get_db),
    store: KeyValueStore = Depends(get_kv_store),
) -> PredictionService:
    return PredictionService(db, store)


def _validate_league(league_id: Optional[str]) -> None:
    if league_id and league_id not in supported_league_ids():
        raise HTTPException(
            status_code=400,
            detail=f"Invalid league_id. Must be one of: {', '.join(supported_league_ids())}",
        )


def _validate_limit(limit: Optional[int]) -> None:
    if limit is not None and not 1 <= limit <= MAX_LIMIT:
        raise HTTPException(status_code=400, detail=f"Limit must be between 1 and {MAX_LIMIT}")


def _prediction_http_error(e: Exception) -> HTTPException:
    """Map prediction-path domain errors to HTTP errors."""
    if isinstance(e, NoMatchDataError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ConfigurationError):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/ask")
@limiter.limit(PREDICTION_LIMIT)
async def ask_prediction(
    request: Request,
    body: AskRequest,
    service: PredictionService = Depends(get_prediction_service),
) -> Dict:
    """
    Answer a question over stored matches.

    Filters narrow the historical context: league, season, and team names
    (case-insensitive substring on either side).
    """
    if not body.question or not body.question.strip():
        raise HTTPException(status_code=400, detail="Question is required and must be a non-empty string")
    _validate_league(body.league_id)
    _validate_limit(body.limit)

    try:
        result = await service.ask(
            question=body.question.strip(),
            league_id=body.league_id,
            season=body.season,
            home_team=body.home_team,
            away_team=body.away_team,
            limit=body.limit,
        )
    except (NoMatchDataError, ConfigurationError, PredictionError) as e:
        logger.error(f"Prediction failed: {e}")
        raise _prediction_http_error(e)

    return {"success": True, "data": result}


@router.post("/predict-match")
@limiter.limit(PREDICTION_LIMIT)
async def predict_match(
    request: Request,
    body: PredictMatchRequest,
    service: PredictionService = Depends(get_prediction_service),
) -> Dict:
    """
    Predict upcoming fixtures, keeping a conversation for follow-ups.

    Pass back the returned conversation_id to ask follow-up questions
    without resending the historical context.
    """
    if not body.matches:
        raise HTTPException(status_code=400, detail="Matches array is required and must not be empty")
    for match in body.matches:
        if not match.league_id or not match.home_team or not match.away_team:
            raise HTTPException(
                status_code=400,
                detail="Each match must have league_id, home_team, and away_team",
            )
        _validate_league(match.league_id)
    if not body.question or not body.question.strip():
        raise HTTPException(status_code=400, detail="Question is required and must be a non-empty string")
    _validate_limit(body.limit)

    upcoming = [m.model_dump() for m in body.matches]
    try:
        result = await service.predict_match(
            upcoming,
            body.question.strip(),
            limit=body.limit,
            conversation_id=body.conversation_id,
        )
    except (NoMatchDataError, ConfigurationError, PredictionError) as e:
        logger.error(f"Match prediction failed: {e}")
        raise _prediction_http_error(e)

    result["upcoming_matches"] = [
        {
            "home_team": m["home_team"],
            "away_team": m["away_team"],
            "venue": m.get("venue_name"),
            "date": m.get("date_event"),
            "weather": m.get("weather_at_match_time"),
        }
        for m in upcoming
    ]
    return {"success": True, "data": result}


@router.get("/conversation/{conversation_id}")
@limiter.limit(GENERAL_LIMIT)
async def get_conversation(
    request: Request,
    conversation_id: str,
    service: PredictionService = Depends(get_prediction_service),
) -> Dict:
    """Conversation summary (the context and message bodies are not returned)."""
    conversation = await service.get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return {
        "success": True,
        "data": {
            "conversation_id": conversation["conversation_id"],
            "matches": conversation["matches"],
            "messages_count": len(conversation["messages"]),
            "matches_used": conversation["matches_used"],
            "created_at": conversation["created_at"],
            "last_activity": conversation["last_activity"],
        },
    }


@router.delete("/conversation/{conversation_id}")
@limiter.limit(GENERAL_LIMIT)
async def delete_conversation(
    request: Request,
    conversation_id: str,
    service: PredictionService = Depends(get_prediction_service),
) -> Dict:
    if not await service.delete_conversation(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"success": True, "message": "Conversation deleted"}
