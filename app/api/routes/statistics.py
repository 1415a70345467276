"""Season statistics routes."""
import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.rate_limit import GENERAL_LIMIT, limiter
from app.services.statistics_service import StatisticsService
from app.services.sync.leagues import format_season, supported_league_ids

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/statistics", tags=["statistics"])


def get_statistics_service(db: Session = Depends(get_db)) -> StatisticsService:
    return StatisticsService(db)


@router.get("/year")
@limiter.limit(GENERAL_LIMIT)
async def get_year_statistics(
    request: Request,
    year: int = Query(..., ge=2000, le=2100, description="Season start year"),
    league_id: str = Query(..., description="TheSportsDB league id (4335 La Liga, 4346 MLS)"),
    service: StatisticsService = Depends(get_statistics_service),
) -> Dict:
    """
    League table, form, head-to-head and weather impact for one season.

    An unsynced season returns empty structures rather than 404.
    """
    if league_id not in supported_league_ids():
        raise HTTPException(
            status_code=400,
            detail=f"Invalid league_id. Must be one of: {', '.join(supported_league_ids())}",
        )

    data = service.get_year_statistics(year, league_id)
    return {
        "success": True,
        "data": data,
        "meta": {
            "year": year,
            "league_id": league_id,
            "season": format_season(league_id, year),
            "total_teams": len(data["league_table"]),
        },
    }
