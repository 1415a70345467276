"""
Seed the leagues table with the supported leagues.

Runs on startup from init_db(); existing rows are refreshed so that
badge URLs and descriptions follow the registry.
"""
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.models import League
from app.services.sync.leagues import LEAGUES

logger = get_logger(__name__)


def seed_leagues(db: Session) -> int:
    """
    Insert or refresh every supported league.

    Returns:
        Number of leagues inserted (0 when all already existed)
    """
    inserted = 0
    for info in LEAGUES.values():
        values = {
            "name": info.name,
            "alternate_name": info.alternate_name,
            "sport": "Soccer",
            "country": info.country,
            "description": info.description,
            "badge_url": info.badge_url,
        }
        league = db.query(League).filter(League.league_id == info.league_id).first()
        if league is None:
            db.add(League(league_id=info.league_id, **values))
            inserted += 1
        else:
            for key, value in values.items():
                setattr(league, key, value)

    db.commit()
    if inserted:
        logger.info(f"Seeded {inserted} leagues")
    return inserted
