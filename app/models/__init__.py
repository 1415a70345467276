"""
Database models.

Usage:
    from app.models import Match, Venue

    finished = db.query(Match).filter(Match.status == "Match Finished").all()
"""
from app.models.models import Base, League, Match, Venue

__all__ = [
    "Base",
    "League",
    "Match",
    "Venue",
]
