"""
Repository layer for data access.

The repository pattern provides:
1. Separation of data access logic from business logic
2. Single place for query logic (easier to maintain)
3. Easier testing (can mock repositories)
4. Consistent interface for data operations

Usage:
    from app.repositories import MatchRepository
    from app.core.database import SessionLocal

    db = SessionLocal()
    match_repo = MatchRepository(db)
    count = match_repo.count_for_season("4335", "2024-2025")
    db.close()
"""

from app.repositories.base import BaseRepository
from app.repositories.match_repository import MatchRepository
from app.repositories.venue_repository import VenueRepository

__all__ = [
    "BaseRepository",
    "MatchRepository",
    "VenueRepository",
]
