"""Shared pytest fixtures for the match weather sync tests."""
import sys
import zlib
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from app.core.kv_store import InMemoryKeyValueStore
from app.models.models import Base
from app.models.schemas import SportsDbEvent
from app.models.seed import seed_leagues


class FakeClock:
    """Monotonic clock the tests can move forward."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTaskRunner:
    """Records spawned tasks instead of running them."""

    def __init__(self):
        self.spawned: List[str] = []

    def spawn(self, name, coro):
        coro.close()
        self.spawned.append(name)


def make_event(
    id_event: str = "1001",
    home_team: str = "Real Madrid",
    away_team: str = "Barcelona",
    home_score: Optional[str] = "2",
    away_score: Optional[str] = "1",
    league_id: str = "4335",
    season: str = "2024-2025",
    date_event: str = "2024-10-26",
    timestamp: Optional[str] = "2024-10-26T19:00:00",
    venue_id: Optional[str] = "16163",
    venue_name: Optional[str] = "Estadio Santiago Bernabéu",
    status: str = "Match Finished",
    **extra: Any,
) -> Dict[str, Any]:
    """Raw TheSportsDB event payload."""
    payload = {
        "idEvent": id_event,
        "strEvent": f"{home_team} vs {away_team}",
        "strSport": "Soccer",
        "idLeague": league_id,
        "strLeague": "Spanish La Liga" if league_id == "4335" else "American Major League Soccer",
        "strSeason": season,
        "idHomeTeam": str(zlib.crc32(home_team.encode()) % 100000),
        "strHomeTeam": home_team,
        "idAwayTeam": str(zlib.crc32(away_team.encode()) % 100000),
        "strAwayTeam": away_team,
        "intHomeScore": home_score,
        "intAwayScore": away_score,
        "strTimestamp": timestamp,
        "dateEvent": date_event,
        "strTime": "19:00:00",
        "idVenue": venue_id,
        "strVenue": venue_name,
        "strCity": "Madrid",
        "strCountry": "Spain",
        "strStatus": status,
    }
    payload.update(extra)
    return payload


def parse_event(**kwargs: Any) -> SportsDbEvent:
    return SportsDbEvent.model_validate(make_event(**kwargs))


@pytest.fixture(scope="function")
def db_engine() -> Generator[Engine, None, None]:
    """Isolated in-memory database shared across threads (TestClient)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine: Engine) -> sessionmaker:
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Fresh session with the supported leagues seeded."""
    session = session_factory()
    seed_leagues(session)
    yield session
    session.close()


@pytest.fixture(autouse=True)
def fresh_quota_window(monkeypatch):
    """Start every test with an empty process-wide TheSportsDB quota window."""
    import app.services.sync.adapters.sportsdb_client as sportsdb_module

    monkeypatch.setattr(sportsdb_module, "_quota_window", None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv_store(clock: FakeClock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def task_runner() -> FakeTaskRunner:
    return FakeTaskRunner()


@pytest.fixture
def client(db_session: Session, session_factory: sessionmaker, kv_store, task_runner):
    """TestClient wired to the test database and store (lifespan not run)."""
    from fastapi.testclient import TestClient

    from app.core.database import get_db, get_session_factory
    from app.core.kv_store import get_kv_store
    from app.core.rate_limit import limiter
    from app.core.tasks import get_task_runner
    from app.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_kv_store] = lambda: kv_store
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_task_runner] = lambda: task_runner
    limiter.reset()

    yield TestClient(app)

    app.dependency_overrides.clear()


def store_match(db: Session, weather: Optional[str] = None, **kwargs: Any):
    """Upsert a match built by make_event(), optionally with a weather category."""
    from app.models.schemas import WeatherSnapshot
    from app.repositories.match_repository import MatchRepository

    event = parse_event(**kwargs)
    snapshot = None
    if weather:
        snapshot = WeatherSnapshot(weather=weather, temperature=15.0, lat=40.45, lon=-3.69, timestamp=event.timestamp or "")
    repo = MatchRepository(db)
    match, _ = repo.upsert_from_event(event, snapshot, event.league_id, event.league_name, event.season)
    repo.save()
    return match
