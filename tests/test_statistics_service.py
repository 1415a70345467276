"""Tests for season statistics over stored matches."""
import sys
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

sys.path.insert(0, str(Path(__file__).parent))
from conftest import store_match

from app.services.statistics_service import StatisticsService, parse_score
from app.services.sync.exceptions import ConfigurationError

SEASON = "2023-2024"


@pytest.fixture
def season_matches(db_session: Session):
    """
    Four finished La Liga matches plus noise:
    - Real Madrid 2-1 Barcelona (Clear)
    - Barcelona 3-3 Sevilla (Rain)
    - Sevilla 0-1 Real Madrid (Rain)
    - Barcelona 0-0 Real Madrid (no weather)
    """
    store_match(db_session, id_event="1", season=SEASON, date_event="2023-09-01",
                home_team="Real Madrid", away_team="Barcelona", home_score="2", away_score="1", weather="Clear")
    store_match(db_session, id_event="2", season=SEASON, date_event="2023-09-08",
                home_team="Barcelona", away_team="Sevilla", home_score="3", away_score="3", weather="Rain")
    store_match(db_session, id_event="3", season=SEASON, date_event="2023-09-15",
                home_team="Sevilla", away_team="Real Madrid", home_score="0", away_score="1", weather="Rain")
    store_match(db_session, id_event="4", season=SEASON, date_event="2023-09-22",
                home_team="Barcelona", away_team="Real Madrid", home_score="0", away_score="0")
    # Not finished, other season
    store_match(db_session, id_event="5", season=SEASON, date_event="2023-09-29",
                home_team="Real Madrid", away_team="Sevilla", home_score=None, away_score=None, status="Not Started")
    store_match(db_session, id_event="6", season="2022-2023", date_event="2022-09-01",
                home_team="Real Madrid", away_team="Sevilla", home_score="5", away_score="0")
    return db_session


class TestParseScore:

    def test_values(self):
        assert parse_score("3") == 3
        assert parse_score("0") == 0
        assert parse_score(None) == 0
        assert parse_score("") == 0
        assert parse_score("n/a") == 0


class TestStatisticsService:
    """get_year_statistics() over a small season."""

    # League table
    # ─────────────────────────────────────────────────────────────

    def test_league_table(self, season_matches):
        """Should rank by points then goal difference, leaving 0-0 out of the table."""
        stats = StatisticsService(season_matches).get_year_statistics(2023, "4335")

        table = stats["league_table"]
        assert [row["team"] for row in table][0] == "Real Madrid"
        assert {row["team"] for row in table} == {"Real Madrid", "Barcelona", "Sevilla"}

        madrid = table[0]
        assert madrid["points"] == 6
        assert (madrid["wins"], madrid["draws"], madrid["losses"]) == (2, 0, 0)
        assert (madrid["goals_for"], madrid["goals_against"], madrid["goal_difference"]) == (3, 1, 2)

        barcelona = next(row for row in table if row["team"] == "Barcelona")
        assert barcelona["points"] == 1
        assert (barcelona["goals_for"], barcelona["goals_against"]) == (4, 5)

    def test_raw_stats_splits(self, season_matches):
        stats = StatisticsService(season_matches).get_year_statistics(2023, "4335")

        madrid = next(s for s in stats["raw_stats"] if s["team_name"] == "Real Madrid")
        assert madrid["matches_played"] == 2
        assert madrid["home_record"]["wins"] == 1
        assert madrid["away_record"]["wins"] == 1
        assert madrid["points_per_game"] == 3.0
        assert madrid["goals_per_game"] == 1.5

    # Form
    # ─────────────────────────────────────────────────────────────

    def test_form_includes_goalless_draws(self, season_matches):
        """Should build form from every finished match in date order."""
        form = StatisticsService(season_matches).get_year_statistics(2023, "4335")["form"]

        assert form["Real Madrid"] == {"form": ["W", "W", "D"], "points": 7, "streak": "none"}
        assert form["Barcelona"]["form"] == ["L", "D", "D"]
        assert form["Barcelona"]["streak"] == "drawing"
        assert form["Sevilla"]["streak"] == "none"

    def test_form_window_is_five(self, db_session: Session):
        for i in range(7):
            store_match(db_session, id_event=str(100 + i), season=SEASON, date_event=f"2023-10-0{i + 1}",
                        home_team="Girona", away_team=f"Rival {i}", home_score="2", away_score="0")

        form = StatisticsService(db_session).get_year_statistics(2023, "4335")["form"]

        assert form["Girona"]["form"] == ["W"] * 5
        assert form["Girona"]["points"] == 15
        assert form["Girona"]["streak"] == "winning"

    # Head to head and weather
    # ─────────────────────────────────────────────────────────────

    def test_head_to_head(self, season_matches):
        h2h = StatisticsService(season_matches).get_year_statistics(2023, "4335")["head_to_head"]

        record = next(r for r in h2h if {r["team1"], r["team2"]} == {"Real Madrid", "Barcelona"})
        madrid_wins = record["team1_wins"] if record["team1"] == "Real Madrid" else record["team2_wins"]
        assert madrid_wins == 1
        assert record["draws"] == 1
        assert len(h2h) == 3

    def test_weather_impact(self, season_matches):
        """Should group by weather category and skip matches without weather."""
        impact = StatisticsService(season_matches).get_year_statistics(2023, "4335")["weather_impact"]
        by_weather = {w["weather"]: w for w in impact}

        assert set(by_weather) == {"Clear", "Rain"}
        assert by_weather["Clear"] == {"weather": "Clear", "matches": 1, "win_rate": 1.0, "avg_goals": 3.0}
        assert by_weather["Rain"]["matches"] == 2
        assert by_weather["Rain"]["win_rate"] == 0.5
        assert by_weather["Rain"]["avg_goals"] == pytest.approx(3.5)

    # Edge cases
    # ─────────────────────────────────────────────────────────────

    def test_empty_season(self, db_session: Session):
        stats = StatisticsService(db_session).get_year_statistics(2010, "4346")
        assert stats == {"league_table": [], "form": {}, "head_to_head": [], "weather_impact": [], "raw_stats": []}

    def test_mls_uses_single_year_season(self, db_session: Session):
        store_match(db_session, id_event="900", league_id="4346", season="2024", date_event="2024-05-01",
                    home_team="Austin FC", away_team="LA Galaxy", home_score="1", away_score="2")

        stats = StatisticsService(db_session).get_year_statistics(2024, "4346")

        assert stats["league_table"][0]["team"] == "LA Galaxy"

    def test_unsupported_league(self, db_session: Session):
        with pytest.raises(ConfigurationError):
            StatisticsService(db_session).get_year_statistics(2023, "9999")
