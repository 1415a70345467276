"""
Season statistics over synced matches.

Computes, for one league season:
- League table (points, goal difference, home/away splits)
- Form over each team's last five matches
- Head-to-head records per team pair
- Results and scoring per weather condition at kickoff

Only matches with status "Match Finished" are considered.
"""
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.models import Match
from app.repositories.match_repository import MatchRepository
from app.services.sync.leagues import format_season

logger = get_logger(__name__)

FORM_LENGTH = 5


def parse_score(score: Optional[str]) -> int:
    """Score string to int; missing or non-numeric scores count as 0."""
    if not score:
        return 0
    try:
        return int(score)
    except (TypeError, ValueError):
        return 0


def _empty_record() -> Dict[str, int]:
    return {"matches": 0, "wins": 0, "draws": 0, "losses": 0, "goals_for": 0, "goals_against": 0}


def _new_team(team_id: str, team_name: str) -> Dict[str, Any]:
    return {
        "team_id": team_id,
        "team_name": team_name,
        "matches_played": 0,
        "wins": 0,
        "draws": 0,
        "losses": 0,
        "points": 0,
        "goals_for": 0,
        "goals_against": 0,
        "goal_difference": 0,
        "home_record": _empty_record(),
        "away_record": _empty_record(),
        "points_per_game": 0.0,
        "goals_per_game": 0.0,
    }


def _result_letter(scored: int, conceded: int) -> str:
    if scored > conceded:
        return "W"
    if scored < conceded:
        return "L"
    return "D"


class StatisticsService:
    """
    Aggregates completed matches into chart-ready statistics.

    Usage:
        service = StatisticsService(db)
        stats = service.get_year_statistics(2023, "4335")
    """

    STREAK_NAMES = {"W": "winning", "L": "losing", "D": "drawing"}

    def __init__(self, db: Session):
        self.db = db
        self.matches = MatchRepository(db)

    def fetch_completed_matches(self, season: str, league_id: str) -> List[Match]:
        matches = self.matches.completed_for_season(league_id, season)
        logger.info(
            f"[STATISTICS] Fetched {len(matches)} completed matches for season {season}, league {league_id}"
        )
        return matches

    def calculate_team_statistics(self, matches: List[Match]) -> Dict[str, Dict[str, Any]]:
        """
        Per-team totals keyed by team id.

        Matches where both scores parse to 0 are left out here: a 0-0 is
        indistinguishable from a result the provider never filled in.
        """
        teams: Dict[str, Dict[str, Any]] = OrderedDict()

        for match in matches:
            home_score = parse_score(match.home_score)
            away_score = parse_score(match.away_score)
            if home_score == 0 and away_score == 0:
                continue

            sides = (
                (match.home_team_id, match.home_team, home_score, away_score, "home_record"),
                (match.away_team_id, match.away_team, away_score, home_score, "away_record"),
            )
            for team_id, team_name, scored, conceded, record_key in sides:
                stats = teams.setdefault(team_id, _new_team(team_id, team_name))
                record = stats[record_key]

                stats["matches_played"] += 1
                stats["goals_for"] += scored
                stats["goals_against"] += conceded
                record["matches"] += 1
                record["goals_for"] += scored
                record["goals_against"] += conceded

                result = _result_letter(scored, conceded)
                if result == "W":
                    stats["wins"] += 1
                    stats["points"] += 3
                    record["wins"] += 1
                elif result == "L":
                    stats["losses"] += 1
                    record["losses"] += 1
                else:
                    stats["draws"] += 1
                    stats["points"] += 1
                    record["draws"] += 1

        for stats in teams.values():
            played = stats["matches_played"]
            stats["goal_difference"] = stats["goals_for"] - stats["goals_against"]
            stats["points_per_game"] = stats["points"] / played if played else 0.0
            stats["goals_per_game"] = stats["goals_for"] / played if played else 0.0

        return teams

    def calculate_form(self, matches: List[Match]) -> Dict[str, Dict[str, Any]]:
        """
        Last five results per team, keyed by team name.

        `matches` must be chronological. The streak names the run at the end
        of the window when it is at least two long, otherwise "none".
        """
        by_team: Dict[str, List[Match]] = OrderedDict()
        for match in matches:
            by_team.setdefault(match.home_team_id, []).append(match)
            by_team.setdefault(match.away_team_id, []).append(match)

        form_by_name: Dict[str, Dict[str, Any]] = {}
        for team_id, team_matches in by_team.items():
            recent = team_matches[-FORM_LENGTH:]

            form: List[str] = []
            points = 0
            streak_type: Optional[str] = None
            streak_count = 0

            for match in recent:
                home_score = parse_score(match.home_score)
                away_score = parse_score(match.away_score)
                if match.home_team_id == team_id:
                    result = _result_letter(home_score, away_score)
                else:
                    result = _result_letter(away_score, home_score)

                form.append(result)
                points += {"W": 3, "D": 1, "L": 0}[result]
                if result == streak_type:
                    streak_count += 1
                else:
                    streak_type, streak_count = result, 1

            first = recent[0]
            team_name = first.home_team if first.home_team_id == team_id else first.away_team
            form_by_name[team_name] = {
                "form": form,
                "points": points,
                "streak": self.STREAK_NAMES[streak_type] if streak_count > 1 else "none",
            }

        return form_by_name

    def calculate_head_to_head(self, matches: List[Match]) -> List[Dict[str, Any]]:
        """Records per unordered team pair; team1 is the lower team id."""
        records: Dict[str, Dict[str, Any]] = OrderedDict()

        for match in matches:
            home_id, away_id = match.home_team_id, match.away_team_id
            home_score = parse_score(match.home_score)
            away_score = parse_score(match.away_score)

            team1_is_home = home_id < away_id
            key = f"{home_id}-{away_id}" if team1_is_home else f"{away_id}-{home_id}"

            if key not in records:
                records[key] = {
                    "team1": match.home_team if team1_is_home else match.away_team,
                    "team2": match.away_team if team1_is_home else match.home_team,
                    "team1_wins": 0,
                    "team2_wins": 0,
                    "draws": 0,
                    "team1_avg_goals": 0.0,
                    "team2_avg_goals": 0.0,
                }
            h2h = records[key]

            team1_goals, team2_goals = (
                (home_score, away_score) if team1_is_home else (away_score, home_score)
            )
            if team1_goals > team2_goals:
                h2h["team1_wins"] += 1
            elif team2_goals > team1_goals:
                h2h["team2_wins"] += 1
            else:
                h2h["draws"] += 1

            played = h2h["team1_wins"] + h2h["team2_wins"] + h2h["draws"]
            h2h["team1_avg_goals"] = (h2h["team1_avg_goals"] * (played - 1) + team1_goals) / played
            h2h["team2_avg_goals"] = (h2h["team2_avg_goals"] * (played - 1) + team2_goals) / played

        return list(records.values())

    def analyze_weather_impact(self, matches: List[Match]) -> List[Dict[str, Any]]:
        """Results and scoring grouped by weather category at kickoff."""
        impact: Dict[str, Dict[str, Any]] = OrderedDict()

        for match in matches:
            weather = match.weather_at_match_time or {}
            weather_type = weather.get("weather")
            if not weather_type:
                continue

            home_score = parse_score(match.home_score)
            away_score = parse_score(match.away_score)

            entry = impact.setdefault(weather_type, {
                "weather_type": weather_type,
                "match_count": 0,
                "home_wins": 0,
                "away_wins": 0,
                "draws": 0,
                "win_rate": 0.0,
                "avg_goals": 0.0,
            })
            entry["match_count"] += 1
            count = entry["match_count"]
            entry["avg_goals"] = (entry["avg_goals"] * (count - 1) + home_score + away_score) / count

            if home_score > away_score:
                entry["home_wins"] += 1
            elif away_score > home_score:
                entry["away_wins"] += 1
            else:
                entry["draws"] += 1

            # Share of matches that produced a winner
            entry["win_rate"] = (entry["home_wins"] + entry["away_wins"]) / count

        return list(impact.values())

    def format_for_charts(
        self,
        team_stats: Dict[str, Dict[str, Any]],
        form: Dict[str, Dict[str, Any]],
        head_to_head: List[Dict[str, Any]],
        weather_impact: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Shape the aggregates for chart libraries."""
        ranked = sorted(
            team_stats.values(),
            key=lambda s: (s["points"], s["goal_difference"]),
            reverse=True,
        )
        league_table = [
            {
                "team": s["team_name"],
                "points": s["points"],
                "goals_for": s["goals_for"],
                "goals_against": s["goals_against"],
                "goal_difference": s["goal_difference"],
                "wins": s["wins"],
                "draws": s["draws"],
                "losses": s["losses"],
            }
            for s in ranked
        ]

        return {
            "league_table": league_table,
            "form": form,
            "head_to_head": [
                {
                    "team1": h["team1"],
                    "team2": h["team2"],
                    "team1_wins": h["team1_wins"],
                    "team2_wins": h["team2_wins"],
                    "draws": h["draws"],
                }
                for h in head_to_head
            ],
            "weather_impact": [
                {
                    "weather": w["weather_type"],
                    "matches": w["match_count"],
                    "win_rate": w["win_rate"],
                    "avg_goals": w["avg_goals"],
                }
                for w in weather_impact
            ],
        }

    def get_year_statistics(self, year: int, league_id: str) -> Dict[str, Any]:
        """
        Statistics for the season starting in `year`.

        Args:
            year: Season start year
            league_id: "4335" (La Liga) or "4346" (MLS)

        Returns:
            Dict with league_table, form, head_to_head, weather_impact and raw_stats

        Raises:
            ConfigurationError: If the league is not supported
        """
        season = format_season(league_id, year)
        matches = self.fetch_completed_matches(season, league_id)

        if not matches:
            logger.warning(
                f"[STATISTICS] No completed matches found for season {season}, league {league_id}"
            )
            return {
                "league_table": [],
                "form": {},
                "head_to_head": [],
                "weather_impact": [],
                "raw_stats": [],
            }

        team_stats = self.calculate_team_statistics(matches)
        chart_data = self.format_for_charts(
            team_stats,
            self.calculate_form(matches),
            self.calculate_head_to_head(matches),
            self.analyze_weather_impact(matches),
        )
        chart_data["raw_stats"] = sorted(team_stats.values(), key=lambda s: s["points"], reverse=True)
        return chart_data
