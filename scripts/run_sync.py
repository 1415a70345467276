#!/usr/bin/env python3
"""
Manual Match Sync Script.

Runs the previous-matches sync (or lists upcoming fixtures) from the shell.
Goes through the same sync lock as the API, so with KV_STORE_BACKEND=redis
a CLI run and an API-triggered run never overlap.
"""
import sys
import asyncio
import argparse
from pathlib import Path

from dotenv import load_dotenv

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
load_dotenv(PROJECT_ROOT / ".env")

from app.core.config import settings
from app.core.database import SessionLocal, init_db
from app.core.kv_store import close_kv_store, get_kv_store
from app.core.logging import configure_logging
from app.services.sync.exceptions import SyncError
from app.services.sync.jobs import sync_if_idle
from app.services.sync.leagues import supported_league_ids
from app.services.sync.lock import SyncLock
from app.services.sync.orchestrator import SyncOrchestrator


async def run_previous_matches(years: int) -> int:
    """Sync previous matches; returns a process exit code."""
    print(f"🔄 Syncing current season plus {years} past season(s)...")

    try:
        result = await sync_if_idle(years, SyncLock(get_kv_store()))
    except (SyncError, ValueError) as e:
        print(f"❌ Sync failed: {e}")
        return 1

    if result is None:
        print("⏭️  Another sync is already running")
        return 2

    print("✅ Sync complete:")
    print(f"   Total matches: {result.total_matches}")
    print(f"   New: {result.synced_matches}")
    print(f"   Updated/skipped: {result.skipped_matches}")
    print(f"   Seasons skipped: {result.skipped_seasons}")
    for league in result.leagues:
        print(
            f"   • {league.league_name} ({league.league_id}): "
            f"{league.synced_matches} new, {league.skipped_matches} updated/skipped"
        )
    return 0


async def show_status() -> int:
    status = await SyncLock(get_kv_store()).get_status()
    print(f"Running: {status['is_running']}")
    if status["status"]:
        for key, value in status["status"].items():
            if key != "result":
                print(f"   {key}: {value}")
    else:
        print("   No sync recorded")
    return 0


async def show_upcoming(league_id: str) -> int:
    db = SessionLocal()
    try:
        orchestrator = SyncOrchestrator(db)
        matches = await orchestrator.list_upcoming(league_id)
    except SyncError as e:
        print(f"❌ {e}")
        return 1
    finally:
        db.close()

    print(f"📅 {len(matches)} upcoming matches:")
    for match in matches:
        weather = match.weather_at_match_time
        forecast = f"{weather.weather} {weather.temperature}°C" if weather else "no forecast"
        print(f"   {match.date_event} {match.time or ''}  {match.home_team} vs {match.away_team}  ({forecast})")
    return 0


async def main() -> int:
    parser = argparse.ArgumentParser(
        description="Manual match sync from TheSportsDB with OpenWeather enrichment",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync the current season plus the default number of past seasons
  python scripts/run_sync.py --sync

  # Sync the current season plus 2 past seasons
  python scripts/run_sync.py --sync --years 2

  # Show the last recorded sync status
  python scripts/run_sync.py --status

  # List upcoming MLS fixtures with forecasts
  python scripts/run_sync.py --upcoming 4346
        """
    )

    parser.add_argument(
        '--sync',
        action='store_true',
        help='Sync previous matches for all supported leagues'
    )
    parser.add_argument(
        '--years',
        type=int,
        default=settings.DEFAULT_YEARS_TO_SYNC,
        help=f'Past seasons to sync, 1-20 (default: {settings.DEFAULT_YEARS_TO_SYNC})'
    )
    parser.add_argument(
        '--status',
        action='store_true',
        help='Show sync status (shared only with the redis backend)'
    )
    parser.add_argument(
        '--upcoming',
        type=str,
        metavar='LEAGUE_ID',
        choices=supported_league_ids(),
        help='List upcoming fixtures for a league'
    )

    args = parser.parse_args()
    configure_logging(level=settings.LOG_LEVEL, json_output=False)
    init_db()

    try:
        if args.sync:
            return await run_previous_matches(args.years)
        if args.status:
            return await show_status()
        if args.upcoming:
            return await show_upcoming(args.upcoming)
        parser.print_help()
        return 0
    finally:
        await close_kv_store()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
