"""API clients for the external sources the sync reconciles against.

Available adapters:
- sportsdb_client: TheSportsDB v1 (season events, upcoming events, venues)
- weather_client: OpenWeather One Call 3.0 historical/forecast lookups
"""
from app.services.sync.adapters.sportsdb_client import QuotaWindow, SportsDbClient, get_quota_window
from app.services.sync.adapters.weather_client import WeatherClient

__all__ = [
    "QuotaWindow",
    "get_quota_window",
    "SportsDbClient",
    "WeatherClient",
]
