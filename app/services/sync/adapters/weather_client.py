"""
OpenWeather One Call 3.0 client for historical (kickoff-time) weather.

Weather is an enrichment: every failure path logs and returns None so
that a match is still stored without weather.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import record_weather_request
from app.models.schemas import WeatherSnapshot

logger = get_logger(__name__)


def to_epoch_seconds(iso_timestamp: str) -> int:
    """
    Convert an ISO-8601 timestamp to Unix seconds.

    Naive timestamps are taken as UTC; a trailing "Z" is accepted.

    Raises:
        ValueError: If the timestamp cannot be parsed
    """
    value = iso_timestamp.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


class WeatherClient:
    """
    Historical weather lookups via the One Call `timemachine` endpoint.

    Usage:
        weather = await WeatherClient().fetch(40.453, -3.688, "2024-08-18T19:30:00")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = settings.OPENWEATHER_API_KEY if api_key is None else api_key
        self.base_url = (base_url or settings.OPENWEATHER_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.OPENWEATHER_TIMEOUT
        self._transport = transport

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.RequestError, httpx.TimeoutException)),
        reraise=True,
    )
    async def _fetch_with_retry(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call timemachine, retrying transport errors.

        HTTP status errors (bad key, quota exceeded) are not retried.
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(f"{self.base_url}/timemachine", params=params)
            response.raise_for_status()
            return response.json()

    async def fetch(self, lat: float, lon: float, iso_timestamp: Optional[str]) -> Optional[WeatherSnapshot]:
        """
        Get the weather at a point in time.

        Args:
            lat: Latitude in decimal degrees
            lon: Longitude in decimal degrees
            iso_timestamp: Kickoff time, ISO-8601

        Returns:
            WeatherSnapshot, or None when the key is missing, the call fails
            or the response has no data
        """
        if not self.api_key:
            record_weather_request("skipped")
            logger.warning("OPENWEATHER_API_KEY is not set; skipping weather lookup")
            return None

        if not iso_timestamp:
            record_weather_request("skipped")
            return None

        try:
            dt = to_epoch_seconds(iso_timestamp)
        except ValueError:
            record_weather_request("error")
            logger.error(f"Unparsable timestamp for weather lookup: {iso_timestamp!r}")
            return None

        params = {
            "lat": lat,
            "lon": lon,
            "dt": dt,
            "appid": self.api_key,
            "units": "metric",
        }

        try:
            payload = await self._fetch_with_retry(params)
        except (httpx.HTTPError, ValueError) as e:
            record_weather_request("error")
            logger.error(f"Error fetching weather for lat {lat}, lon {lon}, timestamp {iso_timestamp}: {e}")
            return None

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            record_weather_request("empty")
            logger.warning(f"No weather data for lat {lat}, lon {lon}, timestamp {iso_timestamp}")
            return None

        point = data[0]
        conditions = point.get("weather")
        if not isinstance(conditions, list) or not conditions or not isinstance(conditions[0], dict):
            conditions = [{}]
        conditions = conditions[0]
        visibility = point.get("visibility")

        try:
            snapshot = WeatherSnapshot(
                temperature=point.get("temp"),
                feels_like=point.get("feels_like"),
                humidity=point.get("humidity"),
                pressure=point.get("pressure"),
                visibility=visibility / 1000 if isinstance(visibility, (int, float)) else None,
                wind_speed=point.get("wind_speed"),
                wind_direction=point.get("wind_deg"),
                clouds=point.get("clouds"),
                weather=conditions.get("main"),
                weather_description=conditions.get("description"),
                weather_icon=conditions.get("icon"),
                lat=lat,
                lon=lon,
                timestamp=iso_timestamp,
            )
        except (ValidationError, AttributeError) as e:
            record_weather_request("error")
            logger.error(f"Malformed weather payload for timestamp {iso_timestamp}: {e}")
            return None

        record_weather_request("success")
        return snapshot
