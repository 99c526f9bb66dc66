"""
National Weather Service (api.weather.gov) integration.
https://www.weather.gov/documentation/services-web-api

Forecasts and observations are both a multi-step lookup:

  forecast:     /points/{lat},{lon}  →  properties.forecast URL  →  periods
  observation:  /points/{lat},{lon}  →  /gridpoints/{wfo}/{x},{y}/stations
                →  first station  →  /stations/{id}/observations/latest

NWS rejects requests without a User-Agent; set NWS_USER_AGENT to a
contact string in production.
"""

import requests
import os
import logging
from datetime import datetime
from typing import Dict, List, Optional

from weather_wagers.core.weather_data import ForecastPeriod, Observation
from weather_wagers.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

BASE_URL = os.getenv("NWS_BASE_URL", "https://api.weather.gov")
USER_AGENT = os.getenv("NWS_USER_AGENT", "WeatherWagers/1.0")
TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))


def _parse_start_time(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def parse_forecast_period(raw: Dict) -> ForecastPeriod:
    """
    Convert one NWS forecast period into a ForecastPeriod.

    The API returns:
        {"name": "Wednesday", "temperature": 52, "temperatureUnit": "F",
         "probabilityOfPrecipitation": {"unitCode": "wmoUnit:percent", "value": 20},
         "shortForecast": "Mostly Sunny", ...}

    A null probabilityOfPrecipitation.value means no precipitation is
    expected and is read as 0; a missing object stays None.
    """
    temperature = raw.get("temperature")
    if temperature is not None:
        temperature = float(temperature)
        if raw.get("temperatureUnit") == "C":
            temperature = temperature * 9.0 / 5.0 + 32.0

    pop = raw.get("probabilityOfPrecipitation")
    precipitation: Optional[int] = None
    if isinstance(pop, dict):
        precipitation = int(pop.get("value") or 0)

    return ForecastPeriod(
        name=raw.get("name") or "",
        temperature_f=temperature,
        precipitation_probability=precipitation,
        short_forecast=raw.get("shortForecast"),
        detailed_forecast=raw.get("detailedForecast"),
        start_time=_parse_start_time(raw.get("startTime")),
        is_daytime=raw.get("isDaytime"),
    )


def parse_observation(raw: Dict) -> Observation:
    """
    Convert a /observations/latest payload into an Observation.

    Temperatures arrive as {"unitCode": "wmoUnit:degC", "value": 11.1};
    a degF unit code is converted back to Celsius so Observation stays
    in one unit.
    """
    props = raw.get("properties")
    if not isinstance(props, dict):
        raise UpstreamUnavailable("Invalid observation response - missing properties")

    temp = props.get("temperature") or {}
    temperature_c = temp.get("value")
    if temperature_c is not None and str(temp.get("unitCode", "")).endswith("degF"):
        temperature_c = (float(temperature_c) - 32.0) * 5.0 / 9.0

    precip = props.get("precipitationLastHour") or {}

    return Observation(
        temperature_c=float(temperature_c) if temperature_c is not None else None,
        precipitation_last_hour=precip.get("value"),
        text_description=props.get("textDescription"),
    )


class NWSClient:
    """Client for the NWS forecast and observation endpoints"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or BASE_URL).rstrip("/")
        self.timeout = timeout or TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent or USER_AGENT,
            "Accept": "application/geo+json",
        })

    def _get_json(self, url: str) -> Dict:
        if url.startswith("/"):
            url = f"{self.base_url}{url}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error("NWS request failed: %s (%s)", url, e)
            raise UpstreamUnavailable(f"Weather API request failed: {e}") from e
        except ValueError as e:
            raise UpstreamUnavailable(f"Weather API returned malformed JSON: {e}") from e

    def _points(self, latitude: float, longitude: float) -> Dict:
        data = self._get_json(f"/points/{latitude:.4f},{longitude:.4f}")
        props = data.get("properties")
        if not isinstance(props, dict) or not props.get("forecast"):
            raise UpstreamUnavailable("Failed to get forecast URL from points endpoint")
        return props

    def get_forecast(self, latitude: float, longitude: float) -> List[ForecastPeriod]:
        """
        Fetch the ~7-day forecast for a coordinate.

        Returns periods in API order (typically 14: day/night pairs).
        """
        forecast_url = self._points(latitude, longitude)["forecast"]
        data = self._get_json(forecast_url)

        periods = (data.get("properties") or {}).get("periods")
        if not isinstance(periods, list):
            raise UpstreamUnavailable("Invalid forecast response - missing periods data")

        try:
            parsed = [parse_forecast_period(p) for p in periods]
        except (TypeError, ValueError, AttributeError) as e:
            raise UpstreamUnavailable(f"Malformed forecast period: {e}") from e

        logger.info(
            "NWS forecast: %d periods for (%.4f, %.4f)",
            len(parsed), latitude, longitude,
        )
        return parsed

    def find_nearest_station(self, latitude: float, longitude: float) -> str:
        """Return the identifier of the first observation station for a coordinate."""
        props = self._points(latitude, longitude)

        wfo = props.get("gridId")
        grid_x = props.get("gridX")
        grid_y = props.get("gridY")
        if wfo is None or grid_x is None or grid_y is None:
            # Older payloads: recover the grid from .../gridpoints/{wfo}/{x},{y}/forecast
            try:
                parts = props["forecast"].split("/")
                wfo = parts[-3]
                grid_x, grid_y = parts[-2].split(",")
            except (IndexError, ValueError) as e:
                raise UpstreamUnavailable(f"Cannot derive grid from forecast URL: {e}") from e

        data = self._get_json(f"/gridpoints/{wfo}/{grid_x},{grid_y}/stations")
        stations = data.get("observationStations") or [
            f.get("id") for f in data.get("features") or [] if f.get("id")
        ]
        if not stations:
            raise UpstreamUnavailable("No stations found")

        return stations[0].rstrip("/").rsplit("/", 1)[-1]

    def get_observation(self, latitude: float, longitude: float) -> Observation:
        """Latest observation from the station nearest to a coordinate."""
        station_id = self.find_nearest_station(latitude, longitude)
        data = self._get_json(f"/stations/{station_id}/observations/latest")
        observation = parse_observation(data)

        logger.info(
            "NWS observation from %s: temp=%sC precip=%s text=%r",
            station_id,
            observation.temperature_c,
            observation.precipitation_last_hour,
            observation.text_description,
        )
        return observation
