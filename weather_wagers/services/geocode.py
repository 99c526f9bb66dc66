"""
City name → coordinates via Nominatim (OpenStreetMap).
https://nominatim.org/release-docs/latest/api/Search/

Nominatim's usage policy requires an identifying User-Agent and at most
one request per second; the engine only geocodes when resolving a line.
"""

import requests
import os
import logging
from typing import Dict, Optional

from weather_wagers.core.weather_data import GeocodeResult
from weather_wagers.errors import InvalidRequest, NotFound, UpstreamUnavailable

logger = logging.getLogger(__name__)

NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/search")
USER_AGENT = os.getenv("NWS_USER_AGENT", "WeatherWagers/1.0")
TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))


def parse_geocode_result(city_name: str, hit: Dict) -> GeocodeResult:
    """
    Build a GeocodeResult from the first Nominatim hit.

    Prefers "City, State" from the address details; falls back to the
    name that was searched for.
    """
    address = hit.get("address") or {}
    city = address.get("city") or address.get("town") or address.get("village")
    state = address.get("state")

    if city and state:
        canonical = f"{city}, {state}"
    elif city:
        canonical = city
    else:
        canonical = city_name

    return GeocodeResult(
        canonical_name=canonical,
        latitude=float(hit["lat"]),
        longitude=float(hit["lon"]),
        display_name=hit.get("display_name", ""),
        country=address.get("country", ""),
    )


class NominatimGeocoder:
    """Client for the Nominatim search endpoint"""

    def __init__(
        self,
        url: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.url = url or NOMINATIM_URL
        self.timeout = timeout or TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent or USER_AGENT})

    def geocode(self, city_name: str) -> GeocodeResult:
        """
        Geocode a city name such as "Seattle, WA" or "Chicago".

        Raises:
            InvalidRequest: empty name.
            NotFound: no match.
            UpstreamUnavailable: network, HTTP, or payload failure.
        """
        if not city_name or not city_name.strip():
            raise InvalidRequest("City name cannot be empty")

        params = {"q": city_name, "format": "json", "limit": 1, "addressdetails": 1}

        try:
            response = self.session.get(self.url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error("Geocoding request failed for %r: %s", city_name, e)
            raise UpstreamUnavailable(f"Failed to geocode city: {e}") from e
        except ValueError as e:
            raise UpstreamUnavailable(f"Geocoder returned malformed JSON: {e}") from e

        if not data:
            raise NotFound(f"City not found: {city_name}")

        try:
            result = parse_geocode_result(city_name, data[0])
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamUnavailable(f"Malformed geocoder result: {e}") from e

        logger.info(
            "Geocoded %r → %s (%.4f, %.4f)",
            city_name, result.canonical_name, result.latitude, result.longitude,
        )
        return result
