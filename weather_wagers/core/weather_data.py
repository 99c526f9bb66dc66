"""DTOs exchanged with the weather and geocoding adapters.

The line generator and the outcome evaluator only ever see these types,
never raw API payloads.  Adapters in ``weather_wagers.services`` build them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ForecastPeriod:
    """One named forecast period ("Tonight", "Wednesday", ...)."""

    name: str
    temperature_f: Optional[float]
    precipitation_probability: Optional[int]
    short_forecast: Optional[str]
    detailed_forecast: Optional[str] = None
    start_time: Optional[datetime] = None
    is_daytime: Optional[bool] = None


@dataclass(frozen=True)
class Observation:
    """Latest station observation.

    ``precipitation_last_hour`` is the reported amount in the station's
    unit; only its sign matters to the engine.
    """

    temperature_c: Optional[float]
    precipitation_last_hour: Optional[float]
    text_description: Optional[str]

    @property
    def temperature_f(self) -> Optional[float]:
        if self.temperature_c is None:
            return None
        return self.temperature_c * 9.0 / 5.0 + 32.0

    @property
    def has_precipitation(self) -> bool:
        return self.precipitation_last_hour is not None and self.precipitation_last_hour > 0.0


@dataclass(frozen=True)
class GeocodeResult:
    canonical_name: str
    latitude: float
    longitude: float
    display_name: str = ""
    country: str = ""
