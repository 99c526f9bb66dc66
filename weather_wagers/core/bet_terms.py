"""Closed vocabularies for lines and wagers, plus typed line terms.

``BetType`` and ``Outcome`` are the only values ever written to the
``bet_type`` / ``outcome`` / ``status`` columns.  ``LineTerms`` carries the
payload each bet type is judged on, so evaluation dispatches on a typed
variant instead of comparing strings.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union


class BetType(str, enum.Enum):
    MAX_TEMP_OVER_UNDER = "MAX_TEMP_OVER_UNDER"
    RAIN_YES_NO = "RAIN_YES_NO"
    CONDITION_MATCH = "CONDITION_MATCH"


class Outcome(str, enum.Enum):
    """Resolution state of a line, and settlement state of a wager."""

    PENDING = "PENDING"
    WON = "WON"
    LOST = "LOST"

    @classmethod
    def from_won(cls, won: bool) -> Outcome:
        return cls.WON if won else cls.LOST


#: Substrings that mark a forecast or observation as sunny.
SUNNY_KEYWORDS: tuple[str, ...] = ("sunny", "clear")

SUNNY_SIDE = "Sunny/Clear Day"
CLOUDY_SIDE = "Mostly Cloudy or Worse"

#: Forecast precipitation % at or above which a rain line takes the YES side.
DEFAULT_RAIN_YES_THRESHOLD = 50


def is_sunny_text(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in SUNNY_KEYWORDS)


@dataclass(frozen=True)
class TemperatureTerms:
    """Wins when the observed temperature is strictly under ``threshold``."""

    threshold: Decimal


@dataclass(frozen=True)
class RainTerms:
    """Wins when observed rain matches the side implied by the forecast %."""

    forecast_probability: Decimal
    yes_threshold: int = DEFAULT_RAIN_YES_THRESHOLD

    @property
    def predicts_rain(self) -> bool:
        return self.forecast_probability >= self.yes_threshold


@dataclass(frozen=True)
class ConditionTerms:
    """Wins when observed sky condition matches the side named in ``description``.

    The predicted side lives only in the description text the generator
    wrote; ``predicts_sunny`` reads it back from there.
    """

    description: str

    @property
    def predicts_sunny(self) -> bool:
        return SUNNY_SIDE.lower() in self.description.lower()


LineTerms = Union[TemperatureTerms, RainTerms, ConditionTerms]


def terms_for(
    bet_type: str,
    line_value: Optional[Decimal],
    description: str,
    rain_yes_threshold: int = DEFAULT_RAIN_YES_THRESHOLD,
) -> Optional[LineTerms]:
    """Build the typed terms for a stored line.

    ``rain_yes_threshold`` must be the value the line was priced with, so
    the rain side read back here matches the side in the description.

    Returns None for a bet type this build does not know, or when a
    numeric line is missing its value.
    """
    try:
        kind = BetType(bet_type)
    except ValueError:
        return None

    match kind:
        case BetType.MAX_TEMP_OVER_UNDER:
            return TemperatureTerms(line_value) if line_value is not None else None
        case BetType.RAIN_YES_NO:
            return RainTerms(line_value, rain_yes_threshold) if line_value is not None else None
        case BetType.CONDITION_MATCH:
            return ConditionTerms(description or "")
