"""
Outcome evaluation: did a line win, given what was actually observed?

Pure function: no DB, no I/O.  Dispatches on the line's typed terms:

  TemperatureTerms  won iff observed °F < threshold (strict UNDER)
  RainTerms         won iff (forecast % >= YES threshold) == (rain in the
                    last hour); the threshold comes from the MarketConfig
                    the line was priced under
  ConditionTerms    won iff (observed text sunny/clear) == (description
                    names the Sunny/Clear side); no observed text → lost

Lines of an unknown bet type evaluate to lost rather than raising.
"""

import logging
from decimal import Decimal
from typing import Optional

from weather_wagers.core.bet_terms import (
    ConditionTerms,
    LineTerms,
    RainTerms,
    TemperatureTerms,
    is_sunny_text,
)
from weather_wagers.core.market_config import MarketConfig
from weather_wagers.core.weather_data import Observation
from weather_wagers.errors import ObservationUnavailable

logger = logging.getLogger(__name__)


def evaluate_terms(terms: Optional[LineTerms], observation: Observation) -> bool:
    """Return True when ``terms`` won against ``observation``."""
    match terms:
        case TemperatureTerms(threshold=threshold):
            actual_f = observation.temperature_f
            if actual_f is None:
                raise ObservationUnavailable("Temperature data not available")
            return Decimal(str(actual_f)) < threshold

        case RainTerms() as rain:
            return rain.predicts_rain == observation.has_precipitation

        case ConditionTerms() as condition:
            if observation.text_description is None:
                return False
            return is_sunny_text(observation.text_description) == condition.predicts_sunny

        case _:
            return False


def evaluate(line, observation: Observation, config: Optional[MarketConfig] = None) -> bool:
    """Evaluate a stored Line against an observation.

    Pass the same ``config`` the line was generated with; the rain side is
    rebuilt from its ``rain_yes_threshold``.
    """
    config = config or MarketConfig.default()
    terms = line.terms_with(config.rain_yes_threshold)
    if terms is None:
        logger.warning(
            "Line %s (%r) has no usable terms; settling as lost",
            getattr(line, "id", None), line.bet_type,
        )
    return evaluate_terms(terms, observation)
