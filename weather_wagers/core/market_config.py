"""Market-level configuration — every pricing constant in one place.

This module is the **registry** for the constants that shape the board:
forecast uncertainty, vig, fixed moneyline prices, line rounding, closing
offset, and the cities priced every night.  Nowhere else in the codebase
should these be hard-coded.

Architecture
------------
:class:`MarketConfig` is a frozen dataclass.  :meth:`MarketConfig.default`
returns the production board; :meth:`MarketConfig.from_env` layers
environment overrides on top.  Services receive the config as an argument,
so tests can price against alternate parameters without monkeypatching.

Typical usage::

    from weather_wagers.core.market_config import MarketConfig

    cfg = MarketConfig.from_env()

    # Widen the forecast error for a volatile spring week:
    from dataclasses import replace
    spring_cfg = replace(cfg, forecast_sd=4.0)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Final

from weather_wagers.core.bet_terms import DEFAULT_RAIN_YES_THRESHOLD


@dataclass(frozen=True)
class CityLocation:
    """A city priced by the nightly board."""

    name: str
    latitude: float
    longitude: float


#: Cities priced every night by ``generate_daily_lines``.
DEFAULT_CITIES: Final[tuple[CityLocation, ...]] = (
    CityLocation("Madison, WI", 43.0731, -89.4012),
    CityLocation("Los Angeles, CA", 34.0522, -118.2437),
    CityLocation("New York City, NY", 40.7128, -74.0060),
)


@dataclass(frozen=True)
class MarketConfig:
    """Immutable pricing configuration.

    Attributes:
        forecast_sd: σ of the NWS max-temperature forecast error in °F.
        vig_multiplier: Fair probability is scaled by this before the
            offset is subtracted.
        vig_offset: Subtracted after scaling.
        min_prob: Lower clamp on the vigged probability.
        max_prob: Upper clamp on the vigged probability.
        fixed_odds: American price for the rain and condition lines.
        line_step: Temperature lines are rounded to a multiple of this.
        rain_yes_threshold: Forecast precipitation % at or above which the
            rain line predicts YES.
        close_hours_before: Lines close this many hours before midnight
            of the target date.
        cities: Cities priced by the nightly board.
    """

    forecast_sd: float = 3.0
    vig_multiplier: float = 1.02
    vig_offset: float = 0.01
    min_prob: float = 0.01
    max_prob: float = 0.99
    fixed_odds: Decimal = Decimal("100.00")
    line_step: int = 5
    rain_yes_threshold: int = DEFAULT_RAIN_YES_THRESHOLD
    close_hours_before: int = 2
    cities: tuple[CityLocation, ...] = field(default=DEFAULT_CITIES)

    # ------------------------------------------------------------------ #
    #  Named constructors                                                  #
    # ------------------------------------------------------------------ #

    @classmethod
    def default(cls) -> MarketConfig:
        """Return the production board configuration."""
        return cls()

    @classmethod
    def from_env(cls) -> MarketConfig:
        """Return the default config with environment overrides applied.

        Recognised variables: ``FORECAST_SD``, ``CLOSE_HOURS_BEFORE``.
        """
        cfg = cls.default()
        return replace(
            cfg,
            forecast_sd=float(os.getenv("FORECAST_SD", str(cfg.forecast_sd))),
            close_hours_before=int(
                os.getenv("CLOSE_HOURS_BEFORE", str(cfg.close_hours_before))
            ),
        )

    def __post_init__(self) -> None:
        if self.forecast_sd <= 0:
            raise ValueError(f"forecast_sd must be positive, got {self.forecast_sd!r}")
        if not 0 < self.min_prob < self.max_prob < 1:
            raise ValueError(
                f"Probability clamp ({self.min_prob}, {self.max_prob}) must lie inside (0, 1)"
            )
        if self.line_step <= 0:
            raise ValueError(f"line_step must be positive, got {self.line_step!r}")
