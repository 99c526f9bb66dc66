"""
Line generation: NWS forecast period → priced betting lines.

Each forecast period yields up to three lines:

  MAX_TEMP_OVER_UNDER  line = forecast high rounded to the nearest 5 °F,
                       priced from the normal model for the UNDER side
  RAIN_YES_NO          line = forecast precipitation %, fixed +100
  CONDITION_MATCH      no numeric line, fixed +100, predicted side
                       written into the description

The generator never deduplicates.  Calling it twice for the same
(city, date) writes six lines; callers check
``queries.lines_for_city_and_date`` first.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from weather_wagers.core.bet_terms import (
    BetType,
    Outcome,
    CLOUDY_SIDE,
    SUNNY_SIDE,
    is_sunny_text,
)
from weather_wagers.core.market_config import CityLocation, MarketConfig
from weather_wagers.core.odds_math import (
    probability_to_american_odds,
    quantize_money,
    round_line,
    under_probability,
)
from weather_wagers.core.weather_data import ForecastPeriod
from weather_wagers.errors import InvalidRequest, NotFound, WagerEngineError
from weather_wagers.models import Line

logger = logging.getLogger(__name__)


class ForecastSource(Protocol):
    def get_forecast(self, latitude: float, longitude: float) -> List[ForecastPeriod]:
        ...


@dataclass
class CityGenerationResult:
    city_name: str
    ok: bool
    lines_created: int = 0
    error: Optional[str] = None


@dataclass
class DailyGeneration:
    target_date: date
    lines: List[Line] = field(default_factory=list)
    results: List[CityGenerationResult] = field(default_factory=list)

    @property
    def failed_cities(self) -> List[str]:
        return [r.city_name for r in self.results if not r.ok]


# ---------------------------------------------------------------------------
# Period selection (pure)
# ---------------------------------------------------------------------------

def _is_daytime(period: ForecastPeriod) -> bool:
    if period.is_daytime is not None:
        return period.is_daytime
    return "night" not in period.name.lower()


def select_next_day_period(periods: Sequence[ForecastPeriod]) -> Optional[ForecastPeriod]:
    """
    Pick the forecast for the next full day.

    NWS lists periods as Today/This Afternoon, Tonight, <Tomorrow>, ...
    so index 2 is tomorrow's daytime period unless the list starts at
    night.  Otherwise take the first daytime period that is not "Today".
    Returns None when fewer than three periods are available.
    """
    if len(periods) <= 2:
        return None

    candidate = periods[2]
    if candidate.name and "night" not in candidate.name.lower():
        return candidate

    for period in periods:
        if period.name and "night" not in period.name.lower() and period.name.lower() != "today":
            return period
    return None


def select_period_for_date(
    periods: Sequence[ForecastPeriod],
    target_date: date,
    today: date,
) -> Optional[ForecastPeriod]:
    """
    Pick the daytime forecast period for ``target_date``.

    Tomorrow uses :func:`select_next_day_period`.  Other dates match on
    the period start time; when the payload carries no start times, fall
    back to the first daytime period that is not "Today".
    """
    if target_date == today + timedelta(days=1):
        return select_next_day_period(periods)

    dated = [p for p in periods if p.start_time is not None]
    if dated:
        for period in dated:
            if period.start_time.date() == target_date and _is_daytime(period):
                return period
        return None

    for period in periods:
        if period.name and _is_daytime(period) and period.name.lower() != "today":
            return period
    return None


# ---------------------------------------------------------------------------
# Line construction (pure, returns unsaved ORM rows)
# ---------------------------------------------------------------------------

def closing_time(target_date: date, config: MarketConfig) -> datetime:
    """Midnight starting ``target_date`` minus the configured offset."""
    return datetime.combine(target_date, time.min) - timedelta(hours=config.close_hours_before)


def build_lines(
    city_name: str,
    target_date: date,
    period: ForecastPeriod,
    config: Optional[MarketConfig] = None,
) -> List[Line]:
    """
    Price the lines for one city/date from one forecast period.

    Lines whose source field is missing from the period are skipped.
    """
    config = config or MarketConfig.default()
    closes_at = closing_time(target_date, config)
    lines: List[Line] = []

    # 1. Max temperature over/under, priced for the UNDER side
    if period.temperature_f is not None:
        set_line = round_line(period.temperature_f, config.line_step)
        prob_under = under_probability(set_line, period.temperature_f, config.forecast_sd)
        odds = probability_to_american_odds(
            prob_under,
            multiplier=config.vig_multiplier,
            offset=config.vig_offset,
            floor=config.min_prob,
            ceiling=config.max_prob,
        )
        lines.append(Line(
            city_name=city_name,
            target_date=target_date,
            bet_type=BetType.MAX_TEMP_OVER_UNDER.value,
            line_value=quantize_money(set_line),
            odds=odds,
            closes_at=closes_at,
            outcome=Outcome.PENDING,
            total_wagered=Decimal("0.00"),
            description=(
                f"{city_name}: Max Temperature Over/Under {set_line:.1f}°F (Odds for UNDER)"
            ),
        ))

    # 2. Precipitation yes/no; the forecast % itself is stored as the line
    if period.precipitation_probability is not None:
        rain_prob = period.precipitation_probability
        side = "YES" if rain_prob >= config.rain_yes_threshold else "NO"
        lines.append(Line(
            city_name=city_name,
            target_date=target_date,
            bet_type=BetType.RAIN_YES_NO.value,
            line_value=quantize_money(rain_prob),
            odds=config.fixed_odds,
            closes_at=closes_at,
            outcome=Outcome.PENDING,
            total_wagered=Decimal("0.00"),
            description=f"{city_name}: Precipitation (Rain/Snow) - {side} (Forecast: {rain_prob}%)",
        ))

    # 3. Sky condition match; the predicted side lives in the description
    if period.short_forecast:
        side = SUNNY_SIDE if is_sunny_text(period.short_forecast) else CLOUDY_SIDE
        lines.append(Line(
            city_name=city_name,
            target_date=target_date,
            bet_type=BetType.CONDITION_MATCH.value,
            line_value=None,
            odds=config.fixed_odds,
            closes_at=closes_at,
            outcome=Outcome.PENDING,
            total_wagered=Decimal("0.00"),
            description=f"{city_name}: Will the overall day be '{side}'?",
        ))

    return lines


# ---------------------------------------------------------------------------
# Generation jobs (write to DB)
# ---------------------------------------------------------------------------

def generate_daily_lines(
    db: Session,
    forecast_client: ForecastSource,
    config: Optional[MarketConfig] = None,
    today: Optional[date] = None,
    cities: Optional[Sequence[CityLocation]] = None,
) -> DailyGeneration:
    """
    Generate tomorrow's lines for every configured city.

    A failing city (upstream error, no usable period) is logged and
    recorded in ``results``; the rest still generate.  All lines are
    committed together.
    """
    config = config or MarketConfig.default()
    today = today or date.today()
    target_date = today + timedelta(days=1)
    cities = config.cities if cities is None else cities

    logger.info("Generating lines for %s across %d cities", target_date, len(cities))
    generation = DailyGeneration(target_date=target_date)

    for city in cities:
        try:
            periods = forecast_client.get_forecast(city.latitude, city.longitude)
            period = select_next_day_period(periods)
            if period is None:
                raise NotFound(f"Could not find next day forecast for {city.name}")

            city_lines = build_lines(city.name, target_date, period, config)
        except WagerEngineError as exc:
            logger.error("Failed to generate lines for %s: %s", city.name, exc)
            generation.results.append(CityGenerationResult(city.name, ok=False, error=str(exc)))
            continue
        except Exception as exc:
            logger.error("Unexpected error generating lines for %s: %s", city.name, exc, exc_info=True)
            generation.results.append(CityGenerationResult(city.name, ok=False, error=str(exc)))
            continue

        generation.lines.extend(city_lines)
        generation.results.append(CityGenerationResult(city.name, ok=True, lines_created=len(city_lines)))

    try:
        db.add_all(generation.lines)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Daily generation done: %d lines, failed cities=%s",
        len(generation.lines), generation.failed_cities,
    )
    return generation


def generate_lines_for_location(
    db: Session,
    forecast_client: ForecastSource,
    city_name: str,
    latitude: float,
    longitude: float,
    target_date: Optional[date] = None,
    config: Optional[MarketConfig] = None,
    today: Optional[date] = None,
) -> List[Line]:
    """
    Generate lines for an arbitrary city and date (default tomorrow).

    Raises:
        InvalidRequest: past date or out-of-range coordinates.
        UpstreamUnavailable: forecast fetch failed.
        NotFound: the forecast has no period for the date.
    """
    config = config or MarketConfig.default()
    today = today or date.today()
    target_date = target_date or today + timedelta(days=1)

    if target_date < today:
        raise InvalidRequest("Cannot generate bets for past dates")
    if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
        raise InvalidRequest(f"Invalid coordinates ({latitude}, {longitude})")
    if not city_name or not city_name.strip():
        raise InvalidRequest("City name cannot be empty")

    logger.info("Generating lines for %s on %s", city_name, target_date)

    periods = forecast_client.get_forecast(latitude, longitude)
    period = select_period_for_date(periods, target_date, today)
    if period is None:
        raise NotFound(f"No forecast available for {city_name} on {target_date}")

    lines = build_lines(city_name, target_date, period, config)

    try:
        db.add_all(lines)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Created %d lines for %s on %s", len(lines), city_name, target_date)
    return lines
