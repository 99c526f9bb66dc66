"""
Tests for services/line_generator.py: forecast periods to priced lines.

Run with: pytest tests/test_line_generator.py -v
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from weather_wagers.core.bet_terms import BetType, Outcome, CLOUDY_SIDE, SUNNY_SIDE
from weather_wagers.core.market_config import CityLocation, MarketConfig
from weather_wagers.core.weather_data import ForecastPeriod
from weather_wagers.errors import InvalidRequest, NotFound, UpstreamUnavailable
from weather_wagers.models import Line
from weather_wagers.services.line_generator import (
    build_lines,
    closing_time,
    generate_daily_lines,
    generate_lines_for_location,
    select_next_day_period,
    select_period_for_date,
)

TODAY = date(2025, 11, 27)
TOMORROW = date(2025, 11, 28)


def _period(name="Friday", temp=52, precip=35, short="Mostly Sunny", start=None, daytime=None):
    return ForecastPeriod(
        name=name,
        temperature_f=temp,
        precipitation_probability=precip,
        short_forecast=short,
        start_time=start,
        is_daytime=daytime,
    )


def _periods(**kwargs):
    """Thanksgiving, Thanksgiving Night, Friday, Friday Night."""
    return [
        _period(name="Thanksgiving Day", temp=40, precip=10, short="Cloudy"),
        _period(name="Tonight", temp=30, precip=10, short="Cloudy"),
        _period(name="Friday", **kwargs),
        _period(name="Friday Night", temp=35, precip=20, short="Clear"),
    ]


def _by_type(lines):
    return {line.bet_type: line for line in lines}


# ---------------------------------------------------------------------------
# build_lines
# ---------------------------------------------------------------------------

class TestBuildLines:
    def test_temperature_line_priced_for_under(self):
        lines = _by_type(build_lines("Madison, WI", TOMORROW, _period(temp=52)))
        temp = lines[BetType.MAX_TEMP_OVER_UNDER.value]
        assert temp.line_value == Decimal("50.00")
        assert temp.odds == Decimal("269.83")
        assert temp.description == "Madison, WI: Max Temperature Over/Under 50.0°F (Odds for UNDER)"

    def test_rain_line_below_threshold_says_no(self):
        lines = _by_type(build_lines("Madison, WI", TOMORROW, _period(precip=35)))
        rain = lines[BetType.RAIN_YES_NO.value]
        assert rain.line_value == Decimal("35.00")
        assert rain.odds == Decimal("100.00")
        assert rain.description == "Madison, WI: Precipitation (Rain/Snow) - NO (Forecast: 35%)"

    def test_rain_line_at_threshold_says_yes(self):
        rain = _by_type(build_lines("LA", TOMORROW, _period(precip=50)))[BetType.RAIN_YES_NO.value]
        assert "- YES (Forecast: 50%)" in rain.description

    @pytest.mark.parametrize("short, side", [
        ("Mostly Sunny", SUNNY_SIDE),
        ("Clear", SUNNY_SIDE),
        ("Chance Rain Showers", CLOUDY_SIDE),
    ])
    def test_condition_side(self, short, side):
        cond = _by_type(build_lines("NYC", TOMORROW, _period(short=short)))[BetType.CONDITION_MATCH.value]
        assert cond.description == f"NYC: Will the overall day be '{side}'?"
        assert cond.line_value is None
        assert cond.odds == Decimal("100.00")

    def test_every_line_pending_and_closing_before_midnight(self):
        lines = build_lines("Madison, WI", TOMORROW, _period())
        assert len(lines) == 3
        for line in lines:
            assert line.outcome == Outcome.PENDING
            assert line.total_wagered == Decimal("0.00")
            assert line.closes_at == datetime(2025, 11, 27, 22, 0)
            assert line.target_date == TOMORROW

    def test_missing_fields_skip_their_lines(self):
        assert build_lines("X", TOMORROW, _period(temp=None, precip=None, short=None)) == []
        only_rain = build_lines("X", TOMORROW, _period(temp=None, short=""))
        assert [l.bet_type for l in only_rain] == [BetType.RAIN_YES_NO.value]

    def test_wider_sd_moves_price_toward_even(self):
        tight = _by_type(build_lines("X", TOMORROW, _period(temp=52)))
        wide_cfg = MarketConfig(forecast_sd=10.0)
        wide = _by_type(build_lines("X", TOMORROW, _period(temp=52), wide_cfg))
        key = BetType.MAX_TEMP_OVER_UNDER.value
        assert wide[key].odds < tight[key].odds


def test_closing_time_uses_configured_offset():
    cfg = MarketConfig(close_hours_before=6)
    assert closing_time(TOMORROW, cfg) == datetime(2025, 11, 27, 18, 0)


# ---------------------------------------------------------------------------
# Period selection
# ---------------------------------------------------------------------------

class TestSelectNextDayPeriod:
    def test_third_period_when_daytime(self):
        assert select_next_day_period(_periods()).name == "Friday"

    def test_list_starting_at_night(self):
        periods = [
            _period(name="Tonight"),
            _period(name="Friday"),
            _period(name="Friday Night"),
            _period(name="Saturday"),
        ]
        assert select_next_day_period(periods).name == "Friday"

    def test_too_few_periods(self):
        assert select_next_day_period(_periods()[:2]) is None

    def test_skips_today(self):
        periods = [
            _period(name="Today"),
            _period(name="Tonight"),
            _period(name="Friday Night"),
        ]
        assert select_next_day_period(periods) is None


class TestSelectPeriodForDate:
    def test_tomorrow_uses_next_day_rule(self):
        assert select_period_for_date(_periods(), TOMORROW, TODAY).name == "Friday"

    def test_matches_start_time(self):
        sunday = date(2025, 11, 30)
        periods = [
            _period(name="Saturday", start=datetime(2025, 11, 29, 6), daytime=True),
            _period(name="Saturday Night", start=datetime(2025, 11, 29, 18), daytime=False),
            _period(name="Sunday", start=datetime(2025, 11, 30, 6), daytime=True, temp=61),
            _period(name="Sunday Night", start=datetime(2025, 11, 30, 18), daytime=False),
        ]
        picked = select_period_for_date(periods, sunday, TODAY)
        assert picked.name == "Sunday"
        assert picked.temperature_f == 61

    def test_date_beyond_forecast(self):
        periods = [_period(name="Saturday", start=datetime(2025, 11, 29, 6), daytime=True)]
        assert select_period_for_date(periods, date(2025, 12, 10), TODAY) is None

    def test_without_start_times_takes_first_daytime(self):
        periods = [_period(name="Today"), _period(name="Tonight"), _period(name="Saturday")]
        assert select_period_for_date(periods, date(2025, 11, 29), TODAY).name == "Saturday"


# ---------------------------------------------------------------------------
# generate_daily_lines
# ---------------------------------------------------------------------------

CITIES = (
    CityLocation("Madison, WI", 43.0731, -89.4012),
    CityLocation("Los Angeles, CA", 34.0522, -118.2437),
    CityLocation("New York City, NY", 40.7128, -74.0060),
)


class TestGenerateDailyLines:
    def test_all_cities(self, db):
        client = MagicMock()
        client.get_forecast.return_value = _periods()

        result = generate_daily_lines(db, client, today=TODAY, cities=CITIES)

        assert result.target_date == TOMORROW
        assert len(result.lines) == 9
        assert db.query(Line).count() == 9
        assert all(r.ok and r.lines_created == 3 for r in result.results)
        assert client.get_forecast.call_count == 3

    def test_failing_city_is_isolated(self, db):
        client = MagicMock()
        client.get_forecast.side_effect = [
            _periods(),
            UpstreamUnavailable("Weather API request failed: 503"),
            _periods(),
        ]

        result = generate_daily_lines(db, client, today=TODAY, cities=CITIES)

        assert result.failed_cities == ["Los Angeles, CA"]
        assert db.query(Line).count() == 6
        failed = [r for r in result.results if not r.ok][0]
        assert "503" in failed.error

    def test_city_without_next_day_period(self, db):
        client = MagicMock()
        client.get_forecast.side_effect = [_periods()[:2], _periods(), _periods()]

        result = generate_daily_lines(db, client, today=TODAY, cities=CITIES)

        assert result.failed_cities == ["Madison, WI"]
        assert len(result.lines) == 6

    def test_empty_city_list_writes_nothing(self, db):
        client = MagicMock()
        result = generate_daily_lines(db, client, today=TODAY, cities=())
        assert result.lines == []
        client.get_forecast.assert_not_called()


# ---------------------------------------------------------------------------
# generate_lines_for_location
# ---------------------------------------------------------------------------

class TestGenerateForLocation:
    def test_defaults_to_tomorrow(self, db):
        client = MagicMock()
        client.get_forecast.return_value = _periods()

        lines = generate_lines_for_location(db, client, "Seattle, WA", 47.6, -122.3, today=TODAY)

        assert len(lines) == 3
        assert {l.target_date for l in lines} == {TOMORROW}
        client.get_forecast.assert_called_once_with(47.6, -122.3)

    def test_repeat_call_duplicates(self, db):
        """The generator itself never deduplicates."""
        client = MagicMock()
        client.get_forecast.return_value = _periods()

        generate_lines_for_location(db, client, "Seattle, WA", 47.6, -122.3, today=TODAY)
        generate_lines_for_location(db, client, "Seattle, WA", 47.6, -122.3, today=TODAY)

        assert db.query(Line).filter(Line.city_name == "Seattle, WA").count() == 6

    def test_past_date_rejected_before_fetch(self, db):
        client = MagicMock()
        with pytest.raises(InvalidRequest):
            generate_lines_for_location(
                db, client, "Seattle, WA", 47.6, -122.3,
                target_date=TODAY - timedelta(days=1), today=TODAY,
            )
        client.get_forecast.assert_not_called()

    @pytest.mark.parametrize("lat, lon", [(91.0, 0.0), (0.0, -181.0)])
    def test_bad_coordinates_rejected(self, db, lat, lon):
        with pytest.raises(InvalidRequest):
            generate_lines_for_location(db, MagicMock(), "Nowhere", lat, lon, today=TODAY)

    def test_no_period_for_date(self, db):
        client = MagicMock()
        client.get_forecast.return_value = [
            _period(name="Saturday", start=datetime(2025, 11, 29, 6), daytime=True),
        ]
        with pytest.raises(NotFound):
            generate_lines_for_location(
                db, client, "Seattle, WA", 47.6, -122.3,
                target_date=date(2025, 12, 10), today=TODAY,
            )
        assert db.query(Line).count() == 0
