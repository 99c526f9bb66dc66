"""
Pydantic request/response schemas for the Weather Wagers API.

Using explicit schemas instead of raw dicts prevents mass-assignment
vulnerabilities on ORM models and generates accurate OpenAPI docs.
Money fields are Decimal and serialise as strings ("269.83") so no
client ever sees a binary float.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from weather_wagers.core.bet_terms import Outcome


# ---------------------------------------------------------------------------
# Lines
# ---------------------------------------------------------------------------

class LineResponse(BaseModel):
    """A priced line as shown on the board."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    city_name: str
    target_date: date
    description: str
    bet_type: str
    line_value: Optional[Decimal]
    odds: Decimal
    outcome_value: Optional[Decimal]
    outcome: Outcome
    total_wagered: Decimal
    created_at: Optional[datetime]
    closes_at: datetime
    resolved_at: Optional[datetime] = None


class LinesResponse(BaseModel):
    date: date
    total_lines: int
    lines: list[LineResponse]


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

class GenerateForLocationRequest(BaseModel):
    """
    Payload for POST /api/lines/generate-for-location.

    target_date defaults to tomorrow; past dates are rejected.
    """

    city_name: str = Field(..., min_length=1, max_length=120, description='e.g. "Seattle, WA"')
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    target_date: Optional[date] = Field(None, description="Defaults to tomorrow")

    @field_validator("city_name")
    @classmethod
    def strip_city(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("city_name cannot be blank")
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "city_name": "Seattle, WA",
                "latitude": 47.6062,
                "longitude": -122.3321,
                "target_date": "2025-11-28",
            }
        }
    }


class GenerationResponse(BaseModel):
    message: str
    target_date: date
    lines: list[LineResponse]


class CityGenerationResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    city_name: str
    ok: bool
    lines_created: int
    error: Optional[str]


class DailyGenerationResponse(BaseModel):
    message: str
    target_date: date
    lines: list[LineResponse]
    results: list[CityGenerationResultResponse]


# ---------------------------------------------------------------------------
# Wagers
# ---------------------------------------------------------------------------

class PlaceWagerRequest(BaseModel):
    """Payload for POST /api/wagers."""

    account_id: int = Field(..., gt=0)
    line_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="USD staked")

    model_config = {
        "json_schema_extra": {
            "example": {"account_id": 1, "line_id": 42, "amount": "25.00"}
        }
    }


class PlaceWagerResponse(BaseModel):
    message: str
    wager_id: int
    line_id: int
    amount: Decimal
    potential_profit: Decimal
    total_return: Decimal
    new_balance: Decimal


class WagerHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    wager_id: int
    line: LineResponse
    amount: Decimal
    potential_profit: Decimal
    actual_payout: Decimal
    status: Outcome
    placed_at: Optional[datetime]


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

class ResolutionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_id: int
    outcome: Outcome
    outcome_value: Optional[Decimal]
    winners_count: int
    total_paid_out: Decimal


class LineResolutionResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_id: int
    ok: bool
    summary: Optional[ResolutionResponse]
    error: Optional[str]


class BatchResolutionResponse(BaseModel):
    date: date
    total_resolved: int
    total_winners: int
    total_paid_out: Decimal
    results: list[LineResolutionResultResponse]


# ---------------------------------------------------------------------------
# Cities
# ---------------------------------------------------------------------------

class GeocodeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    canonical_name: str
    latitude: float
    longitude: float
    display_name: str
    country: str
