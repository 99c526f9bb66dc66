"""
Line resolution: observed weather → outcome → payouts.

  resolve_line()            one line; fails outright on any error
  resolve_lines_for_date()  every pending line for a date; a failing
                            line is logged and reported, the rest resolve

Each line resolves in its own transaction: outcome, observed value,
wager settlement, and account credits commit together.  A line moves
PENDING → WON or PENDING → LOST exactly once; resolving it again is a
Conflict and touches nothing.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Protocol

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from weather_wagers.core.bet_terms import Outcome
from weather_wagers.core.market_config import MarketConfig
from weather_wagers.core.odds_math import quantize_money
from weather_wagers.core.weather_data import GeocodeResult, Observation
from weather_wagers.errors import Conflict, NotFound, WagerEngineError
from weather_wagers.models import Line
from weather_wagers.services.outcome import evaluate
from weather_wagers.services.queries import check_line_totals
from weather_wagers.services.settlement import distribute_payouts

logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    def geocode(self, city_name: str) -> GeocodeResult:
        ...


class ObservationSource(Protocol):
    def get_observation(self, latitude: float, longitude: float) -> Observation:
        ...


@dataclass(frozen=True)
class ResolutionSummary:
    line_id: int
    outcome: Outcome
    outcome_value: Optional[Decimal]
    winners_count: int
    total_paid_out: Decimal


@dataclass(frozen=True)
class LineResolutionResult:
    line_id: int
    ok: bool
    summary: Optional[ResolutionSummary] = None
    error: Optional[str] = None


@dataclass
class BatchResolution:
    target_date: date
    results: List[LineResolutionResult] = field(default_factory=list)

    @property
    def total_resolved(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def total_winners(self) -> int:
        return sum(r.summary.winners_count for r in self.results if r.ok)

    @property
    def total_paid_out(self) -> Decimal:
        return sum(
            (r.summary.total_paid_out for r in self.results if r.ok),
            Decimal("0.00"),
        )

    @property
    def failures(self) -> List[LineResolutionResult]:
        return [r for r in self.results if not r.ok]


def resolve_line(
    db: Session,
    line_id: int,
    geocoder: Geocoder,
    observer: ObservationSource,
    now: Optional[datetime] = None,
    config: Optional[MarketConfig] = None,
) -> ResolutionSummary:
    """
    Resolve one line against the current observation for its city.

    The geocode and observation calls run before the row lock is taken;
    the line is then locked and re-checked, so a resolver that finished
    in the meantime wins and this call is a Conflict.

    Raises:
        NotFound: unknown line, or the city cannot be geocoded.
        Conflict: the line is already resolved, a concurrent resolver won,
            or its total_wagered has drifted from the sum of its wagers.
        UpstreamUnavailable: geocode/observation failure, or the
            observation lacks the field this line is judged on.
    """
    now = now or datetime.now()

    line = db.get(Line, line_id)
    if line is None:
        raise NotFound(f"Line not found: {line_id}")
    if line.outcome != Outcome.PENDING:
        db.rollback()
        raise Conflict(f"Line {line_id} already resolved")

    city_name = line.city_name
    try:
        location = geocoder.geocode(city_name)
        observation = observer.get_observation(location.latitude, location.longitude)
    except Exception:
        db.rollback()
        raise

    line = (
        db.query(Line)
        .filter(Line.id == line_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if line is None:
        db.rollback()
        raise NotFound(f"Line not found: {line_id}")
    if line.outcome != Outcome.PENDING:
        db.rollback()
        raise Conflict(f"Line {line_id} already resolved")

    if not check_line_totals(db, line_id):
        db.rollback()
        raise Conflict(f"Line {line_id} total_wagered does not match its wagers")

    try:
        won = evaluate(line, observation, config)
    except Exception:
        db.rollback()
        raise

    try:
        line.outcome = Outcome.from_won(won)
        line.resolved_at = now
        if observation.temperature_f is not None:
            line.outcome_value = quantize_money(observation.temperature_f)

        payout = distribute_payouts(db, line, now=now)
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Line %d was resolved concurrently: %s", line_id, exc)
        raise Conflict(f"Line {line_id} already resolved") from exc
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Line %d resolved %s (observed %s°F): %d winners, $%s paid",
        line.id, line.outcome.value, line.outcome_value,
        payout.winners_count, payout.total_paid_out,
    )

    return ResolutionSummary(
        line_id=line.id,
        outcome=line.outcome,
        outcome_value=line.outcome_value,
        winners_count=payout.winners_count,
        total_paid_out=payout.total_paid_out,
    )


def resolve_lines_for_date(
    db: Session,
    target_date: date,
    geocoder: Geocoder,
    observer: ObservationSource,
    now: Optional[datetime] = None,
    config: Optional[MarketConfig] = None,
) -> BatchResolution:
    """
    Resolve every pending line for ``target_date``.

    Returns one result per pending line; aggregates cover successful
    resolutions only.
    """
    logger.info("Starting resolution for %s", target_date)

    pending_ids = [
        line_id
        for (line_id,) in db.query(Line.id)
        .filter(Line.target_date == target_date, Line.outcome == Outcome.PENDING)
        .order_by(Line.id)
        .all()
    ]

    batch = BatchResolution(target_date=target_date)

    for line_id in pending_ids:
        try:
            summary = resolve_line(db, line_id, geocoder, observer, now=now, config=config)
        except WagerEngineError as exc:
            logger.error("Failed to resolve line %d: %s", line_id, exc)
            batch.results.append(LineResolutionResult(line_id, ok=False, error=exc.message))
            continue
        except Exception as exc:
            logger.error("Unexpected error resolving line %d: %s", line_id, exc, exc_info=True)
            batch.results.append(LineResolutionResult(line_id, ok=False, error=str(exc)))
            continue

        batch.results.append(LineResolutionResult(line_id, ok=True, summary=summary))

    logger.info(
        "Resolution for %s done: %d resolved, %d failed, %d winners, $%s paid",
        target_date, batch.total_resolved, len(batch.failures),
        batch.total_winners, batch.total_paid_out,
    )
    return batch
