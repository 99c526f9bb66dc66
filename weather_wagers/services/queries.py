"""Read-only queries over lines and wagers."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from weather_wagers.core.bet_terms import Outcome
from weather_wagers.core.odds_math import quantize_money
from weather_wagers.errors import NotFound
from weather_wagers.models import Account, Line, Wager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WagerHistoryEntry:
    wager_id: int
    line: Line
    amount: Decimal
    potential_profit: Decimal
    actual_payout: Decimal  # total_return if won, else 0
    status: Outcome
    placed_at: Optional[datetime]


def lines_for_date(db: Session, target_date: date) -> List[Line]:
    return (
        db.query(Line)
        .filter(Line.target_date == target_date)
        .order_by(Line.city_name, Line.id)
        .all()
    )


def lines_for_tomorrow(db: Session, today: Optional[date] = None) -> List[Line]:
    today = today or date.today()
    return lines_for_date(db, today + timedelta(days=1))


def lines_for_city_and_date(db: Session, city_name: str, target_date: date) -> List[Line]:
    """Lines for one city (case-insensitive) on one date."""
    return (
        db.query(Line)
        .filter(
            Line.target_date == target_date,
            func.lower(Line.city_name) == city_name.strip().lower(),
        )
        .order_by(Line.id)
        .all()
    )


def get_line(db: Session, line_id: int) -> Line:
    line = db.query(Line).filter(Line.id == line_id).first()
    if line is None:
        raise NotFound(f"Line not found: {line_id}")
    return line


def get_account(db: Session, account_id: int) -> Account:
    account = db.query(Account).filter(Account.id == account_id).first()
    if account is None:
        raise NotFound(f"Account not found: {account_id}")
    return account


def _history_entry(wager: Wager) -> WagerHistoryEntry:
    return WagerHistoryEntry(
        wager_id=wager.id,
        line=wager.line,
        amount=wager.amount,
        potential_profit=wager.potential_profit,
        actual_payout=wager.total_return if wager.status == Outcome.WON else Decimal("0.00"),
        status=wager.status,
        placed_at=wager.placed_at,
    )


def pending_wagers(db: Session, account_id: int) -> List[WagerHistoryEntry]:
    """Unsettled wagers for an account, newest first."""
    get_account(db, account_id)
    wagers = (
        db.query(Wager)
        .options(joinedload(Wager.line))
        .filter(Wager.account_id == account_id, Wager.status == Outcome.PENDING)
        .order_by(Wager.placed_at.desc(), Wager.id.desc())
        .all()
    )
    return [_history_entry(w) for w in wagers]


def wager_history(db: Session, account_id: int) -> List[WagerHistoryEntry]:
    """Every wager an account has placed, newest first."""
    get_account(db, account_id)
    wagers = (
        db.query(Wager)
        .options(joinedload(Wager.line))
        .filter(Wager.account_id == account_id)
        .order_by(Wager.placed_at.desc(), Wager.id.desc())
        .all()
    )
    return [_history_entry(w) for w in wagers]


def check_line_totals(db: Session, line_id: int) -> bool:
    """
    Verify a line's running total equals the sum of its wagers.

    Logs and returns False on mismatch.
    """
    line = get_line(db, line_id)
    wagered = (
        db.query(func.coalesce(func.sum(Wager.amount), 0))
        .filter(Wager.line_id == line_id)
        .scalar()
    )
    wagered = quantize_money(Decimal(str(wagered)))
    if wagered != line.total_wagered:
        logger.error(
            "Line %d total mismatch: recorded $%s, wagers sum to $%s",
            line_id, line.total_wagered, wagered,
        )
        return False
    return True
