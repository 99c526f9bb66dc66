"""
Wager ledger: validate and execute a single player wager.

A placement is one unit of work.  The balance debit, the new Wager row,
and the line's running total commit together or not at all.  Every
rejection happens before the first mutation.

Concurrency: the account and line rows are read FOR UPDATE (a no-op on
SQLite) and both carry a version counter, so a concurrent writer that
slips past the row lock fails the version check on flush instead of
losing an update.  That failure surfaces as Conflict.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from weather_wagers.core.bet_terms import Outcome
from weather_wagers.core.odds_math import calculate_profit, quantize_money
from weather_wagers.errors import Conflict, InvalidRequest, NotFound, WagerEngineError
from weather_wagers.models import Account, Line, Wager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WagerReceipt:
    wager_id: int
    line_id: int
    amount: Decimal
    potential_profit: Decimal
    total_return: Decimal
    new_balance: Decimal


def _as_amount(amount) -> Decimal:
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidRequest(f"Invalid wager amount {amount!r}") from exc

    if not value.is_finite() or value <= 0:
        raise InvalidRequest("Wager amount must be positive")
    if quantize_money(value) != value:
        raise InvalidRequest("Wager amount cannot have fractional cents")
    return quantize_money(value)


def _lock_for_placement(
    db: Session,
    account_id: int,
    line_id: int,
    amount: Decimal,
    now: datetime,
) -> Tuple[Account, Line]:
    account = db.query(Account).filter(Account.id == account_id).with_for_update().first()
    if account is None:
        raise NotFound(f"Account not found: {account_id}")

    line = db.query(Line).filter(Line.id == line_id).with_for_update().first()
    if line is None:
        raise NotFound(f"Line not found: {line_id}")

    if now >= line.closes_at:
        raise Conflict(f"Line {line_id} is closed")
    if line.outcome != Outcome.PENDING:
        raise Conflict(f"Line {line_id} is already resolved")
    if account.balance < amount:
        raise Conflict("Insufficient balance")

    return account, line


def place_wager(
    db: Session,
    account_id: int,
    line_id: int,
    amount,
    now: Optional[datetime] = None,
) -> WagerReceipt:
    """
    Place ``amount`` from ``account_id`` on ``line_id``.

    Raises:
        InvalidRequest: amount is not a positive whole-cent value.
        NotFound: unknown account or line.
        Conflict: line closed or resolved, insufficient balance, or a
            concurrent update won the race.
    """
    amount = _as_amount(amount)
    now = now or datetime.now()

    try:
        account, line = _lock_for_placement(db, account_id, line_id, amount, now)
    except WagerEngineError:
        db.rollback()
        raise

    profit = calculate_profit(amount, line.odds)
    total_return = amount + profit

    try:
        account.balance = account.balance - amount
        line.total_wagered = line.total_wagered + amount
        wager = Wager(
            line_id=line.id,
            account_id=account.id,
            amount=amount,
            total_return=total_return,
            status=Outcome.PENDING,
            placed_at=now,
        )
        db.add(wager)
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Concurrent update on account %s / line %s: %s", account_id, line_id, exc)
        raise Conflict("Account or line was modified concurrently; retry") from exc
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Wager %d placed: account %d, line %d, $%s @ %s → returns $%s",
        wager.id, account.id, line.id, amount, line.odds, total_return,
    )

    return WagerReceipt(
        wager_id=wager.id,
        line_id=line.id,
        amount=amount,
        potential_profit=profit,
        total_return=total_return,
        new_balance=account.balance,
    )
