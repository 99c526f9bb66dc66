"""
Payout distribution for a resolved line.

Every pending wager on the line takes the line's outcome.  Winners are
credited their precomputed total return; losers are marked settled with
no balance change.  A wager that is already settled is never touched
again, so a winner is credited at most once.

Nothing here commits; the caller owns the transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from weather_wagers.core.bet_terms import Outcome
from weather_wagers.models import Account, Line, Wager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayoutSummary:
    winners_count: int
    total_paid_out: Decimal
    wagers_settled: int = 0


def distribute_payouts(
    db: Session,
    line: Line,
    now: Optional[datetime] = None,
) -> PayoutSummary:
    """
    Settle all pending wagers on ``line`` and credit winners.

    Raises:
        ValueError: the line has not been resolved yet.
    """
    if line.outcome == Outcome.PENDING:
        raise ValueError(f"Line {line.id} is not resolved; nothing to pay out")

    now = now or datetime.now()
    won = line.outcome == Outcome.WON

    pending = (
        db.query(Wager)
        .filter(Wager.line_id == line.id, Wager.status == Outcome.PENDING)
        .all()
    )

    winners_count = 0
    total_paid_out = Decimal("0.00")

    for wager in pending:
        wager.status = line.outcome
        wager.settled_at = now

        if not won:
            continue

        account = (
            db.query(Account)
            .filter(Account.id == wager.account_id)
            .with_for_update()
            .first()
        )
        if account is None:
            logger.warning(
                "Wager %d won but account %d no longer exists; credit of $%s skipped",
                wager.id, wager.account_id, wager.total_return,
            )
            continue

        account.balance = account.balance + wager.total_return
        winners_count += 1
        total_paid_out += wager.total_return
        logger.info(
            "WIN: wager %d credited $%s to account %d",
            wager.id, wager.total_return, account.id,
        )

    db.flush()

    logger.info(
        "Line %d paid out: %d wagers settled %s, %d winners, $%s total",
        line.id, len(pending), line.outcome.value, winners_count, total_paid_out,
    )
    return PayoutSummary(
        winners_count=winners_count,
        total_paid_out=total_paid_out,
        wagers_settled=len(pending),
    )
