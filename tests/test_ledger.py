"""
Tests for services/ledger.py: wager placement.

Run with: pytest tests/test_ledger.py -v
"""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.orm.exc import StaleDataError

from weather_wagers.core.bet_terms import Outcome
from weather_wagers.errors import Conflict, InvalidRequest, NotFound
from weather_wagers.models import Account, Line, Wager
from weather_wagers.services.ledger import place_wager
from weather_wagers.services.queries import check_line_totals

NOW = datetime(2025, 11, 27, 12, 0)


def _reload(db, account, line):
    return db.get(Account, account.id), db.get(Line, line.id)


# ---------------------------------------------------------------------------
# Successful placement
# ---------------------------------------------------------------------------

class TestPlaceWager:
    def test_even_money(self, db, make_account, make_line):
        account = make_account("100.00")
        line = make_line(odds="100.00")

        receipt = place_wager(db, account.id, line.id, Decimal("50.00"), now=NOW)

        assert receipt.amount == Decimal("50.00")
        assert receipt.potential_profit == Decimal("50.00")
        assert receipt.total_return == Decimal("100.00")
        assert receipt.new_balance == Decimal("50.00")

        account, line = _reload(db, account, line)
        assert account.balance == Decimal("50.00")
        assert line.total_wagered == Decimal("50.00")

        wager = db.get(Wager, receipt.wager_id)
        assert wager.status == Outcome.PENDING
        assert wager.total_return == Decimal("100.00")
        assert wager.placed_at == NOW

    def test_favourite_odds(self, db, make_account, make_line):
        account = make_account("200.00")
        line = make_line(odds="-150.00")
        receipt = place_wager(db, account.id, line.id, "150", now=NOW)
        assert receipt.potential_profit == Decimal("100.00")
        assert receipt.total_return == Decimal("250.00")

    def test_whole_balance_allowed(self, db, make_account, make_line):
        account = make_account("25.00")
        line = make_line()
        receipt = place_wager(db, account.id, line.id, Decimal("25.00"), now=NOW)
        assert receipt.new_balance == Decimal("0.00")

    def test_running_total_matches_wagers(self, db, make_account, make_line):
        a, b = make_account("100.00"), make_account("100.00")
        line = make_line()
        place_wager(db, a.id, line.id, Decimal("10.00"), now=NOW)
        place_wager(db, b.id, line.id, Decimal("15.50"), now=NOW)
        place_wager(db, a.id, line.id, Decimal("4.50"), now=NOW)

        assert db.get(Line, line.id).total_wagered == Decimal("30.00")
        assert check_line_totals(db, line.id) is True


# ---------------------------------------------------------------------------
# Rejections leave no trace
# ---------------------------------------------------------------------------

class TestRejections:
    def _assert_untouched(self, db, account, line, balance):
        account, line = _reload(db, account, line)
        assert account.balance == Decimal(balance)
        assert line.total_wagered == Decimal("0.00")
        assert db.query(Wager).count() == 0

    def test_insufficient_balance(self, db, make_account, make_line):
        account = make_account("20.00")
        line = make_line()
        with pytest.raises(Conflict, match="Insufficient balance"):
            place_wager(db, account.id, line.id, Decimal("20.01"), now=NOW)
        self._assert_untouched(db, account, line, "20.00")

    def test_line_closed(self, db, make_account, make_line):
        account = make_account()
        line = make_line(closes_at=datetime(2025, 11, 27, 22, 0))
        with pytest.raises(Conflict, match="closed"):
            place_wager(db, account.id, line.id, Decimal("5.00"), now=datetime(2025, 11, 27, 22, 0))
        self._assert_untouched(db, account, line, "100.00")

    def test_line_resolved(self, db, make_account, make_line):
        account = make_account()
        line = make_line(outcome=Outcome.LOST)
        with pytest.raises(Conflict, match="resolved"):
            place_wager(db, account.id, line.id, Decimal("5.00"), now=NOW)
        self._assert_untouched(db, account, line, "100.00")

    def test_unknown_account(self, db, make_line):
        line = make_line()
        with pytest.raises(NotFound):
            place_wager(db, 999, line.id, Decimal("5.00"), now=NOW)

    def test_unknown_line(self, db, make_account):
        account = make_account()
        with pytest.raises(NotFound):
            place_wager(db, account.id, 999, Decimal("5.00"), now=NOW)
        assert db.get(Account, account.id).balance == Decimal("100.00")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00"), "abc", Decimal("1.005"), "NaN"])
    def test_invalid_amount(self, db, make_account, make_line, amount):
        account = make_account()
        line = make_line()
        with pytest.raises(InvalidRequest):
            place_wager(db, account.id, line.id, amount, now=NOW)
        self._assert_untouched(db, account, line, "100.00")

    def test_concurrent_update_is_conflict(self, db, make_account, make_line, monkeypatch):
        account = make_account()
        line = make_line()

        def _stale():
            raise StaleDataError("UPDATE statement on table 'accounts' expected to update 1 row(s); 0 were matched.")

        monkeypatch.setattr(db, "commit", _stale)
        with pytest.raises(Conflict, match="concurrently"):
            place_wager(db, account.id, line.id, Decimal("5.00"), now=NOW)
        monkeypatch.undo()

        self._assert_untouched(db, account, line, "100.00")


def test_check_line_totals_detects_drift(db, make_account, make_line):
    account = make_account()
    line = make_line()
    place_wager(db, account.id, line.id, Decimal("10.00"), now=NOW)

    stored = db.get(Line, line.id)
    stored.total_wagered = Decimal("99.00")
    db.commit()

    assert check_line_totals(db, line.id) is False
