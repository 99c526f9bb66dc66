"""Shared fixtures: an in-memory database and row factories."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from weather_wagers.core.bet_terms import BetType, Outcome
from weather_wagers.models import Account, Base, Line

TODAY = date(2025, 11, 27)
TOMORROW = date(2025, 11, 28)
# Noon on the day before TOMORROW's lines close (22:00)
NOW = datetime(2025, 11, 27, 12, 0)
CLOSES_AT = datetime(2025, 11, 27, 22, 0)


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_account(db):
    counter = {"n": 0}

    def _make(balance="100.00", username=None):
        counter["n"] += 1
        account = Account(
            username=username or f"player{counter['n']}",
            balance=Decimal(balance),
        )
        db.add(account)
        db.commit()
        return account

    return _make


@pytest.fixture
def make_line(db):
    def _make(
        city_name="Madison, WI",
        target_date=TOMORROW,
        bet_type=BetType.MAX_TEMP_OVER_UNDER,
        line_value="50.00",
        odds="100.00",
        description=None,
        closes_at=CLOSES_AT,
        outcome=Outcome.PENDING,
    ):
        line = Line(
            city_name=city_name,
            target_date=target_date,
            bet_type=bet_type.value if isinstance(bet_type, BetType) else bet_type,
            line_value=Decimal(line_value) if line_value is not None else None,
            odds=Decimal(odds),
            description=description or f"{city_name}: {bet_type}",
            closes_at=closes_at,
            outcome=outcome,
            total_wagered=Decimal("0.00"),
        )
        db.add(line)
        db.commit()
        return line

    return _make
