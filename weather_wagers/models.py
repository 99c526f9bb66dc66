"""
Database models for Weather Wagers
SQLAlchemy ORM; SQLite by default, PostgreSQL in production
"""

from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    Boolean,
    Text,
    ForeignKey,
    Date,
    Enum,
    CheckConstraint,
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from datetime import datetime
from decimal import Decimal
import logging
import os
from dotenv import load_dotenv

from weather_wagers.core.bet_terms import DEFAULT_RAIN_YES_THRESHOLD, Outcome, terms_for

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./weather_wagers.db")

# SQLite connections are handed across FastAPI worker threads
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, echo=False, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# Money columns: fixed-point, two places, returned as Decimal
Money = Numeric(12, 2, asdecimal=True)


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class Account(Base):
    """Player account holding a single USD balance"""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    balance = Column(Money, nullable=False, default=Decimal("0.00"))

    # Enforced by the auth layer, not by the ledger
    disabled = Column(Boolean, default=False, nullable=False)

    version = Column(Integer, nullable=False, default=1)

    wagers = relationship("Wager", back_populates="account")

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (CheckConstraint("balance >= 0", name="ck_account_balance_non_negative"),)
    __mapper_args__ = {"version_id_col": version}


class Line(Base):
    """A priced betting market on one weather outcome for one city/date"""

    __tablename__ = "lines"

    id = Column(Integer, primary_key=True, index=True)
    city_name = Column(String(120), nullable=False, index=True)
    target_date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=False)
    bet_type = Column(String(32), nullable=False)  # BetType value
    line_value = Column(Money)  # NULL for CONDITION_MATCH
    odds = Column(Money, nullable=False)  # American odds, 2 places

    # Filled on resolution
    outcome_value = Column(Money)  # observed temperature °F when available
    outcome = Column(
        Enum(Outcome, native_enum=False, length=16),
        nullable=False,
        default=Outcome.PENDING,
        index=True,
    )
    resolved_at = Column(DateTime)

    total_wagered = Column(Money, nullable=False, default=Decimal("0.00"))

    created_at = Column(DateTime, default=datetime.utcnow)
    closes_at = Column(DateTime, nullable=False)

    version = Column(Integer, nullable=False, default=1)

    wagers = relationship("Wager", back_populates="line")

    __mapper_args__ = {"version_id_col": version}

    @property
    def terms(self):
        """Typed terms under the default rain threshold (None for unknown bet types)."""
        return self.terms_with(DEFAULT_RAIN_YES_THRESHOLD)

    def terms_with(self, rain_yes_threshold: int):
        return terms_for(self.bet_type, self.line_value, self.description, rain_yes_threshold)

    @property
    def is_pending(self) -> bool:
        return self.outcome == Outcome.PENDING


class Wager(Base):
    """A player's stake on one line"""

    __tablename__ = "wagers"

    id = Column(Integer, primary_key=True, index=True)
    line_id = Column(Integer, ForeignKey("lines.id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)

    amount = Column(Money, nullable=False)
    total_return = Column(Money, nullable=False)  # amount + profit, fixed at placement

    status = Column(
        Enum(Outcome, native_enum=False, length=16),
        nullable=False,
        default=Outcome.PENDING,
        index=True,
    )

    placed_at = Column(DateTime, default=datetime.utcnow, index=True)
    settled_at = Column(DateTime)

    line = relationship("Line", back_populates="wagers")
    account = relationship("Account", back_populates="wagers")

    __table_args__ = (CheckConstraint("amount > 0", name="ck_wager_amount_positive"),)

    @property
    def potential_profit(self) -> Decimal:
        return self.total_return - self.amount


# Create all tables
def init_db():
    """Initialize database tables"""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
