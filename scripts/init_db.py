#!/usr/bin/env python3
"""
Database initialization script
Creates all tables and optionally seeds demo accounts
"""

import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Load .env file
from dotenv import load_dotenv
load_dotenv()

from weather_wagers.models import Base, engine, SessionLocal, Account
from decimal import Decimal
import logging
from sqlalchemy import text, inspect

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_ACCOUNTS = {
    "demo": Decimal("1000.00"),
    "rainmaker": Decimal("250.00"),
}


def init_database(drop_existing: bool = False):
    """
    Initialize database tables

    Args:
        drop_existing: If True, drops all tables first (DANGER: data loss!)
    """
    logger.info("Initializing Weather Wagers database...")

    if drop_existing:
        logger.warning("Dropping all existing tables!")
        response = input("Are you sure? This will delete all lines, wagers and balances. Type 'yes' to confirm: ")
        if response.lower() != 'yes':
            logger.info("Aborted.")
            return False

        Base.metadata.drop_all(bind=engine)
        logger.info("Existing tables dropped")

    Base.metadata.create_all(bind=engine)

    tables = inspect(engine).get_table_names()
    logger.info("Tables: %s", ", ".join(tables))
    return True


def seed_accounts():
    """Create demo accounts that don't exist yet"""
    db = SessionLocal()

    try:
        existing = {u for (u,) in db.query(Account.username).all()}
        new = [
            Account(username=name, balance=balance)
            for name, balance in DEMO_ACCOUNTS.items()
            if name not in existing
        ]
        db.add_all(new)
        db.commit()
        logger.info("Seeded %d demo accounts", len(new))

    except Exception as e:
        logger.error("Error seeding accounts: %s", e)
        db.rollback()
        raise

    finally:
        db.close()


def check_connection():
    """Test database connection"""
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Initialize Weather Wagers database")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables (DANGER!)")
    parser.add_argument("--seed", action="store_true", help="Seed demo accounts")
    parser.add_argument("--check", action="store_true", help="Only check connection")

    args = parser.parse_args()

    if args.check:
        sys.exit(0 if check_connection() else 1)

    if not check_connection():
        logger.error("Cannot initialize database - connection failed")
        sys.exit(1)

    if init_database(drop_existing=args.drop) and args.seed:
        seed_accounts()
