"""
Database initialization script for the Crisis Monitor

This script initializes the database by creating tables and running migrations.
"""

import logging
import sys
from pathlib import Path
from typing import List

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect, text

from config import get_database_url
from db import Base, engine

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

EXPECTED_TABLES = ["listening_mentions", "crises", "crisis_timeline", "crisis_alerts"]


def create_tables(bind=None):
    """Create all tables using SQLAlchemy"""
    # Register the models on Base.metadata
    import db.models  # noqa: F401

    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=bind or engine)
        logger.info("✅ Database tables created successfully")
    except Exception as e:
        logger.error(f"❌ Error creating tables: {e}")
        raise


def alembic_config(database_url: str = None) -> Config:
    """Alembic configuration pointing at the project's migration scripts."""
    project_root = Path(__file__).parent.parent

    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url or get_database_url())
    return alembic_cfg


def run_migrations(database_url: str = None):
    """Run Alembic migrations"""
    try:
        logger.info("Running database migrations...")
        command.upgrade(alembic_config(database_url), "head")
        logger.info("✅ Database migrations completed successfully")

    except Exception as e:
        logger.error(f"❌ Error running migrations: {e}")
        raise


def verify_database(bind=None) -> List[str]:
    """
    Verify that the database is reachable and every table exists.

    Returns:
        Names of the expected tables that are missing
    """
    bind = bind or engine
    try:
        logger.info("Verifying database setup...")

        # Test connection
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info(f"Connected to {bind.dialect.name} database")

        tables = inspect(bind).get_table_names()
        missing = []
        for table in EXPECTED_TABLES:
            if table in tables:
                logger.info(f"✅ Table '{table}' exists")
            else:
                logger.warning(f"⚠️ Table '{table}' not found")
                missing.append(table)

        logger.info("✅ Database verification completed")
        return missing

    except Exception as e:
        logger.error(f"❌ Error verifying database: {e}")
        raise


def main():
    """Main initialization function"""
    logger.info("🚀 Starting Crisis Monitor database initialization...")

    try:
        # Run migrations (migrations handle table creation idempotently)
        run_migrations()

        # Verify setup
        if verify_database():
            sys.exit(1)

        logger.info("🎉 Database initialization completed successfully!")

    except Exception as e:
        logger.error(f"💥 Database initialization failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
