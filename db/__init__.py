"""
Database Models & Migrations Module

This module handles database connections, ORM models, and migrations
for the crisis monitor using SQLAlchemy and supports MySQL/MariaDB,
PostgreSQL and SQLite.
"""

from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from config import get_database_url, get_store_timeout_seconds

__version__ = "0.1.0"
__author__ = "Crisis Monitor Team"

DATABASE_URL = get_database_url()


def engine_options(database_url: str, timeout: int) -> Dict[str, Any]:
    """
    Build create_engine keyword arguments with bounded timeouts for a URL.

    Every store call must fail rather than hang, so the pool wait and the
    driver connect/read/statement timeouts are all capped at ``timeout``.
    """
    if database_url.startswith("sqlite"):
        return {
            "echo": False,
            "connect_args": {"timeout": timeout, "check_same_thread": False},
        }

    options = {
        "echo": False,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": timeout,
        "pool_pre_ping": True,  # Verify connections before use
        "pool_recycle": 3600,  # Recycle connections every hour
    }
    if database_url.startswith("mysql"):
        options["connect_args"] = {
            "connect_timeout": timeout,
            "read_timeout": timeout,
            "write_timeout": timeout,
        }
    elif database_url.startswith("postgresql"):
        options["connect_args"] = {
            "connect_timeout": timeout,
            "options": f"-c statement_timeout={timeout * 1000}",
        }
    return options


# Create SQLAlchemy engine with connection pooling and timeout settings
engine = create_engine(
    DATABASE_URL, **engine_options(DATABASE_URL, get_store_timeout_seconds())
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create declarative base
Base = declarative_base()
