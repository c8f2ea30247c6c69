"""
Database Configuration and Session Management

This module provides the SQLAlchemy engine, session factory and
database initialization utilities for the SQL crowd store.
"""

import os
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Ensure data directory exists
DATA_DIR = Path(__file__).parent.parent.parent / "data"
DATA_DIR.mkdir(exist_ok=True)

# Database URL - SQLite unless overridden
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite:///{DATA_DIR}/crowd_monitor.db"
)

# Seconds a statement waits on a locked database before failing
DB_TIMEOUT = float(os.getenv("DATABASE_TIMEOUT", "10"))


def create_db_engine(url: str = DATABASE_URL):
    """
    Create an engine for the given URL

    SQLite needs cross-thread access because store calls run on worker
    threads: the routes are plain functions served from FastAPI's
    threadpool and each sampler tick runs in the default executor.
    """
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": DB_TIMEOUT}

    return create_engine(
        url,
        connect_args=connect_args,
        echo=False  # Set to True for SQL debugging
    )


# Create SQLAlchemy engine
engine = create_db_engine()

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for ORM models
Base = declarative_base()


def init_db(bind=None):
    """
    Initialize database - create all tables

    Called on application startup when the SQL backend is selected.
    """
    # Import all models to ensure they're registered with Base
    from crowd_monitor.database import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

    print(f"[OK] Database initialized at: {DATABASE_URL if bind is None else bind.url}")


def reset_db(bind=None):
    """
    Reset database - drop and recreate all tables

    WARNING: This will delete all data!
    Only use during development/testing.
    """
    from crowd_monitor.database import models  # noqa: F401

    Base.metadata.drop_all(bind=bind or engine)
    Base.metadata.create_all(bind=bind or engine)

    print("[WARNING] Database reset complete - all data deleted")
