"""
Shared fixtures for the crowd monitor tests

Provides a controllable clock, seeded random generators and both
storage backends (in-memory and SQLite in-memory).
"""

import os
import sys
from datetime import datetime, timedelta

import numpy as np
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from crowd_monitor.database.database import Base
from crowd_monitor.database import models  # noqa: F401
from crowd_monitor.crowd.memory_store import MemoryCrowdStore
from crowd_monitor.crowd.sql_store import SqlCrowdStore


# Tuesday 08:00, a weekday morning rush hour (day_of_week == 2)
TUESDAY_RUSH = datetime(2026, 10, 20, 8, 0, 0)


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, start: datetime = TUESDAY_RUSH):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def session_factory():
    """SQLite in-memory database shared across sessions"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def store(request, clock, session_factory):
    """Each test using this fixture runs against both backends"""
    if request.param == "memory":
        return MemoryCrowdStore(clock=clock)
    return SqlCrowdStore(session_factory, clock=clock)
