# tests/conftest.py
"""
Pytest configuration and shared fixtures.

Every test runs against fresh storage (in-memory repository or in-memory
SQLite) with the clock frozen, so fast-start windows and daily binary caps
are deterministic.

Run:
    pytest tests/ -v
"""
from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from config import Config
from core.db import build_engine, setup_database, drop_all_tables
from core.engine import NetworkEngine
from core.locks import KeyedLock
from mlm_system.utils.time_machine import timeMachine
from repositories import MemoryRepository, SqlRepository

# =============================================================================
# CONSTANTS
# =============================================================================

FROZEN_NOW = datetime(2025, 1, 15, 12, 0, 0)

# Charleston, SC
CHARLESTON = (32.7765, -79.9311)


# =============================================================================
# CONFIG AND CLOCK
# =============================================================================

@pytest.fixture(autouse=True)
def reset_config():
    """Every test starts from DEFAULTS."""
    Config.reset()
    yield
    Config.reset()


@pytest.fixture(autouse=True)
def frozen_time():
    """Freeze virtual time at FROZEN_NOW."""
    timeMachine.setTime(FROZEN_NOW)
    yield timeMachine
    timeMachine.resetToRealTime()


# =============================================================================
# STORAGE FIXTURES
# =============================================================================

@pytest.fixture
def repository():
    """Fresh in-memory repository."""
    return MemoryRepository()


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with all tables."""
    engine = build_engine("sqlite://")
    setup_database(engine)
    yield engine
    drop_all_tables(engine)
    engine.dispose()


@pytest.fixture
def session(db_engine):
    """Create database session for each test."""
    Session = sessionmaker(bind=db_engine, expire_on_commit=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def sql_repository(session):
    return SqlRepository(session)


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def engine(repository):
    """NetworkEngine over the in-memory repository with private locks."""
    return NetworkEngine(repository, KeyedLock())


@pytest.fixture
def sql_engine(sql_repository):
    """NetworkEngine over SQLite."""
    return NetworkEngine(sql_repository, KeyedLock())


# =============================================================================
# HELPER FIXTURES
# =============================================================================

@pytest.fixture
def enroll(engine):
    """
    Enroll helper.

    enroll("alice") enrolls a root; enroll("bob", sponsor) enrolls under
    the given Distributor.
    """
    counter = [0]

    def _enroll(name=None, sponsor=None):
        counter[0] += 1
        user_id = name or f"user-{counter[0]}"
        return engine.enroll_distributor(
            user_id,
            sponsor_code=sponsor.code if sponsor else None,
            display_name=user_id.title()
        )

    return _enroll
