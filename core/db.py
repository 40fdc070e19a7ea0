# core/db.py
"""
Database management for the NEON network engine.
Single database, engine and session factory created lazily from Config.
"""
import logging
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config import Config
from models.base import Base

logger = logging.getLogger(__name__)

# Database engines
_engine = None
_SessionFactory = None


def get_engine():
    """Get or create database engine."""
    global _engine
    if _engine is None:
        database_url = Config.get(Config.DATABASE_URL)
        _engine = build_engine(database_url, echo=bool(Config.get(Config.DATABASE_ECHO)))
        logger.info(f"Database engine created: {database_url}")
    return _engine


def build_engine(database_url: str, echo: bool = False):
    """
    Create an engine for the given URL.

    In-memory SQLite gets a StaticPool so every session shares one connection.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True
    )


def get_session_factory():
    """Get or create session factory."""
    global _SessionFactory
    if _SessionFactory is None:
        engine = get_engine()
        _SessionFactory = sessionmaker(bind=engine, expire_on_commit=False)
        logger.info("Session factory created")
    return _SessionFactory


def get_session() -> Session:
    """
    Get a new database session.

    Returns:
        Session instance
    """
    factory = get_session_factory()
    return factory()


@contextmanager
def get_db_session_ctx():
    """
    Context manager for database sessions.

    Usage:
        with get_db_session_ctx() as session:
            distributor = session.query(Distributor).first()
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database error: {e}")
        raise
    finally:
        session.close()


def setup_database(engine=None):
    """Initialize database - create all tables."""
    logger.info("Setting up database...")
    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    logger.info("Database setup completed")


def drop_all_tables(engine=None):
    """Drop all tables - USE WITH CAUTION!"""
    logger.warning("Dropping all tables...")
    engine = engine or get_engine()
    Base.metadata.drop_all(engine)
    logger.info("All tables dropped")
