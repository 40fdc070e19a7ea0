# neon/models/base.py
"""
Base model and mixins for all database tables.
"""
from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, DateTime

Base = declarative_base()


def _get_current_time():
    """Lazy import to avoid circular dependency."""
    from mlm_system.utils.time_machine import timeMachine
    return timeMachine.now


class AuditMixin:
    createdAt = Column(DateTime, default=_get_current_time, index=True)
    updatedAt = Column(DateTime, default=_get_current_time, onupdate=_get_current_time)
