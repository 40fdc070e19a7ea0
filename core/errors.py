# neon/core/errors.py
"""
Error taxonomy for the network and territory engines.

    ValidationError   - bad input, surfaced to the caller as-is
    ConflictError     - typed rejection (territory overlap, code space exhausted)
    DependencyError   - repository/storage failure, optionally retryable
    IntegrityWarning  - dangling tree link; logged, skipped, reported in diagnostics
"""
import functools
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """Base class for all engine errors."""
    pass


class ValidationError(EngineError):
    """Raised when caller input is invalid."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConflictError(EngineError):
    """Raised when a request conflicts with existing state."""

    def __init__(self, message: str, conflicts: Optional[list] = None):
        super().__init__(message)
        self.conflicts = conflicts or []


class DependencyError(EngineError):
    """Raised when the repository or another collaborator fails."""

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class IntegrityWarning(UserWarning):
    """
    Broken link found while traversing a tree.

    Never raised by the engines - instances are collected into the
    diagnostics field of results.
    """

    def __init__(self, message: str, distributor_id: Optional[int] = None,
                 missing_id: Optional[int] = None, link: str = "sponsor"):
        super().__init__(message)
        self.message = message
        self.distributor_id = distributor_id
        self.missing_id = missing_id
        self.link = link

    def __repr__(self):
        return (
            f"<IntegrityWarning(link={self.link}, distributor={self.distributor_id}, "
            f"missing={self.missing_id})>"
        )


def retry_read(func: Callable) -> Callable:
    """
    Retry an idempotent repository read once on a retryable DependencyError.

    Writes must never be decorated with this - a retried write could apply
    a commission twice.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except DependencyError as e:
            if not e.retryable:
                raise
            logger.warning(f"Retrying read {func.__name__} after dependency error: {e}")
            return func(*args, **kwargs)

    return wrapper
