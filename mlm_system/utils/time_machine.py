# mlm_system/utils/time_machine.py
"""
Virtual time for the MLM and territory engines.

Real UTC time by default. Tests and admin tooling can freeze or shift it
so that fast-start windows, daily binary caps and territory expiry can be
exercised deterministically.
"""
import logging
from datetime import datetime, date, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class TimeMachine:
    """Clock with optional virtual time."""

    def __init__(self):
        self._virtualTime: Optional[datetime] = None

    @property
    def isTestMode(self) -> bool:
        return self._virtualTime is not None

    @property
    def now(self) -> datetime:
        """Current time (naive UTC, matches DateTime columns)."""
        if self._virtualTime is not None:
            return self._virtualTime
        return datetime.now(timezone.utc).replace(tzinfo=None)

    @property
    def today(self) -> date:
        return self.now.date()

    @property
    def currentMonth(self) -> str:
        """Current period key, e.g. "2025-01"."""
        return self.now.strftime("%Y-%m")

    def setTime(self, moment: datetime) -> None:
        """Freeze time at the given moment."""
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
        self._virtualTime = moment
        logger.info(f"Virtual time set to {moment.isoformat()}")

    def advance(self, **delta) -> None:
        """Shift virtual time forward, e.g. advance(days=1)."""
        self.setTime(self.now + timedelta(**delta))

    def resetToRealTime(self) -> None:
        self._virtualTime = None
        logger.info("Virtual time disabled, using real time")


timeMachine = TimeMachine()
