# neon/core/locks.py
"""
In-process keyed locks.

Serializes read-modify-write sequences on per-distributor aggregates
(volume roll-up, binary daily cap) and on territory claiming.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Hashable

logger = logging.getLogger(__name__)


class KeyedLock:
    """
    Registry of re-entrant locks addressed by key.

    Usage:
        locks = KeyedLock()
        with locks.hold(("binary", distributor_id, day)):
            ...
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.RLock] = {}

    def _lock_for(self, key: Hashable) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable):
        """Hold the lock for a single key."""
        lock = self._lock_for(key)
        with lock:
            yield

    def __len__(self):
        return len(self._locks)
