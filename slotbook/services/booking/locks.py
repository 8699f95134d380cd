"""
Per-professional mutual exclusion for the check-then-insert of a booking.

The process-local lock serializes worker threads of one API process; the
SELECT ... FOR UPDATE taken inside the transaction serializes processes
sharing a PostgreSQL database.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Optional
from weakref import WeakValueDictionary

from slotbook.core.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)


class ProfessionalLocks:
    """Registry of one lock per professional id, dropped once nobody holds a reference."""

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds
        self._guard = threading.Lock()
        self._locks = WeakValueDictionary()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, professional_id):
        key = str(professional_id)
        lock = self._lock_for(key)

        timeout = -1 if self.timeout_seconds is None else self.timeout_seconds
        if not lock.acquire(timeout=timeout):
            logger.warning(f"Timed out waiting for booking lock of professional {key}")
            raise StorageUnavailable(f"Agenda of professional {key} is busy, retry later")

        try:
            yield
        finally:
            lock.release()
