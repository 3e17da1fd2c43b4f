"""
In-process mutexes keyed by (staff_id, date).

Booking is check-then-act: two requests for the same staff member and day must
not both see a free interval and both commit. Every conflict check plus write
for a staff/day runs while holding that pair's lock.
"""
from contextlib import contextmanager
from datetime import date
from threading import Lock
from typing import Dict, Iterable, Tuple

LockKey = Tuple[int, date]


class StaffDayLocks:
    """Registry of one lock per (staff_id, date) pair"""

    def __init__(self):
        self._locks: Dict[LockKey, Lock] = {}
        self._registry_lock = Lock()

    def get(self, staff_id: int, day: date) -> Lock:
        key = (staff_id, day)
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, keys: Iterable[LockKey]):
        """Acquire the locks for all keys in a stable order (avoids deadlock on cross-day moves)"""
        ordered = sorted(set(keys))
        acquired = []
        try:
            for staff_id, day in ordered:
                lock = self.get(staff_id, day)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def __len__(self):
        return len(self._locks)


booking_locks = StaffDayLocks()
