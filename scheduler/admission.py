# scheduler/admission.py
"""Admission decision and the per-(business, date) write lock."""

import logging
import threading
import weakref
from contextlib import contextmanager
from datetime import date
from enum import Enum
from typing import Optional

from scheduler.errors import AdmissionConflict
from scheduler.intervals import MINUTES_PER_DAY, TimeInterval
from scheduler.occupancy import OccupancySet
from scheduler.resolver import ResolvedDay

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    outside_working_hours = "OutsideWorkingHours"
    constraint_blocked = "ConstraintBlocked"
    slot_already_taken = "SlotAlreadyTaken"
    invalid_duration = "InvalidDuration"

    @property
    def waitlist_offered(self) -> bool:
        return self in (RejectionReason.slot_already_taken, RejectionReason.constraint_blocked)


def check_admission(
    start_minute: int,
    duration: int,
    day: ResolvedDay,
    occupancy: OccupancySet,
) -> Optional[RejectionReason]:
    """Return why ``[start, start + duration)`` cannot be booked, or None."""
    # 1) Duration must describe a real interval inside one day
    if duration <= 0 or duration > MINUTES_PER_DAY:
        return RejectionReason.invalid_duration
    if start_minute < 0 or start_minute + duration > MINUTES_PER_DAY:
        return RejectionReason.outside_working_hours

    requested = TimeInterval.from_duration(start_minute, duration)

    # 2) Working hours (weekday rule minus breaks, or the date override)
    if not day.within_working_hours(requested):
        return RejectionReason.outside_working_hours

    # 3) Business constraints for the date
    if not day.within_open_hours(requested):
        return RejectionReason.constraint_blocked

    # 4) Existing appointments
    if occupancy.conflicts_with(requested):
        return RejectionReason.slot_already_taken

    return None


class DateLockRegistry:
    """One lock per (business, date); dates never contend with each other."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def _lock_for(self, key):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = _KeyLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, business_id: int, on_date: date, timeout: float):
        lock = self._lock_for((business_id, on_date))
        if not lock.acquire(timeout=timeout):
            logger.warning("Admission lock busy for business=%s date=%s", business_id, on_date)
            raise AdmissionConflict(
                f"another booking for {on_date.isoformat()} is in progress, try again"
            )
        try:
            yield
        finally:
            lock.release()


class _KeyLock:
    # threading.Lock objects can't be weakly referenced
    def __init__(self):
        self._lock = threading.Lock()

    def acquire(self, timeout: float) -> bool:
        return self._lock.acquire(timeout=timeout)

    def release(self):
        self._lock.release()


date_locks = DateLockRegistry()
