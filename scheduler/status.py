# scheduler/status.py

from enum import Enum

from scheduler.errors import InvalidTransition


class AppointmentStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"
    no_show = "no_show"


# Statuses whose interval counts as occupied
OCCUPYING = frozenset({AppointmentStatus.pending, AppointmentStatus.confirmed})

VALID_NEXT = {
    AppointmentStatus.pending: {AppointmentStatus.confirmed, AppointmentStatus.cancelled},
    AppointmentStatus.confirmed: {
        AppointmentStatus.cancelled,
        AppointmentStatus.completed,
        AppointmentStatus.no_show,
    },
    AppointmentStatus.cancelled: set(),
    AppointmentStatus.completed: set(),
    AppointmentStatus.no_show: set(),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return AppointmentStatus(target) in VALID_NEXT[AppointmentStatus(current)]


def ensure_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(
            f"cannot move appointment from {AppointmentStatus(current).value} to {AppointmentStatus(target).value}"
        )
