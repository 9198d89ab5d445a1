# backend/clubdesk/core/enums.py
"""
Core enums for the clubdesk scheduling core.

Values are stored as plain strings in the database so they stay readable
in ad-hoc queries and exports.
"""

from enum import Enum
from typing import FrozenSet


class AbsenceStatus(str, Enum):
    """
    Lifecycle of an absence request.

    pending -> approved | rejected
    approved -> makeup_selected | expired | no_makeup
    makeup_selected -> completed
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MAKEUP_SELECTED = "makeup_selected"
    COMPLETED = "completed"
    EXPIRED = "expired"
    NO_MAKEUP = "no_makeup"


# Statuses that book a makeup: they count against the monthly quota and hold a
# seat (completed ones only until the makeup date has passed)
SEAT_HOLDING_ABSENCE_STATUSES: FrozenSet[AbsenceStatus] = frozenset(
    {AbsenceStatus.MAKEUP_SELECTED, AbsenceStatus.COMPLETED}
)


class AssignmentStatus(str, Enum):
    ACTIVE = "active"
    DROPPED = "dropped"


class RecurrenceKind(str, Enum):
    """How a slot repeats. Only weekly recurrence is evaluated today."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    TERM = "term"


class Weekday(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def iso_index(self) -> int:
        """0 for Monday, matching ``date.weekday()``."""
        return list(Weekday).index(self)

    @classmethod
    def parse(cls, value: "str | Weekday") -> "Weekday":
        if isinstance(value, Weekday):
            return value
        return cls(str(value).strip().lower())


class AbsenceNotificationKind(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    MAKEUP_SELECTED = "makeup_selected"
    EXPIRED = "expired"
