"""
Database models for the clubdesk scheduling core.

- Schedule: venues, programs and recurring class slots
- Calendar overrides: holidays, slot cancellations, special bookings
- Class assignments (regular seats)
- Absence requests and their makeup bookings
"""

from .absence import AbsenceRequest
from .assignment import ClassAssignment
from .calendar import Holiday, SlotCancellation, SpecialBooking
from .schedule import ClassSlot, Program, Venue

__all__ = [
    "AbsenceRequest",
    "ClassAssignment",
    "ClassSlot",
    "Holiday",
    "Program",
    "SlotCancellation",
    "SpecialBooking",
    "Venue",
]
