"""
Occurrence rules for class slots.

Answers "does this slot run on this date" by walking an ordered list of pure
checks. The first rule that produces a result wins:

1. inactive slot            -> cancelled ("slot inactive")
2. outside valid_from/to    -> cancelled ("outside validity window")
3. weekday mismatch         -> not scheduled
4. holiday                  -> cancelled ("holiday: {name}")
5. slot cancellation        -> cancelled ("slot cancelled: {reason}")
6. cancelling special booking at the slot's venue overlapping its times
                            -> cancelled ("special booking: {title}")

Rules 1-3 need only the slot; 4-6 need the override rows, which callers
fetch only when the schedule rules pass. Slots and override rows are
duck-typed so these functions run against ORM rows or plain objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Any, Callable, Optional, Sequence, Tuple

from ..core.enums import Weekday


class OccurrenceStatus(str, Enum):
    RUNS = "runs"
    CANCELLED = "cancelled"
    NOT_SCHEDULED = "not_scheduled"


class OverrideLayer(str, Enum):
    INACTIVE = "inactive"
    VALIDITY = "validity"
    HOLIDAY = "holiday"
    SLOT_CANCELLATION = "slot_cancellation"
    SPECIAL_BOOKING = "special_booking"


@dataclass(frozen=True)
class OccurrenceResult:
    status: OccurrenceStatus
    reason: Optional[str] = None
    layer: Optional[OverrideLayer] = None

    @property
    def runs(self) -> bool:
        return self.status is OccurrenceStatus.RUNS

    @property
    def is_cancelled(self) -> bool:
        return self.status is OccurrenceStatus.CANCELLED


RUNS = OccurrenceResult(OccurrenceStatus.RUNS)
NOT_SCHEDULED = OccurrenceResult(OccurrenceStatus.NOT_SCHEDULED)


def cancelled(reason: str, layer: OverrideLayer) -> OccurrenceResult:
    return OccurrenceResult(OccurrenceStatus.CANCELLED, reason=reason, layer=layer)


@dataclass(frozen=True)
class CalendarOverrides:
    """Override rows relevant to one (slot, date)."""

    holidays: Sequence[Any] = field(default_factory=tuple)
    cancellation: Optional[Any] = None
    special_bookings: Sequence[Any] = field(default_factory=tuple)


def holiday_matches(holiday: Any, on_date: date) -> bool:
    holiday_date: date = holiday.date
    if holiday_date == on_date:
        return True
    return bool(holiday.is_recurring) and (holiday_date.month, holiday_date.day) == (
        on_date.month,
        on_date.day,
    )


def times_overlap(
    booking_start: Optional[time],
    booking_end: Optional[time],
    slot_start: Optional[time],
    slot_end: Optional[time],
) -> bool:
    """Half-open overlap; a side without bounds overlaps everything."""
    if booking_start is None or booking_end is None:
        return True
    if slot_start is None or slot_end is None:
        return True
    return booking_start < slot_end and booking_end > slot_start


def special_booking_cancels(booking: Any, slot: Any, on_date: date) -> bool:
    if not booking.cancels_classes:
        return False
    venue_id = getattr(slot, "venue_id", None)
    if venue_id is None or booking.venue_id != venue_id:
        return False
    if not (booking.start_date <= on_date <= booking.end_date):
        return False
    return times_overlap(booking.start_time, booking.end_time, slot.start_time, slot.end_time)


# Schedule rules (slot only)

ScheduleRule = Callable[[Any, date], Optional[OccurrenceResult]]
OverrideRule = Callable[[Any, date, CalendarOverrides], Optional[OccurrenceResult]]


def _inactive_rule(slot: Any, on_date: date) -> Optional[OccurrenceResult]:
    if getattr(slot, "is_active", True) is False:
        return cancelled("slot inactive", OverrideLayer.INACTIVE)
    return None


def _validity_rule(slot: Any, on_date: date) -> Optional[OccurrenceResult]:
    valid_from: Optional[date] = slot.valid_from
    valid_to: Optional[date] = slot.valid_to
    if (valid_from is not None and on_date < valid_from) or (
        valid_to is not None and on_date > valid_to
    ):
        return cancelled("outside validity window", OverrideLayer.VALIDITY)
    return None


def _weekday_rule(slot: Any, on_date: date) -> Optional[OccurrenceResult]:
    if Weekday.parse(slot.day_of_week).iso_index != on_date.weekday():
        return NOT_SCHEDULED
    return None


# Override rules (need calendar rows)


def _holiday_rule(slot: Any, on_date: date, overrides: CalendarOverrides) -> Optional[OccurrenceResult]:
    for holiday in overrides.holidays:
        if holiday_matches(holiday, on_date):
            return cancelled(f"holiday: {holiday.name}", OverrideLayer.HOLIDAY)
    return None


def _cancellation_rule(
    slot: Any, on_date: date, overrides: CalendarOverrides
) -> Optional[OccurrenceResult]:
    cancellation = overrides.cancellation
    if cancellation is None:
        return None
    if cancellation.slot_id != slot.id or cancellation.cancelled_date != on_date:
        return None
    return cancelled(
        f"slot cancelled: {cancellation.reason or 'no reason given'}",
        OverrideLayer.SLOT_CANCELLATION,
    )


def _special_booking_rule(
    slot: Any, on_date: date, overrides: CalendarOverrides
) -> Optional[OccurrenceResult]:
    for booking in overrides.special_bookings:
        if special_booking_cancels(booking, slot, on_date):
            return cancelled(f"special booking: {booking.title}", OverrideLayer.SPECIAL_BOOKING)
    return None


SCHEDULE_RULES: Tuple[ScheduleRule, ...] = (_inactive_rule, _validity_rule, _weekday_rule)
OVERRIDE_RULES: Tuple[OverrideRule, ...] = (
    _holiday_rule,
    _cancellation_rule,
    _special_booking_rule,
)


def evaluate_schedule(slot: Any, on_date: date) -> Optional[OccurrenceResult]:
    """Result of the slot-only rules, or None when the slot is scheduled that day."""
    for rule in SCHEDULE_RULES:
        result = rule(slot, on_date)
        if result is not None:
            return result
    return None


def evaluate_overrides(slot: Any, on_date: date, overrides: CalendarOverrides) -> OccurrenceResult:
    for rule in OVERRIDE_RULES:
        result = rule(slot, on_date, overrides)
        if result is not None:
            return result
    return RUNS


def evaluate_occurrence(
    slot: Any, on_date: date, overrides: Optional[CalendarOverrides] = None
) -> OccurrenceResult:
    """Apply every rule in order and return the first outcome."""
    scheduled = evaluate_schedule(slot, on_date)
    if scheduled is not None:
        return scheduled
    return evaluate_overrides(slot, on_date, overrides or CalendarOverrides())
