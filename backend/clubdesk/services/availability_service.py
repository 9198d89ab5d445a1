# backend/clubdesk/services/availability_service.py
"""
Availability Calculator.

Decides whether a class slot runs on a calendar date by combining the weekly
recurrence and validity window with the holiday, slot-cancellation and
special-booking override layers. The decision itself is made by the pure
rules in ``clubdesk.domain.availability_rules``; this service only fetches
the override rows they need.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..domain.availability_rules import (
    CalendarOverrides,
    OccurrenceResult,
    OccurrenceStatus,
    OverrideLayer,
    evaluate_overrides,
    evaluate_schedule,
)
from ..models.schedule import ClassSlot
from ..repositories.calendar_repository import CalendarRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.slot_repository import SlotRepository
from ..schemas.schedule import OccurrenceResponse
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatedOccurrence:
    on_date: date
    result: OccurrenceResult


class AvailabilityService(BaseService):
    """Answers Occurs(slot, date) for booking and calendar views."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        calendar_repository: Optional[CalendarRepository] = None,
        slot_repository: Optional[SlotRepository] = None,
    ):
        super().__init__(db, clock)
        self.calendar_repository = (
            calendar_repository or RepositoryFactory.create_calendar_repository(db)
        )
        self.slot_repository = slot_repository or RepositoryFactory.create_slot_repository(db)

    def load_overrides(self, slot: ClassSlot, on_date: date) -> CalendarOverrides:
        venue_id = slot.venue_id
        return CalendarOverrides(
            holidays=tuple(self.calendar_repository.holidays_on(on_date)),
            cancellation=self.calendar_repository.cancellation_for(slot.id, on_date),
            special_bookings=(
                tuple(self.calendar_repository.special_bookings_covering(venue_id, on_date))
                if venue_id is not None
                else ()
            ),
        )

    def occurs(self, slot: ClassSlot, on_date: date) -> OccurrenceResult:
        """
        Whether ``slot`` runs on ``on_date``.

        Override rows are only read when the slot is active, valid and
        scheduled on that weekday.
        """
        scheduled = evaluate_schedule(slot, on_date)
        if scheduled is not None:
            return scheduled
        return evaluate_overrides(slot, on_date, self.load_overrides(slot, on_date))

    @BaseService.measure_operation("upcoming_occurrences")
    def upcoming_occurrences(
        self,
        slot: ClassSlot,
        start: Optional[date] = None,
        days: int = 30,
    ) -> List[DatedOccurrence]:
        """
        Scheduled dates of ``slot`` in ``[start, start + days]``.

        Cancelled occurrences are included with their reason; dates outside the
        validity window or on other weekdays are omitted.
        """
        first = start or self.clock.today()
        last = first + timedelta(days=days)
        offset = (slot.weekday.iso_index - first.weekday()) % 7
        current = first + timedelta(days=offset)

        occurrences: List[DatedOccurrence] = []
        while current <= last:
            result = self.occurs(slot, current)
            if not (
                result.status is OccurrenceStatus.NOT_SCHEDULED
                or result.layer in (OverrideLayer.VALIDITY, OverrideLayer.INACTIVE)
            ):
                occurrences.append(DatedOccurrence(on_date=current, result=result))
            current += timedelta(days=7)
        return occurrences

    def running_dates(self, slot: ClassSlot, first: date, last: date) -> List[date]:
        """Dates in ``[first, last]`` on which the slot runs."""
        if last < first:
            return []
        days = (last - first).days
        return [
            occurrence.on_date
            for occurrence in self.upcoming_occurrences(slot, first, days)
            if occurrence.result.runs
        ]

    def occurrence_calendar(
        self, slot: ClassSlot, start: Optional[date] = None, days: int = 30
    ) -> List[OccurrenceResponse]:
        """Upcoming occurrences of ``slot`` shaped for calendar views."""
        return [
            OccurrenceResponse(
                slot_id=slot.id,
                on_date=occurrence.on_date,
                status=occurrence.result.status,
                reason=occurrence.result.reason,
                layer=occurrence.result.layer,
            )
            for occurrence in self.upcoming_occurrences(slot, start, days)
        ]
