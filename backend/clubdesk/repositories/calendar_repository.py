# backend/clubdesk/repositories/calendar_repository.py
"""
Calendar Override Store.

Read-only access to the three override layers consulted by the availability
calculator. Queries narrow the candidates; the pure rules in
``clubdesk.domain.availability_rules`` make the final decision.
"""

from __future__ import annotations

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy import and_, extract, or_
from sqlalchemy.orm import Session

from ..models.calendar import Holiday, SlotCancellation, SpecialBooking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CalendarRepository(BaseRepository[Holiday]):
    def __init__(self, db: Session):
        super().__init__(db, Holiday)

    def holidays_on(self, on_date: date) -> List[Holiday]:
        """Holidays on the exact date, or recurring ones on the same month/day."""
        query = self.db.query(Holiday).filter(
            or_(
                Holiday.date == on_date,
                and_(
                    Holiday.is_recurring.is_(True),
                    extract("month", Holiday.date) == on_date.month,
                    extract("day", Holiday.date) == on_date.day,
                ),
            )
        )
        return self._execute_query(query.order_by(Holiday.name))

    def cancellation_for(self, slot_id: str, on_date: date) -> Optional[SlotCancellation]:
        rows = self._execute_query(
            self.db.query(SlotCancellation).filter(
                SlotCancellation.slot_id == slot_id,
                SlotCancellation.cancelled_date == on_date,
            )
        )
        return rows[0] if rows else None

    def special_bookings_covering(self, venue_id: str, on_date: date) -> List[SpecialBooking]:
        query = self.db.query(SpecialBooking).filter(
            SpecialBooking.venue_id == venue_id,
            SpecialBooking.start_date <= on_date,
            SpecialBooking.end_date >= on_date,
        )
        return self._execute_query(query.order_by(SpecialBooking.start_date, SpecialBooking.title))
