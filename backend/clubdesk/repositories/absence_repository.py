# backend/clubdesk/repositories/absence_repository.py
"""
Absence Repository

Encapsulates the queries behind the absence workflow: duplicate detection,
the monthly makeup quota, makeup seat counts, and expiry candidates.
"""

from __future__ import annotations

import calendar
from datetime import date
import logging
from typing import List, Optional, cast

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..core.enums import SEAT_HOLDING_ABSENCE_STATUSES, AbsenceStatus
from ..models.absence import AbsenceRequest
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_SEAT_HOLDING_VALUES = sorted(status.value for status in SEAT_HOLDING_ABSENCE_STATUSES)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


class AbsenceRepository(BaseRepository[AbsenceRequest]):
    """Repository for absence requests."""

    def __init__(self, db: Session):
        super().__init__(db, AbsenceRequest)

    def get_for_update(self, absence_id: str) -> Optional[AbsenceRequest]:
        """
        Load the current row, bypassing the identity map.

        ``populate_existing`` makes a retried transition see the committed
        status and version; FOR UPDATE is a no-op on SQLite.
        """
        query = (
            self.db.query(AbsenceRequest)
            .filter(AbsenceRequest.id == absence_id)
            .populate_existing()
            .with_for_update()
        )
        rows = self._execute_query(query)
        return rows[0] if rows else None

    def find_for_occurrence(
        self, member_id: str, slot_id: str, absent_date: date
    ) -> Optional[AbsenceRequest]:
        rows = self._execute_query(
            self.db.query(AbsenceRequest).filter(
                AbsenceRequest.member_id == member_id,
                AbsenceRequest.slot_id == slot_id,
                AbsenceRequest.absent_date == absent_date,
            )
        )
        return rows[0] if rows else None

    def count_monthly_makeups(
        self,
        member_id: str,
        year: int,
        month: int,
        *,
        exclude_id: Optional[str] = None,
    ) -> int:
        """Seat-holding requests whose absent_date falls in the given month."""
        first, last = month_bounds(year, month)
        query = self.db.query(func.count(AbsenceRequest.id)).filter(
            AbsenceRequest.member_id == member_id,
            AbsenceRequest.absent_date >= first,
            AbsenceRequest.absent_date <= last,
            AbsenceRequest.status.in_(_SEAT_HOLDING_VALUES),
        )
        if exclude_id is not None:
            query = query.filter(AbsenceRequest.id != exclude_id)
        return int(self._execute_scalar(query) or 0)

    def count_active_makeups(self, slot_id: str, today: date) -> int:
        """
        Makeup seats held on a slot.

        Every ``makeup_selected`` counts regardless of date; ``completed``
        counts only while its makeup date is today or later.
        """
        query = self.db.query(func.count(AbsenceRequest.id)).filter(
            AbsenceRequest.makeup_slot_id == slot_id,
            AbsenceRequest.status.in_(_SEAT_HOLDING_VALUES),
            or_(
                AbsenceRequest.status == AbsenceStatus.MAKEUP_SELECTED.value,
                AbsenceRequest.makeup_date >= today,
            ),
        )
        return int(self._execute_scalar(query) or 0)

    def list_expired_candidate_ids(self, today: date) -> List[str]:
        """Approved requests whose makeup deadline is strictly before today."""
        rows = (
            self.db.query(AbsenceRequest.id)
            .filter(
                AbsenceRequest.status == AbsenceStatus.APPROVED.value,
                AbsenceRequest.makeup_deadline.isnot(None),
                AbsenceRequest.makeup_deadline < today,
            )
            .order_by(AbsenceRequest.makeup_deadline, AbsenceRequest.id)
            .all()
        )
        return [cast(str, row[0]) for row in rows]

    def list_for_member(self, member_id: str) -> List[AbsenceRequest]:
        return self._execute_query(
            self.db.query(AbsenceRequest)
            .filter(AbsenceRequest.member_id == member_id)
            .order_by(AbsenceRequest.absent_date.desc())
        )
