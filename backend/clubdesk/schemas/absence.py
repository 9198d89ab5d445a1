# backend/clubdesk/schemas/absence.py
"""
Absence and makeup schemas.

Responses returned by the absence workflow and the expiry sweep. They are the
shape the member- and admin-facing layers serialize; the services themselves
work on ORM rows.
"""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import Field

from ..core.enums import AbsenceStatus
from .base import OrmResponseModel, StandardizedModel


class AbsenceRequestResponse(OrmResponseModel):
    id: str
    member_id: str
    slot_id: str
    absent_date: date
    reason: Optional[str] = None
    status: AbsenceStatus
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    makeup_slot_id: Optional[str] = None
    makeup_date: Optional[date] = None
    makeup_deadline: Optional[date] = None
    completed_at: Optional[datetime] = None
    days_remaining: Optional[int] = Field(
        default=None, description="Days left to pick a makeup; only set while approved"
    )


class MakeupOption(StandardizedModel):
    """A bookable makeup occurrence."""

    slot_id: str
    label: Optional[str] = None
    makeup_date: date
    start_time: time
    end_time: time
    coach_id: Optional[str] = None
    remaining_seats: Optional[int] = Field(default=None, description="None means unbounded")


class ExpirySweepResult(StandardizedModel):
    run_date: date
    expired_ids: List[str] = Field(default_factory=list)
    failed_ids: List[str] = Field(default_factory=list)
    skipped: bool = False

    @property
    def expired_count(self) -> int:
        return len(self.expired_ids)
