# backend/clubdesk/schemas/schedule.py
from datetime import date
from typing import Optional

from pydantic import Field

from ..domain.availability_rules import OccurrenceStatus, OverrideLayer
from .base import StandardizedModel


class OccurrenceResponse(StandardizedModel):
    slot_id: str
    on_date: date
    status: OccurrenceStatus
    reason: Optional[str] = None
    layer: Optional[OverrideLayer] = None


class SlotCapacity(StandardizedModel):
    """Seat usage of one slot at a point in time."""

    slot_id: str
    capacity: Optional[int] = Field(default=None, description="None means unbounded")
    assigned: int = 0
    makeups: int = 0
    remaining: Optional[int] = None
    is_full: bool = False
