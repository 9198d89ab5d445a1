# backend/clubdesk/services/capacity_service.py
"""
Capacity Accountant.

Remaining seats on a slot are its capacity minus the regular active
assignments minus the makeup seats currently held. A makeup seat is held by
every ``makeup_selected`` request targeting the slot, and by ``completed``
requests whose makeup date has not passed yet.
"""

import logging
from typing import Optional, cast

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..models.schedule import ClassSlot
from ..repositories.absence_repository import AbsenceRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.slot_repository import SlotRepository
from ..schemas.schedule import SlotCapacity
from .base import BaseService

logger = logging.getLogger(__name__)


class CapacityService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        slot_repository: Optional[SlotRepository] = None,
        absence_repository: Optional[AbsenceRepository] = None,
    ):
        super().__init__(db, clock)
        self.slot_repository = slot_repository or RepositoryFactory.create_slot_repository(db)
        self.absence_repository = (
            absence_repository or RepositoryFactory.create_absence_repository(db)
        )

    def _counts(self, slot: ClassSlot) -> tuple[int, int]:
        slot_id = cast(str, slot.id)
        assigned = self.slot_repository.active_assignment_count(slot_id)
        makeups = self.absence_repository.count_active_makeups(slot_id, self.clock.today())
        return assigned, makeups

    def unclamped_remaining(self, slot: ClassSlot) -> Optional[int]:
        """
        Capacity minus seats in use, without clamping.

        Negative when the slot is overcommitted; the makeup reservation uses
        this to detect that its own write overbooked the slot.
        """
        if slot.capacity is None:
            return None
        assigned, makeups = self._counts(slot)
        return cast(int, slot.capacity) - assigned - makeups

    def remaining(self, slot: ClassSlot) -> Optional[int]:
        """Seats left on the slot in ``[0, capacity]``, or None when unbounded."""
        raw = self.unclamped_remaining(slot)
        if raw is None:
            return None
        return max(0, min(raw, cast(int, slot.capacity)))

    def is_full(self, slot: ClassSlot) -> bool:
        left = self.remaining(slot)
        return left is not None and left == 0

    def snapshot(self, slot: ClassSlot) -> SlotCapacity:
        assigned, makeups = self._counts(slot)
        capacity = cast(Optional[int], slot.capacity)
        remaining = (
            None if capacity is None else max(0, min(capacity - assigned - makeups, capacity))
        )
        return SlotCapacity(
            slot_id=cast(str, slot.id),
            capacity=capacity,
            assigned=assigned,
            makeups=makeups,
            remaining=remaining,
            is_full=remaining == 0,
        )
