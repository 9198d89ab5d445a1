# backend/clubdesk/repositories/slot_repository.py
"""
Slot registry: class slots and the regular assignments that occupy them.
"""

from __future__ import annotations

import logging
from typing import List, Optional, cast

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.enums import AssignmentStatus
from ..core.exceptions import RepositoryException
from ..models.assignment import ClassAssignment
from ..models.schedule import ClassSlot
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SlotRepository(BaseRepository[ClassSlot]):
    """Repository for class slots and assignment counts."""

    def __init__(self, db: Session):
        super().__init__(db, ClassSlot)

    def get_slot(self, slot_id: str) -> Optional[ClassSlot]:
        return self.get_by_id(slot_id)

    def get_for_update(self, slot_id: str) -> Optional[ClassSlot]:
        """
        Load a slot with a row lock held until the transaction ends.

        Makeup reservations on the same slot queue up behind this lock, so the
        seat count each one takes afterwards includes every committed booking.
        """
        query = (
            self.db.query(ClassSlot)
            .filter(ClassSlot.id == slot_id)
            .populate_existing()
            .with_for_update()
        )
        rows = self._execute_query(query)
        return rows[0] if rows else None

    def active_assignment_count(self, slot_id: str) -> int:
        """Number of members holding a regular active seat in the slot."""
        query = self.db.query(func.count(ClassAssignment.id)).filter(
            ClassAssignment.slot_id == slot_id,
            ClassAssignment.status == AssignmentStatus.ACTIVE.value,
        )
        return int(self._execute_scalar(query) or 0)

    def has_active_assignment(self, member_id: str, slot_id: str) -> bool:
        try:
            return (
                self.db.query(ClassAssignment.id)
                .filter(
                    ClassAssignment.member_id == member_id,
                    ClassAssignment.slot_id == slot_id,
                    ClassAssignment.status == AssignmentStatus.ACTIVE.value,
                )
                .first()
                is not None
            )
        except Exception as exc:
            self.logger.error("Failed to check assignment: %s", str(exc))
            raise RepositoryException("Failed to check assignment") from exc

    def active_slot_ids_for_member(self, member_id: str) -> List[str]:
        rows = (
            self.db.query(ClassAssignment.slot_id)
            .filter(
                ClassAssignment.member_id == member_id,
                ClassAssignment.status == AssignmentStatus.ACTIVE.value,
            )
            .all()
        )
        return [cast(str, row[0]) for row in rows]

    def list_program_slots(
        self, program_id: str, *, exclude_slot_ids: Optional[List[str]] = None
    ) -> List[ClassSlot]:
        """Active slots of a program, optionally excluding some ids."""
        query = self._build_query().filter(
            ClassSlot.program_id == program_id,
            ClassSlot.is_active.is_(True),
        )
        if exclude_slot_ids:
            query = query.filter(ClassSlot.id.notin_(exclude_slot_ids))
        return self._execute_query(query.order_by(ClassSlot.day_of_week, ClassSlot.start_time))
