# backend/clubdesk/models/absence.py
"""
Absence request model.

A member declares they will miss one occurrence of an assigned slot. Once an
admin approves, the member has until ``makeup_deadline`` to book a makeup
occurrence of another slot in the same month.

Concurrency: ``version`` is SQLAlchemy's optimistic lock column. Every UPDATE
is issued with ``WHERE version = :seen``; a concurrent writer surfaces as
``StaleDataError`` and the service retries.
"""

from datetime import date, datetime
import logging
from typing import Any, Optional, cast

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import AbsenceStatus
from ..database import Base

logger = logging.getLogger(__name__)


class AbsenceRequest(Base):
    __tablename__ = "absence_requests"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # Who & which occurrence
    member_id = Column(String(26), nullable=False, index=True)
    slot_id = Column(String(26), ForeignKey("class_slots.id", ondelete="CASCADE"), nullable=False)
    absent_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=AbsenceStatus.PENDING.value, index=True)

    # Admin decision
    approved_by = Column(String(26), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    admin_notes = Column(Text, nullable=True)

    # Makeup selection
    makeup_slot_id = Column(
        String(26), ForeignKey("class_slots.id", ondelete="SET NULL"), nullable=True
    )
    makeup_date = Column(Date, nullable=True)
    makeup_deadline = Column(Date, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    slot = relationship("ClassSlot", foreign_keys=[slot_id])
    makeup_slot = relationship("ClassSlot", foreign_keys=[makeup_slot_id])

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        # One absence record per member per class per date
        UniqueConstraint(
            "member_id", "slot_id", "absent_date", name="uq_absence_requests_member_slot_date"
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'makeup_selected', "
            "'completed', 'expired', 'no_makeup')",
            name="ck_absence_requests_status",
        ),
        Index("ix_absence_requests_makeup_slot_status", "makeup_slot_id", "status"),
        Index("ix_absence_requests_status_deadline", "status", "makeup_deadline"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = AbsenceStatus.PENDING.value

    def __repr__(self) -> str:
        return (
            f"<AbsenceRequest {self.id}: member={self.member_id}, slot={self.slot_id}, "
            f"date={self.absent_date}, status={self.status}>"
        )

    @property
    def status_enum(self) -> AbsenceStatus:
        return AbsenceStatus(cast(str, self.status))

    def is_deadline_expired(self, today: date) -> bool:
        """True once ``today`` is strictly after the makeup deadline."""
        deadline = cast(Optional[date], self.makeup_deadline)
        return deadline is not None and today > deadline

    def days_left_for_makeup(self, today: date) -> Optional[int]:
        if self.makeup_deadline is None or self.status_enum != AbsenceStatus.APPROVED:
            return None
        return max(0, (cast(date, self.makeup_deadline) - today).days)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for notification payloads and API responses."""

        def _iso(value: Optional[date | datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "member_id": self.member_id,
            "slot_id": self.slot_id,
            "absent_date": _iso(self.absent_date),
            "reason": self.reason,
            "status": self.status,
            "approved_by": self.approved_by,
            "approved_at": _iso(self.approved_at),
            "admin_notes": self.admin_notes,
            "makeup_slot_id": self.makeup_slot_id,
            "makeup_date": _iso(self.makeup_date),
            "makeup_deadline": _iso(self.makeup_deadline),
            "completed_at": _iso(self.completed_at),
        }
