from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import AssignmentStatus
from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class ClassAssignment(Base):
    """A member's regular seat in a class slot."""

    __tablename__ = "class_assignments"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    member_id = Column(String(26), nullable=False, index=True)
    slot_id = Column(String(26), ForeignKey("class_slots.id", ondelete="CASCADE"), nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=_now_utc)
    assigned_by = Column(String(26), nullable=True)
    status = Column(String(20), nullable=False, default=AssignmentStatus.ACTIVE.value)
    notes = Column(Text, nullable=True)

    slot = relationship("ClassSlot")

    __table_args__ = (Index("ix_class_assignments_slot_status", "slot_id", "status"),)

    def __repr__(self) -> str:
        return f"<ClassAssignment member={self.member_id} slot={self.slot_id} status={self.status}>"
