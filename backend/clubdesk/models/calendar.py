# backend/clubdesk/models/calendar.py
"""
Calendar override models.

Three independent layers can cancel an otherwise running occurrence:
club-wide holidays, one-off slot cancellations, and venue-wide special
bookings.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Holiday(Base):
    """Club-wide closure; recurring holidays match the same month/day every year."""

    __tablename__ = "holidays"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(255), nullable=False)
    date = Column(Date, nullable=False, index=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<Holiday {self.name} {self.date} recurring={self.is_recurring}>"


class SlotCancellation(Base):
    """A single occurrence of a slot called off by schedule administration."""

    __tablename__ = "slot_cancellations"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    slot_id = Column(String(26), ForeignKey("class_slots.id", ondelete="CASCADE"), nullable=False)
    cancelled_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    slot = relationship("ClassSlot", back_populates="cancellations")

    __table_args__ = (
        UniqueConstraint("slot_id", "cancelled_date", name="uq_slot_cancellations_slot_date"),
    )

    def __repr__(self) -> str:
        return f"<SlotCancellation slot={self.slot_id} date={self.cancelled_date}>"


class SpecialBooking(Base):
    """
    A venue booked for something else (tournament, maintenance...).

    Missing time bounds mean the booking covers the whole day.
    """

    __tablename__ = "special_bookings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    venue_id = Column(String(26), ForeignKey("venues.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    reason = Column(Text, nullable=True)
    cancels_classes = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    venue = relationship("Venue")

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_special_bookings_date_order"),
        Index("ix_special_bookings_dates", "start_date", "end_date"),
    )

    def __repr__(self) -> str:
        return f"<SpecialBooking {self.title} venue={self.venue_id} {self.start_date}..{self.end_date}>"
