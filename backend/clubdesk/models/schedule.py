# backend/clubdesk/models/schedule.py
"""
Schedule models: venues, programs and the recurring class slots they offer.

Slots are authored by schedule administration elsewhere; the scheduling core
only reads them. A slot's venue is reached through its program.
"""

from datetime import time
import logging
from typing import Optional, cast

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import RecurrenceKind, Weekday
from ..database import Base

logger = logging.getLogger(__name__)


class Venue(Base):
    """A physical location; special bookings block a whole venue."""

    __tablename__ = "venues"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    programs = relationship("Program", back_populates="venue")

    def __repr__(self) -> str:
        return f"<Venue {self.id}: {self.name}>"


class Program(Base):
    __tablename__ = "programs"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(255), nullable=False)
    venue_id = Column(String(26), ForeignKey("venues.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    venue = relationship("Venue", back_populates="programs")
    slots = relationship("ClassSlot", back_populates="program")

    def __repr__(self) -> str:
        return f"<Program {self.id}: {self.name}>"


class ClassSlot(Base):
    """
    A recurring weekly session of a program.

    ``capacity`` NULL means unbounded. ``valid_from``/``valid_to`` bound the
    dates on which the slot exists at all (both inclusive).
    """

    __tablename__ = "class_slots"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    program_id = Column(String(26), ForeignKey("programs.id"), nullable=False, index=True)
    label = Column(String(255), nullable=True)
    day_of_week = Column(String(10), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    coach_id = Column(String(26), nullable=True)
    capacity = Column(Integer, nullable=True)
    recurrence = Column(String(20), nullable=False, default=RecurrenceKind.WEEKLY.value)
    valid_from = Column(Date, nullable=True)
    valid_to = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    program = relationship("Program", back_populates="slots", lazy="joined")
    cancellations = relationship(
        "SlotCancellation", back_populates="slot", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "day_of_week IN ('monday', 'tuesday', 'wednesday', 'thursday', "
            "'friday', 'saturday', 'sunday')",
            name="ck_class_slots_day_of_week",
        ),
        CheckConstraint("capacity IS NULL OR capacity >= 0", name="ck_class_slots_capacity"),
        Index("ix_class_slots_program_day", "program_id", "day_of_week"),
    )

    def __init__(self, **kwargs: object) -> None:
        if "day_of_week" in kwargs and kwargs["day_of_week"] is not None:
            kwargs["day_of_week"] = Weekday.parse(cast(str, kwargs["day_of_week"])).value
        super().__init__(**kwargs)
        if self.is_active is None:
            self.is_active = True
        if self.recurrence is None:
            self.recurrence = RecurrenceKind.WEEKLY.value

    def __repr__(self) -> str:
        return (
            f"<ClassSlot {self.id}: {self.label or self.day_of_week} "
            f"{self.start_time}-{self.end_time}, capacity={self.capacity}>"
        )

    @property
    def weekday(self) -> Weekday:
        return Weekday.parse(cast(str, self.day_of_week))

    @property
    def venue_id(self) -> Optional[str]:
        program = self.program
        return cast(Optional[str], program.venue_id) if program is not None else None

    @property
    def formatted_time(self) -> str:
        start = cast(time, self.start_time)
        end = cast(time, self.end_time)
        return f"{start.strftime('%I:%M %p').lstrip('0')} - {end.strftime('%I:%M %p').lstrip('0')}"
