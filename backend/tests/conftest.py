import os

# Must be set before clubdesk is imported: selects the in-memory database
# and eager Celery execution.
os.environ.setdefault("CLUBDESK_IS_TESTING", "true")
os.environ.setdefault("CLUBDESK_DISTRIBUTED_LOCKS_ENABLED", "false")

from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from clubdesk.core.clock import FixedClock
from clubdesk.core.enums import AbsenceStatus, AssignmentStatus
from clubdesk.database import Base, create_all
from clubdesk.models import (
    AbsenceRequest,
    ClassAssignment,
    ClassSlot,
    Holiday,
    Program,
    SlotCancellation,
    SpecialBooking,
    Venue,
)
from clubdesk.services.absence_service import AbsenceService
from clubdesk.services.notification_service import AbsenceNotificationService

# Monday
START = datetime(2027, 3, 1, 9, 0, tzinfo=timezone.utc)


def _enable_sqlite_savepoints(engine) -> None:
    """pysqlite needs explicit BEGIN for SAVEPOINT to behave."""

    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture(scope="session")
def _unit_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    _enable_sqlite_savepoints(engine)
    create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def unit_db(_unit_engine) -> Session:
    """
    Provide a session bound to one outer transaction that is rolled back after
    the test. Service commits and rollbacks only touch savepoints.
    """
    connection = _unit_engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        expire_on_commit=False,
        future=True,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START)


class RecordingSender:
    """Notification sender that remembers what it was asked to send."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, Dict[str, Any]]] = []

    def __call__(self, kind: str, payload: Dict[str, Any]) -> None:
        self.sent.append((kind, payload))

    def kinds(self) -> List[str]:
        return [kind for kind, _ in self.sent]

    def for_absence(self, absence_id: str) -> List[str]:
        return [kind for kind, payload in self.sent if payload["id"] == absence_id]


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def notifications(sender: RecordingSender) -> AbsenceNotificationService:
    return AbsenceNotificationService(sender=sender)


@pytest.fixture
def absence_service(unit_db, clock, notifications) -> AbsenceService:
    return AbsenceService(unit_db, clock=clock, notification_service=notifications)


class ScheduleBuilder:
    """Small factory for schedule rows inside one test session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        return obj

    def venue(self, name: str = "Main Hall") -> Venue:
        return self._save(Venue(name=name))

    def program(self, venue: Optional[Venue] = None, name: str = "Junior Squad") -> Program:
        venue = venue or self.venue()
        return self._save(Program(name=name, venue_id=venue.id))

    def slot(
        self,
        program: Program,
        day_of_week: str,
        capacity: Optional[int] = None,
        start: time = time(17, 0),
        end: time = time(18, 0),
        **kwargs: Any,
    ) -> ClassSlot:
        return self._save(
            ClassSlot(
                program_id=program.id,
                label=kwargs.pop("label", f"{day_of_week.title()} {start.strftime('%H:%M')}"),
                day_of_week=day_of_week,
                start_time=start,
                end_time=end,
                capacity=capacity,
                **kwargs,
            )
        )

    def assign(self, member_id: str, slot: ClassSlot, **kwargs: Any) -> ClassAssignment:
        return self._save(
            ClassAssignment(
                member_id=member_id,
                slot_id=slot.id,
                status=kwargs.pop("status", AssignmentStatus.ACTIVE.value),
                **kwargs,
            )
        )

    def holiday(self, name: str, on: date, recurring: bool = False) -> Holiday:
        return self._save(Holiday(name=name, date=on, is_recurring=recurring))

    def cancellation(self, slot: ClassSlot, on: date, reason: Optional[str] = None):
        return self._save(SlotCancellation(slot_id=slot.id, cancelled_date=on, reason=reason))

    def special_booking(self, venue: Venue, title: str, start: date, end: date, **kwargs: Any):
        return self._save(
            SpecialBooking(venue_id=venue.id, title=title, start_date=start, end_date=end, **kwargs)
        )

    def absence(
        self,
        member_id: str,
        slot: ClassSlot,
        absent_date: date,
        status: AbsenceStatus = AbsenceStatus.PENDING,
        **kwargs: Any,
    ) -> AbsenceRequest:
        return self._save(
            AbsenceRequest(
                member_id=member_id,
                slot_id=slot.id,
                absent_date=absent_date,
                status=status.value,
                **kwargs,
            )
        )


@pytest.fixture
def builder(unit_db) -> ScheduleBuilder:
    return ScheduleBuilder(unit_db)


class World:
    """
    One venue, one program and three slots.

    monday: the members' regular class (capacity 10)
    wednesday: makeup target with a single seat
    thursday: unbounded makeup target
    """

    def __init__(self, builder: ScheduleBuilder) -> None:
        self.venue = builder.venue()
        self.program = builder.program(self.venue)
        self.monday = builder.slot(self.program, "monday", capacity=10)
        self.wednesday = builder.slot(self.program, "wednesday", capacity=1)
        self.thursday = builder.slot(self.program, "thursday", capacity=None)
        self.member = "01MEMBER00000000000000000A"
        self.other_member = "01MEMBER00000000000000000B"
        builder.assign(self.member, self.monday)
        builder.assign(self.other_member, self.monday)


@pytest.fixture
def world(builder) -> World:
    return World(builder)
