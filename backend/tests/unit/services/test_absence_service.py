from contextlib import contextmanager
from datetime import date, timedelta

import pytest
from sqlalchemy.orm.exc import StaleDataError

from clubdesk.core.enums import AbsenceStatus
from clubdesk.core.exceptions import (
    AbsenceDateInPastException,
    DeadlineExpiredException,
    DuplicateRequestException,
    InvalidTransitionException,
    MakeupNotYetHeldException,
    NotEnrolledException,
    NotFoundException,
    TransitionConflictException,
)
from clubdesk.services.absence_service import AbsenceService
from clubdesk.services.notification_service import AbsenceNotificationService

ADMIN = "01ADMIN000000000000000000A"


@pytest.fixture
def approved(absence_service, world):
    absence = absence_service.submit(world.member, world.monday.id, date(2027, 3, 1), "school trip")
    return absence_service.approve(absence.id, admin_id=ADMIN)


class TestSubmit:
    def test_creates_pending_request(self, absence_service, world):
        absence = absence_service.submit(world.member, world.monday.id, date(2027, 3, 8), "exams")

        assert absence.status == AbsenceStatus.PENDING.value
        assert len(absence.id) == 26
        assert absence.reason == "exams"
        assert absence.makeup_deadline is None

    def test_today_is_allowed(self, absence_service, world):
        absence = absence_service.submit(world.member, world.monday.id, date(2027, 3, 1))
        assert absence.status == AbsenceStatus.PENDING.value

    def test_unknown_slot(self, absence_service, world):
        with pytest.raises(NotFoundException):
            absence_service.submit(world.member, "01NOSUCHSLOT00000000000000", date(2027, 3, 8))

    def test_member_must_be_enrolled(self, absence_service, world):
        with pytest.raises(NotEnrolledException) as exc_info:
            absence_service.submit(world.member, world.wednesday.id, date(2027, 3, 3))
        assert exc_info.value.code == "NOT_ENROLLED"

    def test_duplicate_is_rejected(self, absence_service, world):
        absence_service.submit(world.member, world.monday.id, date(2027, 3, 8))

        with pytest.raises(DuplicateRequestException) as exc_info:
            absence_service.submit(world.member, world.monday.id, date(2027, 3, 8))
        assert exc_info.value.code == "DUPLICATE_REQUEST"

    def test_other_member_same_date_is_fine(self, absence_service, world):
        absence_service.submit(world.member, world.monday.id, date(2027, 3, 8))
        absence_service.submit(world.other_member, world.monday.id, date(2027, 3, 8))

        assert len(absence_service.list_member_absences(world.other_member)) == 1

    def test_past_date_is_rejected(self, absence_service, world):
        with pytest.raises(AbsenceDateInPastException):
            absence_service.submit(world.member, world.monday.id, date(2027, 2, 22))


class TestApproveReject:
    def test_approve_opens_makeup_window(self, approved, clock, sender):
        assert approved.status == AbsenceStatus.APPROVED.value
        assert approved.approved_by == ADMIN
        assert approved.approved_at == clock.now()
        assert approved.makeup_deadline == date(2027, 3, 8)
        assert sender.for_absence(approved.id) == ["approved"]

    def test_approve_twice_fails(self, absence_service, approved, sender):
        with pytest.raises(InvalidTransitionException) as exc_info:
            absence_service.approve(approved.id)

        assert exc_info.value.code == "INVALID_TRANSITION"
        assert exc_info.value.details["status"] == "approved"
        assert sender.for_absence(approved.id) == ["approved"]

    def test_approve_unknown(self, absence_service, world):
        with pytest.raises(NotFoundException):
            absence_service.approve("01NOSUCHABSENCE00000000000")

    def test_admin_notes_are_kept(self, absence_service, world):
        absence = absence_service.submit(world.member, world.monday.id, date(2027, 3, 8))
        absence_service.approve(absence.id, admin_id=ADMIN, admin_notes="ok this once")

        assert absence_service.get_absence(absence.id).admin_notes == "ok this once"

    def test_reject(self, absence_service, world, sender):
        absence = absence_service.submit(world.member, world.monday.id, date(2027, 3, 8))

        rejected = absence_service.reject(absence.id, admin_notes="too late", admin_id=ADMIN)

        assert rejected.status == AbsenceStatus.REJECTED.value
        assert rejected.admin_notes == "too late"
        assert rejected.makeup_deadline is None
        assert sender.for_absence(absence.id) == ["rejected"]
        with pytest.raises(InvalidTransitionException):
            absence_service.approve(absence.id)

    def test_window_is_configurable(self, absence_service, world, monkeypatch):
        from clubdesk.core.config import settings

        monkeypatch.setattr(settings, "makeup_window_days", 10)
        absence = absence_service.submit(world.member, world.monday.id, date(2027, 3, 8))

        assert absence_service.approve(absence.id).makeup_deadline == date(2027, 3, 11)


class TestDaysRemaining:
    def test_seven_days_right_after_approval(self, absence_service, approved):
        assert absence_service.days_remaining(approved) == 7
        assert absence_service.days_remaining(approved.id) == 7

    def test_counts_down_to_zero_on_deadline(self, absence_service, approved, clock):
        clock.advance(days=3)
        assert absence_service.days_remaining(approved) == 4
        clock.advance(days=4)
        assert clock.today() == approved.makeup_deadline
        assert absence_service.days_remaining(approved) == 0
        clock.advance(days=2)
        assert absence_service.days_remaining(approved) == 0

    def test_none_unless_approved(self, absence_service, world, approved, clock):
        pending = absence_service.submit(world.member, world.monday.id, date(2027, 3, 8))
        assert absence_service.days_remaining(pending) is None

        clock.advance(days=8)
        assert absence_service.expire_if_overdue(approved.id) is True
        assert absence_service.days_remaining(approved) is None


class TestDeclineMakeup:
    def test_decline(self, absence_service, approved, sender):
        declined = absence_service.decline_makeup(approved.id)

        assert declined.status == AbsenceStatus.NO_MAKEUP.value
        assert sender.for_absence(approved.id) == ["approved"]

    def test_decline_on_deadline_day_is_allowed(self, absence_service, approved, clock):
        clock.advance(days=7)
        assert absence_service.decline_makeup(approved.id).status == AbsenceStatus.NO_MAKEUP.value

    def test_decline_after_deadline_expires_request(self, absence_service, approved, clock, sender):
        clock.advance(days=8)

        with pytest.raises(DeadlineExpiredException):
            absence_service.decline_makeup(approved.id)

        assert absence_service.get_absence(approved.id).status == AbsenceStatus.EXPIRED.value
        assert sender.for_absence(approved.id) == ["approved", "expired"]

    def test_decline_pending_fails(self, absence_service, world):
        absence = absence_service.submit(world.member, world.monday.id, date(2027, 3, 8))
        with pytest.raises(InvalidTransitionException):
            absence_service.decline_makeup(absence.id)


class TestComplete:
    def test_refuses_future_makeup(self, absence_service, approved, world):
        absence_service.select_makeup(approved.id, world.wednesday.id, date(2027, 3, 3))

        with pytest.raises(MakeupNotYetHeldException):
            absence_service.complete(approved.id)
        assert absence_service.get_absence(approved.id).status == (
            AbsenceStatus.MAKEUP_SELECTED.value
        )

    def test_admin_override(self, absence_service, approved, world, clock):
        absence_service.select_makeup(approved.id, world.wednesday.id, date(2027, 3, 3))

        completed = absence_service.complete(approved.id, allow_early=True)

        assert completed.status == AbsenceStatus.COMPLETED.value
        assert completed.completed_at == clock.now()

    def test_after_makeup_date(self, absence_service, approved, world, clock):
        absence_service.select_makeup(approved.id, world.wednesday.id, date(2027, 3, 3))
        clock.advance(days=2)

        assert absence_service.complete(approved.id).status == AbsenceStatus.COMPLETED.value

    def test_requires_makeup_selected(self, absence_service, approved):
        with pytest.raises(InvalidTransitionException):
            absence_service.complete(approved.id, allow_early=True)


class TestVersionConflicts:
    def _flaky_transaction(self, service, failures):
        real_transaction = service.transaction
        calls = {"count": 0}

        @contextmanager
        def flaky():
            calls["count"] += 1
            with real_transaction() as db:
                yield db
                if calls["count"] <= failures:
                    raise StaleDataError("simulated concurrent update")

        service.transaction = flaky
        return calls

    def test_conflict_is_retried(self, absence_service, world, sender):
        absence = absence_service.submit(world.member, world.monday.id, date(2027, 3, 8))
        calls = self._flaky_transaction(absence_service, failures=1)

        approved = absence_service.approve(absence.id)

        assert calls["count"] == 2
        assert approved.status == AbsenceStatus.APPROVED.value
        assert sender.for_absence(absence.id) == ["approved"]

    def test_conflict_surfaces_after_retries(self, absence_service, world, sender):
        absence = absence_service.submit(world.member, world.monday.id, date(2027, 3, 8))
        calls = self._flaky_transaction(absence_service, failures=10)

        with pytest.raises(TransitionConflictException) as exc_info:
            absence_service.approve(absence.id)

        assert calls["count"] == 3
        assert exc_info.value.code == "CONFLICT"
        assert exc_info.value.details["attempts"] == 3
        assert absence_service.get_absence(absence.id).status == AbsenceStatus.PENDING.value
        assert sender.sent == []


class TestNotificationFailures:
    def test_failed_delivery_does_not_undo_transition(self, unit_db, clock, world):
        def broken_sender(kind, payload):
            raise RuntimeError("smtp down")

        service = AbsenceService(
            unit_db,
            clock=clock,
            notification_service=AbsenceNotificationService(sender=broken_sender),
        )
        absence = service.submit(world.member, world.monday.id, date(2027, 3, 8))

        service.approve(absence.id)

        unit_db.expire_all()
        assert service.get_absence(absence.id).status == AbsenceStatus.APPROVED.value


def test_list_member_absences_newest_first(absence_service, world):
    for offset in (0, 14, 7):
        absence_service.submit(
            world.member, world.monday.id, date(2027, 3, 1) + timedelta(days=offset)
        )

    dates = [a.absent_date for a in absence_service.list_member_absences(world.member)]

    assert dates == [date(2027, 3, 15), date(2027, 3, 8), date(2027, 3, 1)]


def test_response_carries_days_remaining(absence_service, approved, clock):
    clock.advance(days=2)

    response = absence_service.to_response(approved)

    assert response.id == approved.id
    assert response.status == "approved"
    assert response.makeup_deadline == date(2027, 3, 8)
    assert response.days_remaining == 5
    assert response.model_dump(mode="json")["absent_date"] == "2027-03-01"
