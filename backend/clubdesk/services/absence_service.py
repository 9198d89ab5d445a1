# backend/clubdesk/services/absence_service.py
"""
Absence Workflow for the clubdesk scheduling core.

State machine:

    pending -> approved | rejected
    approved -> makeup_selected | expired | no_makeup
    makeup_selected -> completed

Every transition re-reads the request inside its own transaction and writes
through the ``version`` column, so two writers racing on the same request
cannot both win. A lost race is retried a bounded number of times before it
surfaces as ``TransitionConflictException``.

Makeup selection additionally holds a per-slot lock around its
check-and-reserve so the last seat of a slot is handed out once.
"""

from dataclasses import dataclass
from datetime import date, timedelta
import logging
from typing import Callable, List, Optional, Union, cast

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import AbsenceNotificationKind, AbsenceStatus
from ..core.exceptions import (
    AbsenceDateInPastException,
    AlreadyAssignedException,
    ConflictException,
    CrossMonthNotAllowedException,
    DeadlineExpiredException,
    DomainException,
    DuplicateRequestException,
    InvalidTransitionException,
    MakeupDateNotAfterAbsenceException,
    MakeupDateOutsideWindowException,
    MakeupNotYetHeldException,
    MonthlyQuotaExceededException,
    NotEnrolledException,
    NotFoundException,
    ProgramMismatchException,
    SlotFullException,
    SlotNotRunningException,
    TransitionConflictException,
)
from ..core.makeup_lock import makeup_slot_lock
from ..models.absence import AbsenceRequest
from ..models.schedule import ClassSlot
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.absence_repository import AbsenceRepository, month_bounds
from ..repositories.factory import RepositoryFactory
from ..repositories.slot_repository import SlotRepository
from ..schemas.absence import AbsenceRequestResponse, MakeupOption
from .availability_service import AvailabilityService
from .base import BaseService
from .capacity_service import CapacityService
from .notification_service import AbsenceNotificationService

logger = logging.getLogger(__name__)


@dataclass
class TransitionOutcome:
    """
    Result of one transition step.

    ``error`` is raised after the transaction commits; it lets a step persist
    a side transition (expiry) and still fail the caller's operation.
    """

    notify: Optional[AbsenceNotificationKind] = None
    error: Optional[DomainException] = None
    changed: bool = True


TransitionStep = Callable[[AbsenceRequest], TransitionOutcome]


class AbsenceService(BaseService):
    """
    Member- and admin-facing operations on absence requests.

    Collaborators default to the database-backed implementations and can be
    replaced for tests.
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        notification_service: Optional[AbsenceNotificationService] = None,
        availability_service: Optional[AvailabilityService] = None,
        capacity_service: Optional[CapacityService] = None,
        absence_repository: Optional[AbsenceRepository] = None,
        slot_repository: Optional[SlotRepository] = None,
    ):
        super().__init__(db, clock)
        self.absence_repository = (
            absence_repository or RepositoryFactory.create_absence_repository(db)
        )
        self.slot_repository = slot_repository or RepositoryFactory.create_slot_repository(db)
        self.availability_service = availability_service or AvailabilityService(
            db, clock=self.clock, slot_repository=self.slot_repository
        )
        self.capacity_service = capacity_service or CapacityService(
            db,
            clock=self.clock,
            slot_repository=self.slot_repository,
            absence_repository=self.absence_repository,
        )
        self.notification_service = notification_service or AbsenceNotificationService()

    # Transition plumbing

    def _load_for_update(self, absence_id: str) -> AbsenceRequest:
        absence = self.absence_repository.get_for_update(absence_id)
        if absence is None:
            raise NotFoundException(
                f"Absence request {absence_id} not found", code="ABSENCE_NOT_FOUND"
            )
        return absence

    def _run_transition(
        self, absence_id: str, operation: str, step: TransitionStep
    ) -> AbsenceRequest:
        """
        Apply ``step`` to a freshly read request in its own transaction.

        Retries on version conflicts; notifications go out only after commit.
        """
        max_attempts = max(1, settings.absence_transition_max_retries)
        for attempt in range(1, max_attempts + 1):
            try:
                with self.transaction():
                    absence = self._load_for_update(absence_id)
                    outcome = step(absence)
                break
            except StaleDataError:
                prometheus_metrics.record_absence_transition(operation, "conflict")
                self.logger.warning(
                    "Version conflict on absence %s during %s (attempt %s/%s)",
                    absence_id,
                    operation,
                    attempt,
                    max_attempts,
                    extra={"absence_id": absence_id, "operation": operation},
                )
        else:
            raise TransitionConflictException(absence_id, max_attempts)

        if outcome.changed:
            prometheus_metrics.record_absence_transition(cast(str, absence.status))
            self.log_operation(
                operation, absence_id=absence_id, status=cast(str, absence.status)
            )
        if outcome.notify is not None:
            self.notification_service.notify(outcome.notify, absence)
        if outcome.error is not None:
            raise outcome.error
        return absence

    def _expire_outcome(self, absence: AbsenceRequest) -> TransitionOutcome:
        absence.status = AbsenceStatus.EXPIRED.value
        return TransitionOutcome(
            notify=AbsenceNotificationKind.EXPIRED,
            error=DeadlineExpiredException(
                cast(str, absence.id), cast(Optional[date], absence.makeup_deadline)
            ),
        )

    @staticmethod
    def _require_status(absence: AbsenceRequest, expected: AbsenceStatus, operation: str) -> None:
        if absence.status_enum != expected:
            raise InvalidTransitionException(
                cast(str, absence.id), cast(str, absence.status), operation
            )

    # Operations

    @BaseService.measure_operation("submit")
    def submit(
        self,
        member_id: str,
        slot_id: str,
        absent_date: date,
        reason: Optional[str] = None,
    ) -> AbsenceRequest:
        """
        Report an upcoming absence from an assigned slot.

        Raises:
            NotFoundException: Unknown slot
            NotEnrolledException: Member is not actively assigned to the slot
            DuplicateRequestException: Already reported for that date
            AbsenceDateInPastException: Date is before today
        """
        slot = self.slot_repository.get_slot(slot_id)
        if slot is None:
            raise NotFoundException(f"Class slot {slot_id} not found", code="SLOT_NOT_FOUND")
        if not self.slot_repository.has_active_assignment(member_id, slot_id):
            raise NotEnrolledException(member_id, slot_id)
        if self.absence_repository.find_for_occurrence(member_id, slot_id, absent_date):
            raise DuplicateRequestException(member_id, slot_id, absent_date)
        today = self.clock.today()
        if absent_date < today and not settings.allow_past_absence_dates:
            raise AbsenceDateInPastException(absent_date, today)

        try:
            with self.transaction():
                absence = self.absence_repository.create(
                    member_id=member_id,
                    slot_id=slot_id,
                    absent_date=absent_date,
                    reason=reason,
                    status=AbsenceStatus.PENDING.value,
                )
        except IntegrityError as exc:
            # Lost a race against an identical submission
            raise DuplicateRequestException(member_id, slot_id, absent_date) from exc

        prometheus_metrics.record_absence_transition(AbsenceStatus.PENDING.value)
        self.log_operation("submit", absence_id=absence.id, member_id=member_id)
        return absence

    @BaseService.measure_operation("approve")
    def approve(
        self,
        absence_id: str,
        admin_id: Optional[str] = None,
        admin_notes: Optional[str] = None,
    ) -> AbsenceRequest:
        """Approve a pending request and open its makeup window."""

        def step(absence: AbsenceRequest) -> TransitionOutcome:
            self._require_status(absence, AbsenceStatus.PENDING, "approve")
            absence.status = AbsenceStatus.APPROVED.value
            absence.approved_by = admin_id
            absence.approved_at = self.clock.now()
            # Deadline counts from the approval date in the club timezone
            absence.makeup_deadline = self.clock.today() + timedelta(
                days=settings.makeup_window_days
            )
            if admin_notes is not None:
                absence.admin_notes = admin_notes
            return TransitionOutcome(notify=AbsenceNotificationKind.APPROVED)

        return self._run_transition(absence_id, "approve", step)

    @BaseService.measure_operation("reject")
    def reject(
        self,
        absence_id: str,
        admin_notes: Optional[str] = None,
        admin_id: Optional[str] = None,
    ) -> AbsenceRequest:
        def step(absence: AbsenceRequest) -> TransitionOutcome:
            self._require_status(absence, AbsenceStatus.PENDING, "reject")
            absence.status = AbsenceStatus.REJECTED.value
            absence.approved_by = admin_id
            absence.approved_at = self.clock.now()
            absence.admin_notes = admin_notes
            return TransitionOutcome(notify=AbsenceNotificationKind.REJECTED)

        return self._run_transition(absence_id, "reject", step)

    @BaseService.measure_operation("select_makeup")
    def select_makeup(
        self, absence_id: str, makeup_slot_id: str, makeup_date: date
    ) -> AbsenceRequest:
        """
        Book a makeup occurrence for an approved absence.

        Checks run in order and the first failure wins: status, deadline
        (an overdue request is expired as a side effect), same month, same
        program, date after the absence, date within the window, slot runs,
        member not already in the slot, monthly quota, free seat.

        The target slot row is locked (SELECT ... FOR UPDATE) before the seat
        check, so concurrent reservations on one slot run one at a time in the
        database. The count is repeated after flushing so an
        overcommit rolls back.
        """

        def step(absence: AbsenceRequest) -> TransitionOutcome:
            self._require_status(absence, AbsenceStatus.APPROVED, "select a makeup for")
            today = self.clock.today()
            if absence.is_deadline_expired(today):
                return self._expire_outcome(absence)

            absent_date = cast(date, absence.absent_date)
            if (makeup_date.year, makeup_date.month) != (absent_date.year, absent_date.month):
                raise CrossMonthNotAllowedException(absent_date, makeup_date)

            # Row lock on the target slot serializes reservations across processes
            target = self._get_slot(makeup_slot_id, for_update=True)
            original = cast(ClassSlot, absence.slot)
            if target.program_id != original.program_id:
                raise ProgramMismatchException(
                    cast(str, original.program_id), cast(str, target.program_id)
                )
            if makeup_date <= absent_date:
                raise MakeupDateNotAfterAbsenceException(absent_date, makeup_date)
            deadline = cast(Optional[date], absence.makeup_deadline)
            if (
                settings.enforce_makeup_within_window
                and deadline is not None
                and makeup_date > deadline
            ):
                raise MakeupDateOutsideWindowException(makeup_date, deadline)

            occurrence = self.availability_service.occurs(target, makeup_date)
            if not occurrence.runs:
                raise SlotNotRunningException(makeup_slot_id, makeup_date, occurrence.reason)

            member_id = cast(str, absence.member_id)
            if self.slot_repository.has_active_assignment(member_id, makeup_slot_id):
                raise AlreadyAssignedException(member_id, makeup_slot_id)

            used = self.absence_repository.count_monthly_makeups(
                member_id, makeup_date.year, makeup_date.month, exclude_id=cast(str, absence.id)
            )
            if used >= settings.monthly_makeup_quota:
                raise MonthlyQuotaExceededException(
                    member_id, makeup_date.year, makeup_date.month, settings.monthly_makeup_quota
                )

            remaining = self.capacity_service.remaining(target)
            if remaining is not None and remaining <= 0:
                raise SlotFullException(makeup_slot_id, cast(Optional[int], target.capacity))

            absence.status = AbsenceStatus.MAKEUP_SELECTED.value
            absence.makeup_slot_id = makeup_slot_id
            absence.makeup_date = makeup_date
            self.absence_repository.flush()

            after = self.capacity_service.unclamped_remaining(target)
            if after is not None and after < 0:
                self.logger.warning(
                    "Makeup reservation overcommitted slot %s; rolling back",
                    makeup_slot_id,
                    extra={"absence_id": absence.id, "slot_id": makeup_slot_id},
                )
                raise SlotFullException(makeup_slot_id, cast(Optional[int], target.capacity))
            return TransitionOutcome(notify=AbsenceNotificationKind.MAKEUP_SELECTED)

        with makeup_slot_lock(makeup_slot_id) as acquired:
            if not acquired:
                prometheus_metrics.record_absence_transition(
                    AbsenceStatus.MAKEUP_SELECTED.value, "lock_timeout"
                )
                raise ConflictException(
                    "Makeup class is being booked by someone else, please retry",
                    code="CONFLICT",
                    details={"absence_id": absence_id, "slot_id": makeup_slot_id},
                )
            return self._run_transition(absence_id, "select_makeup", step)

    @BaseService.measure_operation("decline_makeup")
    def decline_makeup(self, absence_id: str) -> AbsenceRequest:
        """Member opts out of a makeup; only possible until the deadline."""

        def step(absence: AbsenceRequest) -> TransitionOutcome:
            self._require_status(absence, AbsenceStatus.APPROVED, "decline a makeup for")
            if absence.is_deadline_expired(self.clock.today()):
                return self._expire_outcome(absence)
            absence.status = AbsenceStatus.NO_MAKEUP.value
            return TransitionOutcome()

        return self._run_transition(absence_id, "decline_makeup", step)

    @BaseService.measure_operation("complete")
    def complete(self, absence_id: str, allow_early: bool = False) -> AbsenceRequest:
        """
        Confirm a makeup took place.

        A makeup dated in the future is refused unless ``allow_early`` is set
        (administrative override).
        """

        def step(absence: AbsenceRequest) -> TransitionOutcome:
            self._require_status(absence, AbsenceStatus.MAKEUP_SELECTED, "complete")
            makeup_date = cast(Optional[date], absence.makeup_date)
            if not allow_early and makeup_date is not None and makeup_date > self.clock.today():
                raise MakeupNotYetHeldException(cast(str, absence.id), makeup_date)
            absence.status = AbsenceStatus.COMPLETED.value
            absence.completed_at = self.clock.now()
            return TransitionOutcome()

        return self._run_transition(absence_id, "complete", step)

    def expire_if_overdue(self, absence_id: str) -> bool:
        """
        Expire one approved request whose deadline has passed.

        Returns False, without writing, when the request has moved on or is
        not overdue yet; that makes repeated sweeps harmless.
        """

        expired = False

        def step(absence: AbsenceRequest) -> TransitionOutcome:
            nonlocal expired
            expired = False
            if absence.status_enum != AbsenceStatus.APPROVED or not absence.is_deadline_expired(
                self.clock.today()
            ):
                return TransitionOutcome(changed=False)
            absence.status = AbsenceStatus.EXPIRED.value
            expired = True
            return TransitionOutcome(notify=AbsenceNotificationKind.EXPIRED)

        self._run_transition(absence_id, "expire", step)
        return expired

    def days_remaining(self, absence: Union[AbsenceRequest, str]) -> Optional[int]:
        """Days left to pick a makeup; None unless the request is approved."""
        if isinstance(absence, str):
            absence = self.get_absence(absence)
        return absence.days_left_for_makeup(self.clock.today())

    def to_response(self, absence: AbsenceRequest) -> AbsenceRequestResponse:
        response = AbsenceRequestResponse.model_validate(absence)
        response.days_remaining = self.days_remaining(absence)
        return response

    # Queries

    def _get_slot(self, slot_id: str, for_update: bool = False) -> ClassSlot:
        if for_update:
            slot = self.slot_repository.get_for_update(slot_id)
        else:
            slot = self.slot_repository.get_slot(slot_id)
        if slot is None:
            raise NotFoundException(f"Class slot {slot_id} not found", code="SLOT_NOT_FOUND")
        return slot

    def get_absence(self, absence_id: str) -> AbsenceRequest:
        absence = self.absence_repository.get_by_id(absence_id)
        if absence is None:
            raise NotFoundException(
                f"Absence request {absence_id} not found", code="ABSENCE_NOT_FOUND"
            )
        return absence

    def list_member_absences(self, member_id: str) -> List[AbsenceRequest]:
        return self.absence_repository.list_for_member(member_id)

    @BaseService.measure_operation("list_makeup_options")
    def list_makeup_options(self, absence_id: str) -> List[MakeupOption]:
        """
        Bookable makeup occurrences for an approved request.

        Same-program slots other than the original and the member's own,
        on running dates after the absence, inside the makeup window and the
        absence month, with a free seat. Empty once the quota is used up.
        """
        absence = self.get_absence(absence_id)
        today = self.clock.today()
        if absence.status_enum != AbsenceStatus.APPROVED or absence.is_deadline_expired(today):
            return []

        member_id = cast(str, absence.member_id)
        absent_date = cast(date, absence.absent_date)
        used = self.absence_repository.count_monthly_makeups(
            member_id, absent_date.year, absent_date.month, exclude_id=cast(str, absence.id)
        )
        if used >= settings.monthly_makeup_quota:
            return []

        _, month_end = month_bounds(absent_date.year, absent_date.month)
        first = max(today, absent_date + timedelta(days=1))
        last = month_end
        deadline = cast(Optional[date], absence.makeup_deadline)
        if settings.enforce_makeup_within_window and deadline is not None:
            last = min(last, deadline)
        if last < first:
            return []

        original = cast(ClassSlot, absence.slot)
        excluded = {cast(str, absence.slot_id)}
        excluded.update(self.slot_repository.active_slot_ids_for_member(member_id))
        candidates = self.slot_repository.list_program_slots(
            cast(str, original.program_id), exclude_slot_ids=sorted(excluded)
        )

        options: List[MakeupOption] = []
        for slot in candidates:
            remaining = self.capacity_service.remaining(slot)
            if remaining is not None and remaining <= 0:
                continue
            for on_date in self.availability_service.running_dates(slot, first, last):
                options.append(
                    MakeupOption(
                        slot_id=cast(str, slot.id),
                        label=slot.label,
                        makeup_date=on_date,
                        start_time=slot.start_time,
                        end_time=slot.end_time,
                        coach_id=slot.coach_id,
                        remaining_seats=remaining,
                    )
                )
        options.sort(key=lambda option: (option.makeup_date, option.start_time))
        return options
