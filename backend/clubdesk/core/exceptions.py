# backend/clubdesk/core/exceptions.py
"""
Domain-specific exceptions for the clubdesk scheduling core.

Each absence/makeup error identifies exactly one failed precondition so the
member- and admin-facing layers can map it to a message. All of them are
expected, recoverable outcomes rather than crashes.
"""

from datetime import date
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException for the API layer."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Absence workflow exceptions


class DuplicateRequestException(ConflictException):
    """An absence already exists for this member, slot and date."""

    def __init__(self, member_id: str, slot_id: str, absent_date: date):
        super().__init__(
            message="Absence already reported for this class on that date",
            code="DUPLICATE_REQUEST",
            details={
                "member_id": member_id,
                "slot_id": slot_id,
                "absent_date": absent_date.isoformat(),
            },
        )


class NotEnrolledException(BusinessRuleException):
    """Member holds no active assignment to the slot."""

    def __init__(self, member_id: str, slot_id: str):
        super().__init__(
            message="Member is not assigned to this class",
            code="NOT_ENROLLED",
            details={"member_id": member_id, "slot_id": slot_id},
        )


class InvalidTransitionException(ConflictException):
    """The request is not in a state that allows the operation."""

    def __init__(self, absence_id: str, current_status: str, operation: str):
        super().__init__(
            message=f"Cannot {operation} an absence in status '{current_status}'",
            code="INVALID_TRANSITION",
            details={
                "absence_id": absence_id,
                "status": current_status,
                "operation": operation,
            },
        )


class DeadlineExpiredException(BusinessRuleException):
    """The makeup deadline has passed."""

    def __init__(self, absence_id: str, deadline: Optional[date]):
        label = deadline.strftime("%b %d, %Y") if deadline else "unknown"
        super().__init__(
            message=f"Makeup selection deadline expired ({label})",
            code="DEADLINE_EXPIRED",
            details={
                "absence_id": absence_id,
                "makeup_deadline": deadline.isoformat() if deadline else None,
            },
        )


class CrossMonthNotAllowedException(BusinessRuleException):
    """Makeup date is outside the absence's calendar month."""

    def __init__(self, absent_date: date, makeup_date: date):
        super().__init__(
            message="Makeup class must be in the same month as the absence",
            code="CROSS_MONTH_NOT_ALLOWED",
            details={
                "absent_date": absent_date.isoformat(),
                "makeup_date": makeup_date.isoformat(),
            },
        )


class SlotNotRunningException(BusinessRuleException):
    """The target slot does not run on the requested date."""

    def __init__(self, slot_id: str, on_date: date, reason: Optional[str]):
        super().__init__(
            message=f"Selected class does not run on {on_date.isoformat()}",
            code="SLOT_NOT_RUNNING",
            details={"slot_id": slot_id, "date": on_date.isoformat(), "reason": reason},
        )


class MonthlyQuotaExceededException(BusinessRuleException):
    """Member already used the monthly makeup allowance."""

    def __init__(self, member_id: str, year: int, month: int, quota: int):
        super().__init__(
            message=f"Maximum {quota} makeup classes per month already reached",
            code="MONTHLY_QUOTA_EXCEEDED",
            details={"member_id": member_id, "year": year, "month": month, "quota": quota},
        )


class SlotFullException(ConflictException):
    """No seats remain on the target slot."""

    def __init__(self, slot_id: str, capacity: Optional[int]):
        super().__init__(
            message="Selected class is full",
            code="SLOT_FULL",
            details={"slot_id": slot_id, "capacity": capacity},
        )


class TransitionConflictException(ConflictException):
    """Concurrent writers kept winning; retries exhausted."""

    def __init__(self, absence_id: str, attempts: int):
        super().__init__(
            message="The absence was modified concurrently, please retry",
            code="CONFLICT",
            details={"absence_id": absence_id, "attempts": attempts},
        )


class AbsenceDateInPastException(ValidationException):
    def __init__(self, absent_date: date, today: date):
        super().__init__(
            message="Cannot report absence for a past date",
            code="ABSENCE_DATE_IN_PAST",
            details={"absent_date": absent_date.isoformat(), "today": today.isoformat()},
        )


class ProgramMismatchException(BusinessRuleException):
    def __init__(self, expected_program_id: str, actual_program_id: str):
        super().__init__(
            message="Makeup class must be in the same program",
            code="PROGRAM_MISMATCH",
            details={
                "expected_program_id": expected_program_id,
                "actual_program_id": actual_program_id,
            },
        )


class MakeupDateNotAfterAbsenceException(BusinessRuleException):
    def __init__(self, absent_date: date, makeup_date: date):
        super().__init__(
            message="Makeup class date must be after the absent date",
            code="MAKEUP_DATE_NOT_AFTER_ABSENCE",
            details={
                "absent_date": absent_date.isoformat(),
                "makeup_date": makeup_date.isoformat(),
            },
        )


class MakeupDateOutsideWindowException(BusinessRuleException):
    def __init__(self, makeup_date: date, deadline: date):
        super().__init__(
            message="Makeup date must be within the makeup window",
            code="MAKEUP_DATE_OUTSIDE_WINDOW",
            details={"makeup_date": makeup_date.isoformat(), "makeup_deadline": deadline.isoformat()},
        )


class AlreadyAssignedException(BusinessRuleException):
    def __init__(self, member_id: str, slot_id: str):
        super().__init__(
            message="Member is already assigned to this class slot",
            code="ALREADY_ASSIGNED",
            details={"member_id": member_id, "slot_id": slot_id},
        )


class MakeupNotYetHeldException(BusinessRuleException):
    def __init__(self, absence_id: str, makeup_date: Optional[date]):
        super().__init__(
            message="Makeup class has not taken place yet",
            code="MAKEUP_NOT_YET_HELD",
            details={
                "absence_id": absence_id,
                "makeup_date": makeup_date.isoformat() if makeup_date else None,
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
