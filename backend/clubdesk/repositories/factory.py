# backend/clubdesk/repositories/factory.py
"""
Repository Factory for the clubdesk scheduling core

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .absence_repository import AbsenceRepository
    from .calendar_repository import CalendarRepository
    from .slot_repository import SlotRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Services ask the factory for defaults and accept overrides, so tests can
    inject in-memory fakes.
    """

    @staticmethod
    def create_slot_repository(db: Session) -> "SlotRepository":
        """Create repository for class slots and assignments."""
        from .slot_repository import SlotRepository

        return SlotRepository(db)

    @staticmethod
    def create_calendar_repository(db: Session) -> "CalendarRepository":
        """Create repository for holidays, cancellations and special bookings."""
        from .calendar_repository import CalendarRepository

        return CalendarRepository(db)

    @staticmethod
    def create_absence_repository(db: Session) -> "AbsenceRepository":
        """Create repository for absence requests."""
        from .absence_repository import AbsenceRepository

        return AbsenceRepository(db)
