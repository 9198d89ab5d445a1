"""Repository layer for data access."""

from .absence_repository import AbsenceRepository
from .base_repository import BaseRepository
from .calendar_repository import CalendarRepository
from .factory import RepositoryFactory
from .slot_repository import SlotRepository

__all__ = [
    "AbsenceRepository",
    "BaseRepository",
    "CalendarRepository",
    "RepositoryFactory",
    "SlotRepository",
]
