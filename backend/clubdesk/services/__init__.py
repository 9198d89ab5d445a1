"""
Service layer for the clubdesk scheduling core.

Services own transaction boundaries and business rules; repositories only
read and write rows.
"""

from .absence_service import AbsenceService
from .availability_service import AvailabilityService
from .base import BaseService
from .capacity_service import CapacityService
from .expiry_sweep_service import ExpirySweepService
from .notification_service import AbsenceNotificationService

__all__ = [
    "AbsenceNotificationService",
    "AbsenceService",
    "AvailabilityService",
    "BaseService",
    "CapacityService",
    "ExpirySweepService",
]
