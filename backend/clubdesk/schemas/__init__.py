"""Pydantic schemas for service responses."""

from .absence import AbsenceRequestResponse, ExpirySweepResult, MakeupOption
from .schedule import OccurrenceResponse, SlotCapacity

__all__ = [
    "AbsenceRequestResponse",
    "ExpirySweepResult",
    "MakeupOption",
    "OccurrenceResponse",
    "SlotCapacity",
]
