# backend/clubdesk/tasks/beat_schedule.py
"""
Celery Beat schedule for the clubdesk scheduling core.

The expiry sweep runs once a day shortly after midnight in the club's
timezone; hour and minute come from settings so operators can move it.
"""

from typing import Any, Dict

from celery.schedules import crontab

from clubdesk.core.config import settings

EXPIRE_MAKEUP_DEADLINES_TASK = "absences.expire_makeup_deadlines"


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    return {
        "expire-makeup-deadlines": {
            "task": EXPIRE_MAKEUP_DEADLINES_TASK,
            "schedule": crontab(
                hour=settings.expiry_sweep_hour, minute=settings.expiry_sweep_minute
            ),
            "options": {
                "queue": settings.celery_queue,
                # Stale runs are pointless once the next one is due
                "expires": 60 * 60 * 23,
            },
        },
    }
