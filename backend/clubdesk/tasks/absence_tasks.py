"""Celery tasks for the absence workflow."""

from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from clubdesk.core.config import settings
from clubdesk.core.makeup_lock import acquire_redis_lock, release_redis_lock
from clubdesk.database import SessionLocal
from clubdesk.monitoring.prometheus_metrics import prometheus_metrics
from clubdesk.services.expiry_sweep_service import ExpirySweepService
from clubdesk.tasks.beat_schedule import EXPIRE_MAKEUP_DEADLINES_TASK
from clubdesk.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

EXPIRY_SWEEP_LOCK_KEY = "absences:expiry-sweep:run"


@celery_app.task(name=EXPIRE_MAKEUP_DEADLINES_TASK)
def expire_makeup_deadlines_task() -> Dict[str, Any]:
    """
    Expire approved absences whose makeup deadline has passed.

    With distributed locks enabled only one worker sweeps at a time; a run
    that finds the lock taken returns immediately. The sweep is idempotent,
    so an overlapping run without the lock only repeats no-op checks.

    Returns:
        Summary dict with expired and failed ids.
    """
    use_lock = settings.distributed_locks_enabled
    if use_lock and not acquire_redis_lock(
        EXPIRY_SWEEP_LOCK_KEY, settings.expiry_sweep_lock_ttl_seconds
    ):
        logger.info("Expiry sweep already running elsewhere; skipping")
        return {"skipped": True, "expired_ids": [], "failed_ids": []}

    db: Session = SessionLocal()
    try:
        service = ExpirySweepService(db)
        result = service.sweep()
        logger.info(
            "Expired overdue absences",
            extra={"expired": result.expired_count, "failed": len(result.failed_ids)},
        )
        return result.model_dump(mode="json")
    finally:
        db.close()
        if use_lock:
            release_redis_lock(EXPIRY_SWEEP_LOCK_KEY)


@celery_app.task(name="absences.deliver_notification", ignore_result=True)
def deliver_absence_notification(kind: str, payload: Dict[str, Any]) -> None:
    """
    Hand-off hook for an external notification channel.

    Nothing is delivered here: the task only logs and counts the dispatch.
    An email or push integration consumes this task (or replaces its body);
    the scheduling core ships no channel of its own.
    """
    prometheus_metrics.record_notification(kind, "dispatched")
    logger.info(
        "Dispatching %s notification for absence %s",
        kind,
        payload.get("id"),
        extra={"kind": kind, "absence_id": payload.get("id"), "member_id": payload.get("member_id")},
    )
