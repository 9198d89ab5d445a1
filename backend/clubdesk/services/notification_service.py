# backend/clubdesk/services/notification_service.py
"""
Absence notifications.

Members are told when their absence is approved or rejected, when a makeup is
booked, and when the makeup window lapses. Delivery is handed to a sender;
the default one enqueues a Celery task so the workflow never waits on email
or push providers.

Notifications are fire-and-forget: a failing sender is logged and counted but
never propagates into the transition that triggered it.
"""

import logging
from typing import Any, Callable, Dict, Optional

from ..core.enums import AbsenceNotificationKind
from ..models.absence import AbsenceRequest
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

NotificationSender = Callable[[str, Dict[str, Any]], None]


def enqueue_notification(kind: str, payload: Dict[str, Any]) -> None:
    """Default sender: hand the payload to the delivery task."""
    from ..tasks.absence_tasks import deliver_absence_notification

    deliver_absence_notification.delay(kind, payload)


class AbsenceNotificationService:
    def __init__(self, sender: Optional[NotificationSender] = None):
        self.sender: NotificationSender = sender or enqueue_notification
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def build_payload(kind: AbsenceNotificationKind, absence: AbsenceRequest) -> Dict[str, Any]:
        payload = absence.to_dict()
        payload["kind"] = kind.value
        return payload

    def notify(self, kind: AbsenceNotificationKind, absence: AbsenceRequest) -> bool:
        """
        Send one notification.

        Returns:
            True if the sender accepted it, False if it failed (already logged)
        """
        try:
            payload = self.build_payload(kind, absence)
            self.sender(kind.value, payload)
        except Exception as exc:
            prometheus_metrics.record_notification(kind.value, "failed")
            self.logger.error(
                "Failed to send %s notification for absence %s: %s",
                kind.value,
                absence.id,
                str(exc),
                extra={"absence_id": absence.id, "kind": kind.value},
            )
            return False

        prometheus_metrics.record_notification(kind.value, "sent")
        self.logger.info(
            "Sent %s notification for absence %s",
            kind.value,
            absence.id,
            extra={"absence_id": absence.id, "kind": kind.value},
        )
        return True
