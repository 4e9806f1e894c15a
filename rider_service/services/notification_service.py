from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from rider_service.core.types import StatusNotification

logger = logging.getLogger(__name__)


class NotificationDispatcher(ABC):
    """
    Outbound status-change hook. Delivery (e-mail, push) lives elsewhere;
    implementations may raise, the negotiation service logs and moves on.
    """

    @abstractmethod
    def dispatch(self, notification: StatusNotification) -> None:
        ...


class LoggingNotificationDispatcher(NotificationDispatcher):
    def dispatch(self, notification: StatusNotification) -> None:
        logger.info(
            "status notification",
            extra={
                "acknowledgment_id": str(notification.acknowledgment_id),
                "new_status": notification.new_status.value,
                "actor_role": notification.actor_role.value,
                "action": notification.action,
            },
        )
