import logging
from typing import Optional

from core.entities.notification import Notification, Recipient, NOTIFICATION_TYPES
from core.repositories.notification_repository import NotificationRepository

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Fire-and-forget inbox writer.

    Callers invoke it only after their own unit of work has committed, and a
    failure here is logged and swallowed so it can never undo financial state.
    """

    def __init__(self, repo: NotificationRepository):
        self.repo = repo

    def notify(
        self,
        recipient: Recipient,
        title: str,
        message: str,
        type: str = "info",
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[int] = None,
    ) -> Optional[Notification]:
        if type not in NOTIFICATION_TYPES:
            logger.warning("Unknown notification type %r, sending as info", type)
            type = "info"
        try:
            return self.repo.add(
                recipient,
                title=title,
                message=message,
                type=type,
                related_entity_type=related_entity_type,
                related_entity_id=related_entity_id,
            )
        except Exception:
            logger.exception(
                "Notification dispatch failed (recipient=%r, related=%s:%s)",
                recipient, related_entity_type, related_entity_id,
            )
            return None
