import logging
from typing import List, Optional

from core.entities.notification import Notification, Direct, Broadcast, NOTIFICATION_TYPES
from core.entities.user import User
from core.errors import NotFoundError, ValidationError, AuthorizationError
from core.repositories.notification_repository import NotificationRepository
from core.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


def list_notifications(repo: NotificationRepository, user: User, unread_only: bool = False) -> List[Notification]:
    return repo.list_visible(user.id, user.is_admin, unread_only=unread_only)


def mark_read(repo: NotificationRepository, user: User, notification_id: int) -> Notification:
    if repo.get_visible(notification_id, user.id, user.is_admin) is None:
        raise NotFoundError("Notification not found")
    repo.mark_read(notification_id, user.id)
    notification = repo.get_visible(notification_id, user.id, user.is_admin)
    assert notification is not None
    return notification


def mark_all_read(repo: NotificationRepository, user: User) -> int:
    return repo.mark_all_read(user.id, user.is_admin)


def delete_notification(repo: NotificationRepository, user: User, notification_id: int) -> None:
    # broadcasts are only hidden for this reader
    if repo.get_visible(notification_id, user.id, user.is_admin) is None:
        raise NotFoundError("Notification not found")
    repo.dismiss(notification_id, user.id)


def send_admin_notification(
    repo: NotificationRepository,
    users: UserRepository,
    admin: User,
    title: str,
    message: str,
    type: str = "info",
    user_id: Optional[int] = None,
) -> Notification:
    if not admin.is_admin:
        logger.warning("security: user %s tried to send a notification", admin.id)
        raise AuthorizationError("Administrator access required")
    title = (title or "").strip()
    message = (message or "").strip()
    if not title:
        raise ValidationError("title is required", field="title")
    if not message:
        raise ValidationError("message is required", field="message")
    if type not in NOTIFICATION_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(NOTIFICATION_TYPES)}", field="type")
    if user_id is not None:
        if users.get_by_id(user_id) is None:
            raise NotFoundError("User not found")
        recipient = Direct(user_id)
    else:
        recipient = Broadcast()
    notification = repo.add(recipient, title=title, message=message, type=type,
                            related_entity_type="admin", related_entity_id=admin.id)
    logger.info("Admin %s sent notification %s to %r", admin.id, notification.id, recipient)
    return notification
