from abc import ABC, abstractmethod
from typing import Optional, List
from core.entities.notification import Notification, Recipient


class NotificationRepository(ABC):
    @abstractmethod
    def add(self, recipient: Recipient, title: str, message: str, type: str,
            related_entity_type: Optional[str] = None,
            related_entity_id: Optional[int] = None) -> Notification:...

    @abstractmethod
    def get_visible(self, notification_id: int, user_id: int, is_admin: bool) -> Optional[Notification]:...

    @abstractmethod
    def list_visible(self, user_id: int, is_admin: bool, unread_only: bool = False) -> List[Notification]:...

    @abstractmethod
    def mark_read(self, notification_id: int, user_id: int) -> None:...

    @abstractmethod
    def mark_all_read(self, user_id: int, is_admin: bool) -> int:...

    @abstractmethod
    def dismiss(self, notification_id: int, user_id: int) -> None:...
