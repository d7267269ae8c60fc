from dataclasses import dataclass
from typing import Optional, Union

NOTIFICATION_TYPES = ("info", "success", "warning", "error")

AUDIENCE_USERS = "users"
AUDIENCE_ADMINS = "admins"


@dataclass(frozen=True)
class Direct:
    user_id: int


@dataclass(frozen=True)
class Broadcast:
    audience: str = AUDIENCE_USERS  # users | admins


Recipient = Union[Direct, Broadcast]


@dataclass
class Notification:
    id: Optional[int]
    recipient: Recipient
    title: str
    message: str
    type: str
    created_at: str
    is_read: bool = False   # from the reader's point of view
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[int] = None

    @property
    def is_broadcast(self) -> bool:
        return isinstance(self.recipient, Broadcast)
