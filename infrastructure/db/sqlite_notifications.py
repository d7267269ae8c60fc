import sqlite3
from datetime import datetime, timezone
from typing import Optional, List, Tuple, Any

from core.entities.notification import Notification, Recipient, Direct, Broadcast, AUDIENCE_ADMINS, AUDIENCE_USERS
from core.repositories.notification_repository import NotificationRepository
from infrastructure.db.sqlite import DeskConnection

# direct to me, broadcast to users, or broadcast to admins when I am one;
# minus anything I dismissed
_VISIBLE_SQL = """
SELECT n.*, r.read_at AS read_at
FROM notifications n
LEFT JOIN notification_receipts r ON r.notification_id = n.id AND r.user_id = ?
WHERE (n.user_id = ? OR n.audience = ? OR (? = 1 AND n.audience = ?))
  AND COALESCE(r.dismissed, 0) = 0
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteNotificationRepository(NotificationRepository):
    def __init__(self, conn: DeskConnection):
        self.conn = conn

    def _row_to_notification(self, row: sqlite3.Row) -> Notification:
        if row["user_id"] is not None:
            recipient: Recipient = Direct(row["user_id"])
        else:
            recipient = Broadcast(row["audience"])
        return Notification(
            id=row["id"],
            recipient=recipient,
            title=row["title"],
            message=row["message"],
            type=row["type"],
            created_at=row["created_at"],
            is_read=row["read_at"] is not None,
            related_entity_type=row["related_entity_type"],
            related_entity_id=row["related_entity_id"],
        )

    def _visible_params(self, user_id: int, is_admin: bool) -> Tuple[Any, ...]:
        return (int(user_id), int(user_id), AUDIENCE_USERS, 1 if is_admin else 0, AUDIENCE_ADMINS)

    def add(self, recipient: Recipient, title: str, message: str, type: str,
            related_entity_type: Optional[str] = None,
            related_entity_id: Optional[int] = None) -> Notification:
        if isinstance(recipient, Direct):
            user_id, audience = recipient.user_id, None
        else:
            user_id, audience = None, recipient.audience
        created_at = _now()
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO notifications (user_id, audience, title, message, type, related_entity_type, "
            "related_entity_id, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (user_id, audience, title, message, type, related_entity_type, related_entity_id, created_at),
        )
        return Notification(
            id=cur.lastrowid,
            recipient=recipient,
            title=title,
            message=message,
            type=type,
            created_at=created_at,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
        )

    def get_visible(self, notification_id: int, user_id: int, is_admin: bool) -> Optional[Notification]:
        cur = self.conn.cursor()
        cur.execute(
            _VISIBLE_SQL + " AND n.id = ?",
            (*self._visible_params(user_id, is_admin), int(notification_id)),
        )
        row = cur.fetchone()
        return self._row_to_notification(row) if row else None

    def list_visible(self, user_id: int, is_admin: bool, unread_only: bool = False) -> List[Notification]:
        sql = _VISIBLE_SQL
        if unread_only:
            sql += " AND r.read_at IS NULL"
        sql += " ORDER BY n.id DESC"
        cur = self.conn.cursor()
        cur.execute(sql, self._visible_params(user_id, is_admin))
        return [self._row_to_notification(r) for r in cur.fetchall()]

    def mark_read(self, notification_id: int, user_id: int) -> None:
        self.conn.execute(
            """
            INSERT INTO notification_receipts (notification_id, user_id, read_at, dismissed)
            VALUES (?, ?, ?, 0)
            ON CONFLICT(notification_id, user_id) DO UPDATE SET read_at = COALESCE(read_at, excluded.read_at)
            """,
            (int(notification_id), int(user_id), _now()),
        )

    def mark_all_read(self, user_id: int, is_admin: bool) -> int:
        with self.conn.atomic():
            unread = self.list_visible(user_id, is_admin, unread_only=True)
            for notification in unread:
                self.mark_read(notification.id, user_id)
        return len(unread)

    def dismiss(self, notification_id: int, user_id: int) -> None:
        cur = self.conn.cursor()
        cur.execute(
            "DELETE FROM notifications WHERE id = ? AND user_id = ?",
            (int(notification_id), int(user_id)),
        )
        if cur.rowcount:
            return
        self.conn.execute(
            """
            INSERT INTO notification_receipts (notification_id, user_id, read_at, dismissed)
            VALUES (?, ?, NULL, 1)
            ON CONFLICT(notification_id, user_id) DO UPDATE SET dismissed = 1
            """,
            (int(notification_id), int(user_id)),
        )
