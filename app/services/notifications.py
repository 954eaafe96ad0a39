import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

log = logging.getLogger("notifications")


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    user_id: str
    title: str
    message: str
    severity: Severity = Severity.INFO
    order_id: Optional[str] = None
    read: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationDispatcher:
    """
    In-memory, per-user alert queue. The state machine calls ``notify``
    synchronously on every status change; nothing here is durable.
    """

    def __init__(self):
        self._by_user: Dict[str, List[Notification]] = defaultdict(list)

    def notify(self, target_user_id: str, title: str, message: str, severity="info", order_id=None) -> Notification:
        notification = Notification(
            user_id=target_user_id,
            title=title,
            message=message,
            severity=Severity(severity),
            order_id=str(order_id) if order_id is not None else None,
        )
        self._by_user[target_user_id].append(notification)
        log.info(f"Notify {target_user_id} [{notification.severity.value}]: {title}")
        return notification

    def for_user(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        items = self._by_user.get(user_id, [])
        if unread_only:
            items = [n for n in items if not n.read]
        return list(reversed(items))

    def mark_read(self, notification_id, user_id: Optional[str] = None) -> bool:
        notification_id = uuid.UUID(str(notification_id))
        users = [user_id] if user_id is not None else list(self._by_user)
        for uid in users:
            for n in self._by_user.get(uid, []):
                if n.id == notification_id:
                    n.read = True
                    return True
        return False

    def clear(self, user_id: str) -> None:
        self._by_user.pop(user_id, None)

    def all(self) -> List[Notification]:
        return [n for items in self._by_user.values() for n in items]
