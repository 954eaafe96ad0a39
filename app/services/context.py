from dataclasses import dataclass, field

from app.events.change_feed import ChangeFeed
from app.services.notifications import NotificationDispatcher


@dataclass
class EngineContext:
    """Shared collaborators handed to every order operation (no module globals)."""
    notifications: NotificationDispatcher = field(default_factory=NotificationDispatcher)
    change_feed: ChangeFeed = field(default_factory=ChangeFeed)
