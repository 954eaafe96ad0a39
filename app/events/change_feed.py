import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List

log = logging.getLogger("change_feed")

ChangeCallback = Callable[[str, str], Awaitable[None]]


class ChangeFeed:
    """
    "Something changed" notifications per table.

    Callbacks receive only the table name and the row id; subscribers are
    expected to re-query the store rather than trust any payload.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[ChangeCallback]] = defaultdict(list)

    def subscribe(self, table: str, callback: ChangeCallback) -> Callable[[], None]:
        self._subscribers[table].append(callback)

        def unsubscribe():
            if callback in self._subscribers[table]:
                self._subscribers[table].remove(callback)

        return unsubscribe

    async def publish(self, table: str, record_id) -> None:
        for callback in list(self._subscribers.get(table, [])):
            try:
                await callback(table, str(record_id))
            except Exception as e:
                # One broken subscriber must not fail the write that triggered it
                log.error(f"Change feed subscriber failed for {table}/{record_id}: {e}")
