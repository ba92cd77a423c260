"""In-process fan-out of booking changes to per-room subscribers."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

Subscriber = Callable[[dict[str, Any]], None]


class RoomFeed:
    """Pushes event payloads to everyone watching a room.

    A failing subscriber is logged and skipped; delivery to the others and
    the operation that triggered the push carry on.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)

    def subscribe(self, room_id: str, callback: Subscriber) -> Callable[[], None]:
        self._subscribers[room_id].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[room_id]:
                self._subscribers[room_id].remove(callback)

        return unsubscribe

    def push(self, room_id: str, payload: dict[str, Any]) -> None:
        for callback in list(self._subscribers.get(room_id, [])):
            try:
                callback(payload)
            except Exception:
                logger.exception("Real-time push to room %s failed", room_id)
