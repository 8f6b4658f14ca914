from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class RoomEntry:
    """Fan-out state of one room: live subscribers and their count.

    ``lock`` serializes every mutation and fan-out for the room. It is
    re-entrant so a subscriber may unsubscribe from inside its own delivery.
    """

    room_id: str
    connection_count: int = 0
    subscribers: Dict[int, Any] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    retired: bool = False


class RoomRegistry:
    """Process-wide map of room id to :class:`RoomEntry`.

    The registry lock only guards the map itself, so rooms never contend
    with each other. Lock order is always entry lock, then registry lock.
    """

    def __init__(self) -> None:
        self._rooms: Dict[str, RoomEntry] = {}
        self._lock = threading.Lock()

    def ensure(self, room_id: str) -> RoomEntry:
        with self._lock:
            entry = self._rooms.get(room_id)
            if entry is None:
                entry = RoomEntry(room_id=room_id)
                self._rooms[room_id] = entry
                logger.debug("room %s created", room_id)
            return entry

    def get(self, room_id: str) -> RoomEntry | None:
        with self._lock:
            return self._rooms.get(room_id)

    def remove(self, room_id: str) -> bool:
        """Drop the room if it still has no connections.

        Returns ``False`` when the entry is gone already or a subscribe got
        in first; the count is re-checked under the room's own lock.
        """
        entry = self.get(room_id)
        if entry is None:
            return False
        with entry.lock:
            if entry.connection_count > 0 or entry.retired:
                return False
            with self._lock:
                if self._rooms.get(room_id) is not entry:
                    return False
                del self._rooms[room_id]
                entry.retired = True
        logger.debug("room %s removed", room_id)
        return True

    def room_ids(self) -> list[str]:
        with self._lock:
            return list(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        with self._lock:
            return room_id in self._rooms

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __iter__(self) -> Iterator[str]:
        return iter(self.room_ids())
