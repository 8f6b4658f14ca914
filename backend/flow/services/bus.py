from __future__ import annotations

import itertools
import logging
from typing import Callable, Protocol, Union

from fastapi import Request

from flow.schemas.events import BrainstormEvent, PresenceEvent
from flow.services.registry import RoomEntry, RoomRegistry

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    def deliver(self, event: BrainstormEvent) -> None: ...


Listener = Union[Subscriber, Callable[[BrainstormEvent], None]]


def _deliver_fn(listener: Listener) -> Callable[[BrainstormEvent], None]:
    deliver = getattr(listener, "deliver", None)
    if callable(deliver):
        return deliver
    return listener


class Subscription:
    """Handle returned by :meth:`RoomEventBus.subscribe`.

    Calling it (or :meth:`close`) detaches the subscriber. Only the first
    call has any effect.
    """

    def __init__(self, bus: "RoomEventBus", entry: RoomEntry, token: int) -> None:
        self._bus = bus
        self._entry = entry
        self._token = token

    @property
    def room_id(self) -> str:
        return self._entry.room_id

    @property
    def active(self) -> bool:
        return self._token in self._entry.subscribers

    def close(self) -> None:
        self._bus._unsubscribe(self._entry, self._token)

    __call__ = close


class RoomEventBus:
    """Room-scoped pub/sub for chat messages and presence counts."""

    def __init__(self, registry: RoomRegistry | None = None) -> None:
        self.registry = registry or RoomRegistry()
        self._tokens = itertools.count(1)

    def subscribe(self, room_id: str, listener: Listener) -> Subscription:
        deliver = _deliver_fn(listener)
        token = next(self._tokens)
        while True:
            entry = self.registry.ensure(room_id)
            with entry.lock:
                if entry.retired:
                    # Torn down between ensure() and the lock; take the fresh entry.
                    continue
                entry.connection_count += 1
                entry.subscribers[token] = deliver
                logger.debug("room %s subscribe -> %d connection(s)", room_id, entry.connection_count)
                self._fan_out(entry, PresenceEvent(room_id=room_id, connections=entry.connection_count))
                return Subscription(self, entry, token)

    def _unsubscribe(self, entry: RoomEntry, token: int) -> None:
        with entry.lock:
            if entry.subscribers.pop(token, None) is None:
                return
            entry.connection_count = max(0, entry.connection_count - 1)
            remaining = entry.connection_count
            logger.debug("room %s unsubscribe -> %d connection(s)", entry.room_id, remaining)
            self._fan_out(entry, PresenceEvent(room_id=entry.room_id, connections=remaining))
            if remaining == 0:
                self.registry.remove(entry.room_id)

    def publish(self, room_id: str, event: BrainstormEvent) -> int:
        """Hand ``event`` to every current subscriber of ``room_id``.

        Returns how many subscribers it was handed to; a room nobody is
        listening to is not an error.
        """
        entry = self.registry.get(room_id)
        if entry is None:
            logger.debug("room %s has no listeners, dropping %s", room_id, event.type)
            return 0
        with entry.lock:
            if entry.retired:
                return 0
            return self._fan_out(entry, event)

    def connection_count(self, room_id: str) -> int:
        entry = self.registry.get(room_id)
        return entry.connection_count if entry is not None else 0

    @staticmethod
    def _fan_out(entry: RoomEntry, event: BrainstormEvent) -> int:
        delivered = 0
        for deliver in list(entry.subscribers.values()):
            try:
                deliver(event)
            except Exception:
                logger.exception("subscriber of room %s failed on %s", entry.room_id, event.type)
                continue
            delivered += 1
        return delivered


def get_event_bus(request: Request) -> RoomEventBus:
    return request.app.state.event_bus
