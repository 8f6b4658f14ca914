from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
from typing import AsyncIterator

from flow.schemas.events import BrainstormEvent, HelloEvent, event_payload
from flow.services.bus import RoomEventBus, Subscription

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def encode_event(event: BrainstormEvent) -> str:
    return f"event: {event.type}\ndata: {json.dumps(event_payload(event))}\n\n"


def encode_ping(now: float | None = None) -> str:
    millis = int((time.time() if now is None else now) * 1000)
    return f"event: ping\ndata: {json.dumps({'t': millis})}\n\n"


class RoomStream:
    """One server-sent-events connection subscribed to one room.

    ``deliver`` may be called from any thread; frames are handed to the
    stream's event loop with ``call_soon_threadsafe`` so they keep publish
    order. Everything else runs on that loop.
    """

    def __init__(
        self,
        bus: RoomEventBus,
        room_id: str,
        *,
        keepalive_seconds: float = 25.0,
        queue_size: int = 256,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.bus = bus
        self.room_id = room_id
        self.keepalive_seconds = keepalive_seconds
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=queue_size)
        self._subscription: Subscription | None = None
        self._heartbeat: asyncio.Task | None = None
        self._closed = False
        self._close_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> None:
        self._enqueue(encode_event(HelloEvent()))
        self._subscription = self.bus.subscribe(self.room_id, self)
        if self._closed:
            # close() ran while presence was being fanned out
            self._subscription.close()
            return
        self._heartbeat = self._loop.create_task(self._keepalive())

    def deliver(self, event: BrainstormEvent) -> None:
        if self._closed:
            return
        frame = encode_event(event)
        try:
            self._loop.call_soon_threadsafe(self._enqueue, frame)
        except RuntimeError:
            logger.debug("event loop of room %s stream is gone", self.room_id)
            self.close()

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        if self._subscription is not None:
            self._subscription.close()
        try:
            self._loop.call_soon_threadsafe(self._stop)
        except RuntimeError:
            logger.debug("event loop of room %s stream closed before cleanup", self.room_id)

    async def frames(self) -> AsyncIterator[str]:
        self.open()
        try:
            while True:
                frame = await self._queue.get()
                if frame is None:
                    break
                yield frame
        finally:
            self.close()

    def _enqueue(self, frame: str) -> None:
        if self._closed:
            return
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning("stream for room %s is not draining, closing it", self.room_id)
            self.close()

    async def _keepalive(self) -> None:
        while True:
            await asyncio.sleep(self.keepalive_seconds)
            self._enqueue(encode_ping())

    def _stop(self) -> None:
        if self._heartbeat is not None:
            self._heartbeat.cancel()
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)
