from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import sessionmaker

from flow.core.config import settings
from flow.core.rbac import require_member
from flow.db.session import db_session, get_session_factory
from flow.models.brainstorm import User
from flow.services.bus import RoomEventBus, get_event_bus
from flow.services.streams import SSE_HEADERS, RoomStream

router = APIRouter(prefix="/rooms", tags=["events"])


def _load_user(factory: sessionmaker, user_id: Optional[str]) -> Optional[User]:
    # Short-lived session: the stream itself may stay open for hours.
    if not user_id:
        return None
    with db_session(factory) as db:
        return db.get(User, user_id)


@router.get("/{room_id}/events")
async def room_events(
    room_id: str,
    x_user_id: Optional[str] = Header(default=None),
    factory: sessionmaker = Depends(get_session_factory),
    bus: RoomEventBus = Depends(get_event_bus),
):
    user = await run_in_threadpool(_load_user, factory, x_user_id)
    require_member(user)

    stream = RoomStream(
        bus,
        room_id,
        keepalive_seconds=settings.stream_keepalive_seconds,
        queue_size=settings.stream_queue_size,
    )
    return StreamingResponse(stream.frames(), media_type="text/event-stream", headers=SSE_HEADERS)
