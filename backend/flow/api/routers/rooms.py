from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from flow.api.deps import get_member
from flow.db.session import get_db
from flow.models.brainstorm import User
from flow.schemas.brainstorm import (
    AuthorRead,
    IdeaCreate,
    IdeaCreated,
    IdeaCreatedResponse,
    IdeaListResponse,
    IdeaSummary,
    MessageCreate,
    MessageListResponse,
    MessageRead,
    MessageResponse,
    OkResponse,
    RoomCounts,
    RoomCreate,
    RoomDetail,
    RoomDetailResponse,
    RoomListResponse,
    RoomRead,
    RoomResponse,
    RoomSummary,
    RoomUpdate,
)
from flow.services.brainstorm_service import BrainstormService, message_created_event
from flow.services.bus import RoomEventBus, get_event_bus

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("", response_model=RoomListResponse)
async def list_rooms(db: Session = Depends(get_db), _: User = Depends(get_member)):
    service = BrainstormService(db)
    rows = await run_in_threadpool(service.list_rooms)
    rooms = [
        RoomSummary(
            **RoomRead.model_validate(room).model_dump(),
            created_by=AuthorRead.model_validate(room.created_by),
            counts=RoomCounts(ideas=ideas, messages=messages),
        )
        for room, ideas, messages in rows
    ]
    return RoomListResponse(rooms=rooms)


@router.post("", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(payload: RoomCreate, db: Session = Depends(get_db), user: User = Depends(get_member)):
    service = BrainstormService(db)
    room = await run_in_threadpool(service.create_room, user, payload)
    return RoomResponse(room=RoomRead.model_validate(room))


@router.get("/{room_id}", response_model=RoomDetailResponse)
async def room_detail(room_id: str, db: Session = Depends(get_db), _: User = Depends(get_member)):
    service = BrainstormService(db)
    room = await run_in_threadpool(service.get_room, room_id)
    return RoomDetailResponse(room=RoomDetail.model_validate(room))


@router.patch("/{room_id}", response_model=RoomResponse)
async def update_room(
    room_id: str, payload: RoomUpdate, db: Session = Depends(get_db), user: User = Depends(get_member)
):
    service = BrainstormService(db)
    room = await run_in_threadpool(service.update_room, user, room_id, payload)
    return RoomResponse(room=RoomRead.model_validate(room))


@router.delete("/{room_id}", response_model=OkResponse)
async def delete_room(room_id: str, db: Session = Depends(get_db), user: User = Depends(get_member)):
    service = BrainstormService(db)
    await run_in_threadpool(service.delete_room, user, room_id)
    return OkResponse()


@router.get("/{room_id}/ideas", response_model=IdeaListResponse)
async def list_ideas(room_id: str, db: Session = Depends(get_db), _: User = Depends(get_member)):
    service = BrainstormService(db)
    ideas = await run_in_threadpool(service.list_ideas, room_id)
    return IdeaListResponse(ideas=[IdeaSummary.model_validate(idea) for idea in ideas])


@router.post("/{room_id}/ideas", response_model=IdeaCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_idea(
    room_id: str, payload: IdeaCreate, db: Session = Depends(get_db), user: User = Depends(get_member)
):
    service = BrainstormService(db)
    idea, excerpt = await run_in_threadpool(service.create_idea, user, room_id, payload)
    return IdeaCreatedResponse(idea=IdeaCreated.model_validate(idea), excerpt=excerpt)


@router.get("/{room_id}/messages", response_model=MessageListResponse)
async def list_messages(
    room_id: str,
    take: Optional[int] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_member),
):
    service = BrainstormService(db)
    messages = await run_in_threadpool(service.list_messages, room_id, take)
    return MessageListResponse(messages=[MessageRead.model_validate(m) for m in messages])


@router.post("/{room_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def create_message(
    room_id: str,
    payload: MessageCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_member),
    bus: RoomEventBus = Depends(get_event_bus),
):
    service = BrainstormService(db)
    message = await run_in_threadpool(service.create_message, user, room_id, payload.content)
    bus.publish(room_id, message_created_event(message))
    return MessageResponse(message=MessageRead.model_validate(message))
