from __future__ import annotations

from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from flow.core.rbac import can_modify
from flow.models.brainstorm import BrainstormIdea, BrainstormMessage, BrainstormRoom, User
from flow.schemas.blocks import blocks_to_plain_text, content_blocks_adapter, make_excerpt
from flow.schemas.brainstorm import IdeaCreate, IdeaUpdate, RoomCreate, RoomUpdate
from flow.schemas.events import EventAuthor, EventMessage, MessageCreatedEvent

MAX_MESSAGE_TAKE = 200
DEFAULT_MESSAGE_TAKE = 50


def _utc(value: datetime) -> datetime:
    # sqlite hands timestamps back without tzinfo; they are stored in UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def clamp_take(take: int | None) -> int:
    if take is None:
        return DEFAULT_MESSAGE_TAKE
    return min(MAX_MESSAGE_TAKE, max(1, take))


def message_created_event(message: BrainstormMessage) -> MessageCreatedEvent:
    return MessageCreatedEvent(
        room_id=message.room_id,
        message=EventMessage(
            id=message.id,
            content=message.content,
            created_at=_utc(message.created_at),
            author=EventAuthor(id=message.author.id, name=message.author.name),
        ),
    )


class BrainstormService:
    def __init__(self, db: Session):
        self.db = db

    # Rooms

    def list_rooms(self) -> list[tuple[BrainstormRoom, int, int]]:
        idea_counts = (
            select(BrainstormIdea.room_id, func.count().label("n"))
            .group_by(BrainstormIdea.room_id)
            .subquery()
        )
        message_counts = (
            select(BrainstormMessage.room_id, func.count().label("n"))
            .group_by(BrainstormMessage.room_id)
            .subquery()
        )
        rows = self.db.execute(
            select(
                BrainstormRoom,
                func.coalesce(idea_counts.c.n, 0),
                func.coalesce(message_counts.c.n, 0),
            )
            .outerjoin(idea_counts, idea_counts.c.room_id == BrainstormRoom.id)
            .outerjoin(message_counts, message_counts.c.room_id == BrainstormRoom.id)
            .options(joinedload(BrainstormRoom.created_by))
            .order_by(BrainstormRoom.updated_at.desc())
        ).all()
        return [(room, int(ideas), int(messages)) for room, ideas, messages in rows]

    def create_room(self, user: User, payload: RoomCreate) -> BrainstormRoom:
        room = BrainstormRoom(name=payload.name, created_by_id=user.id)
        self.db.add(room)
        self.db.commit()
        self.db.refresh(room)
        return room

    def get_room(self, room_id: str) -> BrainstormRoom:
        room = self.db.get(BrainstormRoom, room_id, options=[joinedload(BrainstormRoom.created_by)])
        if not room:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
        return room

    def update_room(self, user: User, room_id: str, payload: RoomUpdate) -> BrainstormRoom:
        room = self.get_room(room_id)
        self._ensure_can_modify(user, room.created_by_id)
        if payload.name is not None:
            room.name = payload.name
        room.updated_at = datetime.now(timezone.utc)
        self.db.add(room)
        self.db.commit()
        self.db.refresh(room)
        return room

    def delete_room(self, user: User, room_id: str) -> None:
        room = self.get_room(room_id)
        self._ensure_can_modify(user, room.created_by_id)
        self.db.delete(room)
        self.db.commit()

    # Ideas

    def list_ideas(self, room_id: str) -> list[BrainstormIdea]:
        return list(
            self.db.execute(
                select(BrainstormIdea)
                .where(BrainstormIdea.room_id == room_id)
                .options(joinedload(BrainstormIdea.author))
                .order_by(BrainstormIdea.updated_at.desc())
            )
            .scalars()
            .all()
        )

    def create_idea(self, user: User, room_id: str, payload: IdeaCreate) -> tuple[BrainstormIdea, str | None]:
        self._require_room(room_id)
        blocks = payload.content_json
        idea = BrainstormIdea(
            room_id=room_id,
            author_id=user.id,
            title=payload.title,
            content=blocks_to_plain_text(blocks) if blocks else "",
            content_json=content_blocks_adapter.dump_python(blocks, mode="json") if blocks is not None else None,
        )
        self.db.add(idea)
        self.db.commit()
        self.db.refresh(idea)
        excerpt = make_excerpt(blocks) if blocks else None
        return idea, excerpt

    def get_idea(self, idea_id: str) -> BrainstormIdea:
        idea = self.db.get(BrainstormIdea, idea_id, options=[joinedload(BrainstormIdea.author)])
        if not idea:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
        return idea

    def update_idea(self, user: User, idea_id: str, payload: IdeaUpdate) -> BrainstormIdea:
        idea = self.get_idea(idea_id)
        self._ensure_can_modify(user, idea.author_id)
        if payload.title is not None:
            idea.title = payload.title
        if "content_json" in payload.model_fields_set:
            blocks = payload.content_json
            if blocks is None:
                idea.content_json = None
                idea.content = ""
            else:
                idea.content_json = content_blocks_adapter.dump_python(blocks, mode="json")
                idea.content = blocks_to_plain_text(blocks)
        idea.updated_at = datetime.now(timezone.utc)
        self.db.add(idea)
        self.db.commit()
        self.db.refresh(idea)
        return idea

    def delete_idea(self, user: User, idea_id: str) -> None:
        idea = self.get_idea(idea_id)
        self._ensure_can_modify(user, idea.author_id)
        self.db.delete(idea)
        self.db.commit()

    # Messages

    def list_messages(self, room_id: str, take: int | None = None) -> list[BrainstormMessage]:
        recent = (
            self.db.execute(
                select(BrainstormMessage)
                .where(BrainstormMessage.room_id == room_id)
                .options(joinedload(BrainstormMessage.author))
                .order_by(BrainstormMessage.created_at.desc())
                .limit(clamp_take(take))
            )
            .scalars()
            .all()
        )
        return list(reversed(recent))

    def create_message(self, user: User, room_id: str, content: str) -> BrainstormMessage:
        self._require_room(room_id)
        message = BrainstormMessage(room_id=room_id, author_id=user.id, content=content)
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message, attribute_names=["content", "created_at", "author"])
        return message

    def _require_room(self, room_id: str) -> None:
        if self.db.get(BrainstormRoom, room_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")

    @staticmethod
    def _ensure_can_modify(user: User, owner_id: str) -> None:
        if not can_modify(user, owner_id):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
