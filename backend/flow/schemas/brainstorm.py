from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from flow.schemas.blocks import ContentBlock

RoomName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=80)]
IdeaTitle = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
MessageContent = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=4000)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class AuthorRead(CamelModel):
    id: str
    name: str | None = None


class RoomCreate(CamelModel):
    name: RoomName


class RoomUpdate(CamelModel):
    name: RoomName | None = None

    @field_validator("name")
    @classmethod
    def _name_not_null(cls, value):
        if value is None:
            raise ValueError("name may be omitted but not null")
        return value


class RoomRead(CamelModel):
    id: str
    name: str
    created_at: datetime
    updated_at: datetime


class RoomCounts(CamelModel):
    ideas: int
    messages: int


class RoomSummary(RoomRead):
    created_by: AuthorRead
    counts: RoomCounts


class RoomDetail(RoomRead):
    created_by: AuthorRead


class IdeaCreate(CamelModel):
    title: IdeaTitle
    content_json: list[ContentBlock] | None = None


class IdeaUpdate(CamelModel):
    title: IdeaTitle | None = None
    content_json: list[ContentBlock] | None = None

    @field_validator("title")
    @classmethod
    def _title_not_null(cls, value):
        if value is None:
            raise ValueError("title may be omitted but not null")
        return value


class IdeaSummary(CamelModel):
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    author: AuthorRead


class IdeaDetail(IdeaSummary):
    room_id: str
    content: str
    content_json: list[ContentBlock] | None = None


class MessageCreate(CamelModel):
    content: MessageContent


class MessageRead(CamelModel):
    id: str
    content: str
    created_at: datetime
    author: AuthorRead


class OkResponse(CamelModel):
    ok: bool = True


class RoomListResponse(CamelModel):
    rooms: list[RoomSummary]


class RoomResponse(OkResponse):
    room: RoomRead


class RoomDetailResponse(CamelModel):
    room: RoomDetail


class IdeaListResponse(CamelModel):
    ideas: list[IdeaSummary]


class IdeaCreated(CamelModel):
    id: str
    title: str
    updated_at: datetime


class IdeaCreatedResponse(OkResponse):
    idea: IdeaCreated
    excerpt: str | None = None


class IdeaDetailResponse(CamelModel):
    idea: IdeaDetail


class IdeaUpdatedResponse(OkResponse):
    idea: IdeaDetail


class MessageListResponse(CamelModel):
    messages: list[MessageRead]


class MessageResponse(OkResponse):
    message: MessageRead
