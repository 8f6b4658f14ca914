from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _EventModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class EventAuthor(_EventModel):
    id: str
    name: str | None = None


class EventMessage(_EventModel):
    id: str
    content: str
    created_at: datetime
    author: EventAuthor


class HelloEvent(_EventModel):
    """Handshake frame written to a freshly opened stream; never broadcast."""

    type: Literal["hello"] = "hello"
    now: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PresenceEvent(_EventModel):
    type: Literal["presence"] = "presence"
    room_id: str
    connections: int = Field(ge=0)


class MessageCreatedEvent(_EventModel):
    type: Literal["message.created"] = "message.created"
    room_id: str
    message: EventMessage


BrainstormEvent = Annotated[
    Union[HelloEvent, PresenceEvent, MessageCreatedEvent],
    Field(discriminator="type"),
]


def event_payload(event: BrainstormEvent) -> dict:
    """JSON-ready dict with camelCase keys, as written on the wire."""
    return event.model_dump(mode="json", by_alias=True)
