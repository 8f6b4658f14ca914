from __future__ import annotations

import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

EXCERPT_LENGTH = 240


class HeadingBlock(BaseModel):
    type: Literal["heading"]
    text: str = Field(default="", max_length=200)
    level: int = Field(default=2, ge=1, le=4)


class ParagraphBlock(BaseModel):
    type: Literal["paragraph"]
    text: str = ""


class ImageBlock(BaseModel):
    type: Literal["image"]
    url: str = ""
    caption: str | None = Field(default=None, max_length=200)


class VideoBlock(BaseModel):
    type: Literal["video"]
    url: str = ""
    caption: str | None = Field(default=None, max_length=200)


class CalloutBlock(BaseModel):
    type: Literal["callout"]
    tone: Literal["info", "success", "warning", "danger"] = "info"
    text: str = ""


class BulletsBlock(BaseModel):
    type: Literal["bullets"]
    items: list[str] = Field(default_factory=list)


ContentBlock = Annotated[
    Union[HeadingBlock, ParagraphBlock, ImageBlock, VideoBlock, CalloutBlock, BulletsBlock],
    Field(discriminator="type"),
]

content_blocks_adapter = TypeAdapter(list[ContentBlock])


def blocks_to_plain_text(blocks: list[ContentBlock]) -> str:
    parts: list[str] = []
    for block in blocks:
        if isinstance(block, (HeadingBlock, ParagraphBlock, CalloutBlock)):
            if block.text.strip():
                parts.append(block.text.strip())
        elif isinstance(block, BulletsBlock):
            cleaned = [item.strip() for item in block.items if item.strip()]
            if cleaned:
                parts.append("\n".join(cleaned))
        elif isinstance(block, (ImageBlock, VideoBlock)):
            if block.caption and block.caption.strip():
                parts.append(block.caption.strip())
    return "\n\n".join(parts).strip()


def make_excerpt(blocks: list[ContentBlock]) -> str | None:
    """First non-empty paragraph, whitespace collapsed, cut at ``EXCERPT_LENGTH``."""
    for block in blocks:
        if isinstance(block, ParagraphBlock) and block.text.strip():
            text = re.sub(r"\s+", " ", block.text).strip()
            if len(text) > EXCERPT_LENGTH:
                return f"{text[:EXCERPT_LENGTH]}…"
            return text
    return None
