"""
Turn events: the ordered stream a conversation turn produces.

content*  →  extraction?  →  done        (normal turn)
content*  →  error                       (context or generation failure)
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class ContentEvent(BaseModel):
    type: Literal["content"] = "content"
    content: str


class ExtractionEvent(BaseModel):
    type: Literal["extraction"] = "extraction"
    data: dict[str, Any]
    fields: list[str]


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str
    stage: str | None = None


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"
    session_id: str | None = None
    profile_complete: bool = False


TurnEvent = Annotated[
    Union[ContentEvent, ExtractionEvent, ErrorEvent, DoneEvent],
    Field(discriminator="type"),
]
