"""Broadcast event models

These are the only shapes the transport sees. Event names follow the
client contract (file-started, file-chunk, file-completed,
generation-complete, generation-error).
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel


class FileStartedEvent(BaseModel):
    """A file block header was recognised"""

    type: Literal["file-started"] = "file-started"
    path: str
    name: str


class FileChunkEvent(BaseModel):
    """Newly complete lines of a file in progress"""

    type: Literal["file-chunk"] = "file-chunk"
    path: str
    text: str


class FileCompletedEvent(BaseModel):
    """A file was validated and handed to persistence"""

    type: Literal["file-completed"] = "file-completed"
    path: str


class GenerationCompleteEvent(BaseModel):
    """The run reached its end"""

    type: Literal["generation-complete"] = "generation-complete"


class GenerationErrorEvent(BaseModel):
    """The run failed or timed out"""

    type: Literal["generation-error"] = "generation-error"
    message: str


WireEvent = Union[
    FileStartedEvent,
    FileChunkEvent,
    FileCompletedEvent,
    GenerationCompleteEvent,
    GenerationErrorEvent,
]


def event_payload(event: WireEvent) -> dict[str, Any]:
    """Payload as sent over the wire (the type travels as the event name)"""
    return event.model_dump(exclude={"type"})
