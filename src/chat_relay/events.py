"""Events produced while decoding one streamed response."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class StreamEvent:
    """Base for all decoder events."""


@dataclass(frozen=True)
class TextDelta(StreamEvent):
    """Text appended to the running buffer.

    ``text`` is the appended fragment, ``buffer`` the running buffer after it.
    """

    text: str
    buffer: str


@dataclass(frozen=True)
class ToolResultDelta(TextDelta):
    """Tool result annotation spliced into the running buffer."""

    id: str = ""
    name: str = ""
    ok: bool = True


@dataclass(frozen=True)
class ToolStart(StreamEvent):
    id: str
    name: str


@dataclass(frozen=True)
class ToolArgumentChunk(StreamEvent):
    partial_json: str


@dataclass(frozen=True)
class ToolComplete(StreamEvent):
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StreamEnd(StreamEvent):
    """Terminal: upstream signalled completion."""


@dataclass(frozen=True)
class StreamError(StreamEvent):
    """Terminal: the line source failed."""

    message: str


@dataclass(frozen=True)
class FrameSkipped(StreamEvent):
    """Warning: one frame could not be used; decoding continues."""

    line: str
    reason: str


@dataclass(frozen=True)
class ToolAbandoned(StreamEvent):
    """Warning: an open tool invocation was dropped without being invoked."""

    id: str
    name: str
    reason: str
