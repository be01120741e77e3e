"""
Incremental decoder for streamed completion responses.

Upstream frames are ``data: {json}`` lines. Text blocks and tool-use blocks
arrive interleaved; tool arguments arrive as partial JSON fragments that are
only parsed once their block stops. Completed tool calls are dispatched
through a callback and the result is appended to the running text buffer.

The decoding itself is the pure :func:`step` function over an immutable
:class:`DecoderState`; :class:`StreamDecoder` drives it from an async line
source and owns the single suspension point, the tool callback.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, replace
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Callable, Optional, Union

from .events import (
    FrameSkipped,
    StreamEnd,
    StreamError,
    StreamEvent,
    TextDelta,
    ToolAbandoned,
    ToolArgumentChunk,
    ToolComplete,
    ToolResultDelta,
    ToolStart,
)
from .tool_registry import ToolInvocationResult

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

ToolCallback = Callable[[str, dict], Awaitable[Any]]


@dataclass(frozen=True)
class Idle:
    """No tool invocation is open."""


@dataclass(frozen=True)
class ToolOpen:
    """A tool invocation is open and collecting argument fragments."""

    id: str
    name: str
    buffer: str = ""


@dataclass(frozen=True)
class DecoderState:
    mode: Union[Idle, ToolOpen] = Idle()
    text: str = ""
    finished: bool = False


def _append_text(state: DecoderState, text: str) -> tuple[DecoderState, TextDelta]:
    new_state = replace(state, text=state.text + text)
    return new_state, TextDelta(text=text, buffer=new_state.text)


def _parse_arguments(buffer: str) -> dict:
    parsed = json.loads(buffer) if buffer.strip() else {}
    if not isinstance(parsed, dict):
        raise ValueError("tool arguments must be a JSON object")
    return parsed


def _content_block_start(state: DecoderState, frame: dict) -> tuple[DecoderState, list]:
    block = frame.get("content_block")
    if not isinstance(block, dict):
        return state, []

    if block.get("type") == "text":
        text = block.get("text") or ""
        if not isinstance(text, str) or not text:
            return state, []
        state, event = _append_text(state, text)
        return state, [event]

    if block.get("type") == "tool_use":
        events: list[StreamEvent] = []
        if isinstance(state.mode, ToolOpen):
            events.append(
                ToolAbandoned(
                    id=state.mode.id,
                    name=state.mode.name,
                    reason="another tool invocation started before this one completed",
                )
            )
        tool_id = str(block.get("id") or "")
        name = str(block.get("name") or "")
        events.append(ToolStart(id=tool_id, name=name))
        return replace(state, mode=ToolOpen(id=tool_id, name=name)), events

    return state, []


def _content_block_delta(state: DecoderState, frame: dict, line: str) -> tuple[DecoderState, list]:
    delta = frame.get("delta")
    if not isinstance(delta, dict):
        return state, []

    text = delta.get("text")
    if isinstance(text, str):
        if not text:
            return state, []
        state, event = _append_text(state, text)
        return state, [event]

    partial = delta.get("partial_json")
    if isinstance(partial, str):
        if not isinstance(state.mode, ToolOpen):
            return state, [FrameSkipped(line=line, reason="argument fragment with no open tool")]
        mode = replace(state.mode, buffer=state.mode.buffer + partial)
        return replace(state, mode=mode), [ToolArgumentChunk(partial_json=partial)]

    return state, []


def _content_block_stop(state: DecoderState) -> tuple[DecoderState, list]:
    if not isinstance(state.mode, ToolOpen):
        return state, []

    tool = state.mode
    idle = replace(state, mode=Idle())
    try:
        arguments = _parse_arguments(tool.buffer)
    except (ValueError, RecursionError) as e:
        return idle, [ToolAbandoned(id=tool.id, name=tool.name, reason=f"invalid arguments: {e}")]
    return idle, [ToolComplete(id=tool.id, name=tool.name, arguments=arguments)]


def finish(state: DecoderState) -> tuple[DecoderState, list]:
    """End the stream, reporting a tool invocation that never completed."""
    if state.finished:
        return state, []
    events: list[StreamEvent] = []
    if isinstance(state.mode, ToolOpen):
        events.append(
            ToolAbandoned(
                id=state.mode.id,
                name=state.mode.name,
                reason="stream ended before tool completed",
            )
        )
    events.append(StreamEnd())
    return replace(state, mode=Idle(), finished=True), events


def step(state: DecoderState, line: str) -> tuple[DecoderState, list]:
    """Consume one line and return the new state plus the events it produced.

    Lines after a terminal ``[DONE]`` are ignored.
    """
    if state.finished:
        return state, []

    line = line.rstrip("\r\n")
    if not line.startswith(DATA_PREFIX):
        return state, []

    payload = line[len(DATA_PREFIX):].strip()
    if not payload:
        return state, []
    if payload == DONE_SENTINEL:
        return finish(state)

    try:
        frame = json.loads(payload)
    except json.JSONDecodeError as e:
        return state, [FrameSkipped(line=line, reason=f"{e.msg} (pos={e.pos})")]
    except RecursionError:
        return state, [FrameSkipped(line=line, reason="frame is nested too deeply")]
    if not isinstance(frame, dict):
        return state, [FrameSkipped(line=line, reason="frame is not a JSON object")]

    frame_type = frame.get("type")
    if frame_type == "content_block_start":
        return _content_block_start(state, frame)
    if frame_type == "content_block_delta":
        return _content_block_delta(state, frame, line)
    if frame_type == "content_block_stop":
        return _content_block_stop(state)
    return state, []


def format_tool_result(result: ToolInvocationResult) -> str:
    """Render a tool result as the annotation appended to the text buffer."""
    if result.ok:
        try:
            serialized = json.dumps(result.value, default=str)
        except (TypeError, ValueError, RecursionError):
            # default= does not cover dict keys or circular references
            serialized = repr(result.value)
        return f"\nToolResult: {serialized}"
    return f"\nToolError: {result.value}"


def apply_tool_result(
    state: DecoderState, call: ToolComplete, result: ToolInvocationResult
) -> tuple[DecoderState, ToolResultDelta]:
    """Splice a tool result into the running buffer."""
    text = format_tool_result(result)
    new_state = replace(state, text=state.text + text)
    return new_state, ToolResultDelta(
        text=text, buffer=new_state.text, id=call.id, name=call.name, ok=result.ok
    )


class StreamDecoder:
    """Drive :func:`step` over an async line source.

    One instance decodes one response at a time; concurrent requests each
    need their own decoder.
    """

    def __init__(self, invoke_tool: Optional[ToolCallback] = None, logger: logging.Logger = logger):
        self.invoke_tool = invoke_tool
        self.logger = logger
        self.state = DecoderState()

    @property
    def text(self) -> str:
        """Running buffer of the current (or last) response."""
        return self.state.text

    async def _call_tool(self, call: ToolComplete) -> ToolInvocationResult:
        self.logger.info(
            f"Tool call: {call.name}",
            extra={
                "structured": {
                    "log_type": "tool_call",
                    "tool_name": call.name,
                    "arguments": call.arguments,
                    "call_id": call.id,
                }
            },
        )
        # Shielded so an in-flight tool finishes even if the consumer is cancelled
        try:
            task = asyncio.ensure_future(self.invoke_tool(call.name, call.arguments))
            result = await asyncio.shield(task)
        except Exception as e:
            self.logger.warning(f"TOOL ERROR: {call.name} - {str(e)}")
            return ToolInvocationResult(ok=False, value=f"error executing tool: {str(e)}")

        if not isinstance(result, ToolInvocationResult):
            result = ToolInvocationResult(ok=True, value=result)
        self.logger.info(
            f"Tool result: {call.name}",
            extra={
                "structured": {
                    "log_type": "tool_result",
                    "tool_name": call.name,
                    "ok": result.ok,
                    "result": result.value,
                }
            },
        )
        return result

    def _log_warning(self, event: StreamEvent) -> None:
        if isinstance(event, FrameSkipped):
            self.logger.warning(
                f"Skipped frame: {event.reason}",
                extra={"structured": {"log_type": "frame_skipped", "reason": event.reason}},
            )
        elif isinstance(event, ToolAbandoned):
            self.logger.warning(
                f"Abandoned tool {event.name}: {event.reason}",
                extra={
                    "structured": {
                        "log_type": "tool_abandoned",
                        "tool_name": event.name,
                        "call_id": event.id,
                        "reason": event.reason,
                    }
                },
            )

    async def decode(self, lines: AsyncIterable[str]) -> AsyncIterator[StreamEvent]:
        """Yield events for one response.

        The sequence always ends with exactly one ``StreamEnd`` or
        ``StreamError`` unless the consumer stops early.
        """
        self.state = DecoderState()
        iterator = lines.__aiter__()

        while True:
            try:
                line = await iterator.__anext__()
            except StopAsyncIteration:
                break
            except Exception as e:
                self.logger.error(
                    f"Stream error: {e}",
                    extra={"structured": {"log_type": "stream_error", "content": str(e)}},
                )
                yield StreamError(message=str(e) or e.__class__.__name__)
                return

            self.state, events = step(self.state, line)
            for event in events:
                self._log_warning(event)
                yield event
                if isinstance(event, StreamEnd):
                    return
                if isinstance(event, ToolComplete) and self.invoke_tool is not None:
                    result = await self._call_tool(event)
                    self.state, annotation = apply_tool_result(self.state, event, result)
                    yield annotation

        self.state, events = finish(self.state)
        for event in events:
            self._log_warning(event)
            yield event
