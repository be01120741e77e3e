from __future__ import annotations

import json


def frame(payload: dict) -> str:
    """Encode one upstream event as a ``data:`` line."""
    return "data: " + json.dumps(payload)


def text_start(text: str = "") -> str:
    return frame(
        {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": text}}
    )


def text_delta(text: str) -> str:
    return frame({"type": "content_block_delta", "delta": {"text": text}})


def tool_start(tool_id: str, name: str) -> str:
    return frame(
        {
            "type": "content_block_start",
            "index": 1,
            "content_block": {"type": "tool_use", "id": tool_id, "name": name, "input": {}},
        }
    )


def json_delta(partial: str) -> str:
    return frame(
        {"type": "content_block_delta", "delta": {"type": "input_json_delta", "partial_json": partial}}
    )


def block_stop() -> str:
    return frame({"type": "content_block_stop", "index": 1})


DONE = "data: [DONE]"


async def lines_from(lines):
    """Async line source over a list of lines."""
    for line in lines:
        yield line


async def failing_after(lines, exc: Exception):
    """Async line source that raises ``exc`` once ``lines`` are exhausted."""
    for line in lines:
        yield line
    raise exc


async def collect(aiter) -> list:
    return [event async for event in aiter]


def sse_body(lines) -> bytes:
    """Join lines the way the upstream sends them over the wire."""
    return ("\n".join(lines) + "\n").encode("utf-8")
