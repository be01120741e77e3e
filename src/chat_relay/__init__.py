"""
Chat Relay - streaming chat completions with inline tool calls.

This package decodes streamed completion responses that interleave text and
tool invocations, dispatches each completed invocation to a registered tool,
and splices the result back into the response text.
"""

__version__ = "0.1.0"

from .decoder import StreamDecoder
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
from .tool_registry import (
    DuplicateToolError,
    ToolDescriptor,
    ToolError,
    ToolInvocationResult,
    ToolRegistry,
    callable_to_descriptor,
)

__all__ = [
    "StreamDecoder",
    "StreamEvent",
    "TextDelta",
    "ToolResultDelta",
    "ToolStart",
    "ToolArgumentChunk",
    "ToolComplete",
    "StreamEnd",
    "StreamError",
    "FrameSkipped",
    "ToolAbandoned",
    "ToolRegistry",
    "ToolDescriptor",
    "ToolInvocationResult",
    "ToolError",
    "DuplicateToolError",
    "callable_to_descriptor",
]
