from __future__ import annotations

from typing import Annotated

import pytest

from chat_relay.tool_registry import (
    DuplicateToolError,
    ToolDescriptor,
    ToolError,
    ToolInvocationResult,
    ToolRegistry,
    callable_to_descriptor,
)

ECHO = ToolDescriptor(
    name="echo",
    description="Echo the text back",
    input_schema={
        "type": "object",
        "properties": {"text": {"type": "string", "description": "text to echo"}},
        "required": ["text"],
    },
)


def echo(text):
    return {"text": text}


def test_register_and_list_in_insertion_order() -> None:
    registry = ToolRegistry()
    registry.register(ECHO, echo)
    registry.register(ToolDescriptor(name="zeta", description="z"), lambda: None)
    registry.register(ToolDescriptor(name="alpha", description="a"), lambda: None)

    names = [d.name for d in registry.list_descriptors()]

    assert names == ["echo", "zeta", "alpha"]
    assert registry.list_descriptors() == registry.list_descriptors()
    assert len(registry) == 3


def test_duplicate_registration_keeps_first() -> None:
    registry = ToolRegistry()
    registry.register(ECHO, echo)

    with pytest.raises(DuplicateToolError):
        registry.register(ECHO, lambda text: "second")

    assert registry.tools["echo"] is echo
    assert registry.list_descriptors() == (ECHO,)


def test_advertisement_shape() -> None:
    assert ECHO.to_anthropic() == {
        "name": "echo",
        "description": "Echo the text back",
        "input_schema": {
            "type": "object",
            "properties": {"text": {"type": "string", "description": "text to echo"}},
            "required": ["text"],
        },
    }


def test_advertisement_is_a_copy() -> None:
    advert = ECHO.to_anthropic()
    advert["input_schema"]["properties"]["text"]["type"] = "number"
    advert["input_schema"]["required"].append("extra")

    assert ECHO.to_anthropic()["input_schema"]["properties"]["text"]["type"] == "string"
    assert ECHO.to_anthropic()["input_schema"]["required"] == ["text"]


def test_advertisement_fills_missing_schema_parts() -> None:
    bare = ToolDescriptor(name="ping", description="Ping")

    assert bare.to_anthropic()["input_schema"] == {"type": "object", "properties": {}, "required": []}


def test_callable_to_descriptor_reads_signature() -> None:
    def lookup(
        city: Annotated[str, "The city name"],
        days: int = 1,
        precise: bool = False,
        scale: float = 1.0,
    ):
        """Look up a forecast"""

    descriptor = callable_to_descriptor(lookup, "lookup")

    assert descriptor.description == "Look up a forecast"
    props = descriptor.input_schema["properties"]
    assert props["city"] == {"type": "string", "description": "The city name"}
    assert props["days"] == {"type": "integer", "description": "The days parameter", "default": 1}
    assert props["precise"]["type"] == "boolean"
    assert props["scale"]["type"] == "number"
    assert descriptor.input_schema["required"] == ("city",)


def test_callable_without_docstring_gets_default_description() -> None:
    descriptor = callable_to_descriptor(lambda x: x, "identity")

    assert descriptor.description == "Execute identity"


@pytest.mark.asyncio
async def test_invoke_sync_and_async_handlers() -> None:
    async def shout(text: str):
        return text.upper()

    registry = ToolRegistry()
    registry.register(ECHO, echo)
    registry.register_callable(shout)

    assert await registry.invoke("echo", {"text": "hi"}) == ToolInvocationResult(True, {"text": "hi"})
    assert await registry.invoke("shout", {"text": "hi"}) == ToolInvocationResult(True, "HI")


@pytest.mark.asyncio
async def test_invoke_unknown_tool_returns_failure() -> None:
    result = await ToolRegistry().invoke("missing", {})

    assert result.ok is False
    assert result.value == "Tool not found: missing"


@pytest.mark.asyncio
async def test_tool_error_message_is_reported_verbatim() -> None:
    def refuse():
        raise ToolError("not today")

    registry = ToolRegistry()
    registry.register_callable(refuse)

    assert await registry.invoke("refuse", {}) == ToolInvocationResult(ok=False, value="not today")


@pytest.mark.asyncio
async def test_handler_crash_is_converted_to_failure() -> None:
    def explode():
        raise KeyError("boom")

    registry = ToolRegistry()
    registry.register_callable(explode)

    result = await registry.invoke("explode", {})

    assert result.ok is False
    assert result.value.startswith("error executing tool:")


@pytest.mark.asyncio
async def test_missing_or_unexpected_arguments_are_handler_faults() -> None:
    registry = ToolRegistry()
    registry.register(ECHO, echo)

    missing = await registry.invoke("echo", {})
    unexpected = await registry.invoke("echo", {"text": "a", "loud": True})
    not_object = await registry.invoke("echo", ["a"])

    assert missing.ok is False
    assert unexpected.ok is False
    assert not_object.ok is False


def test_from_plugins_registers_provided_tools() -> None:
    class Plugin:
        def ping(self) -> str:
            """Ping"""
            return "pong"

        def hook_provide_tools(self):
            return [self.ping]

    registry = ToolRegistry.from_plugins([Plugin(), object()])

    assert registry.get_tool_names() == ["ping"]
    assert registry.get_schemas()[0]["name"] == "ping"


def test_result_to_dict() -> None:
    assert ToolInvocationResult(ok=True, value={"result": 5.0}).to_dict() == {
        "ok": True,
        "value": {"result": 5.0},
    }


def test_catalog_schema_is_read_only() -> None:
    schema = {
        "type": "object",
        "properties": {"text": {"type": "string"}},
        "required": ["text"],
    }
    registry = ToolRegistry()
    registry.register(ToolDescriptor(name="echo", description="Echo", input_schema=schema), echo)

    # Later edits to the caller's dict don't leak into the catalog
    schema["properties"]["text"]["type"] = "number"
    schema["required"].append("extra")

    listed = registry.list_descriptors()[0]
    with pytest.raises(TypeError):
        listed.input_schema["properties"]["text"]["type"] = "number"
    with pytest.raises(TypeError):
        listed.input_schema["properties"]["loud"] = {"type": "boolean"}
    assert registry.get_schemas()[0]["input_schema"] == {
        "type": "object",
        "properties": {"text": {"type": "string"}},
        "required": ["text"],
    }
