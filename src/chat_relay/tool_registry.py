"""
Tool registry: descriptor catalog and name-keyed dispatch.

Maps tool names to handlers and keeps the descriptors advertised to the
upstream model in the Anthropic ``tools`` format.
"""

import inspect
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Annotated, Any, Callable, Dict, List, Optional, get_args, get_origin, get_type_hints

logger = logging.getLogger(__name__)


class DuplicateToolError(ValueError):
    """Raised when a tool name is registered twice."""


class ToolError(Exception):
    """Domain failure raised by a tool handler.

    The message is reported to the model verbatim.
    """


def _freeze(value):
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value):
    if isinstance(value, (dict, MappingProxyType)):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class ToolDescriptor:
    """Static metadata advertised to the upstream model."""

    name: str
    description: str
    input_schema: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Read-only all the way down; the catalog is shared across sessions
        object.__setattr__(self, "input_schema", _freeze(_thaw(self.input_schema)))

    def to_anthropic(self) -> Dict[str, Any]:
        """Serialize to the upstream tool-calling contract."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": {
                "type": "object",
                "properties": _thaw(self.input_schema.get("properties", {})),
                "required": _thaw(tuple(self.input_schema.get("required", ()))),
            },
        }


@dataclass(frozen=True)
class ToolInvocationResult:
    """Outcome of a dispatched tool call."""

    ok: bool
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "value": self.value}


def _json_type(param_type) -> str:
    if param_type is str:
        return "string"
    elif param_type is bool:
        return "boolean"
    elif param_type is int:
        return "integer"
    elif param_type is float:
        return "number"
    return "string"  # Default fallback


def callable_to_descriptor(
    callable_func: Callable, name: str, description: Optional[str] = None
) -> ToolDescriptor:
    """
    Build a ToolDescriptor from a Python callable (function or method).

    Parameter types come from annotations; ``Annotated[float, "first number"]``
    supplies the parameter description.

    Args:
        callable_func: The callable to convert
        name: Tool name
        description: Optional description

    Returns:
        ToolDescriptor for the callable
    """
    sig = inspect.signature(callable_func)
    type_hints = get_type_hints(callable_func, include_extras=True)

    # Get description from docstring if not provided
    if description is None:
        doc = inspect.getdoc(callable_func)
        description = doc.strip() if doc else f"Execute {name}"

    properties: Dict[str, Any] = {}
    required: List[str] = []

    for param_name, param in sig.parameters.items():
        if param_name == "self":
            continue

        param_type = type_hints.get(param_name, str)
        param_description = f"The {param_name} parameter"
        if get_origin(param_type) is Annotated:
            param_type, *metadata = get_args(param_type)
            notes = [m for m in metadata if isinstance(m, str)]
            if notes:
                param_description = notes[0]

        param_schema = {"type": _json_type(param_type), "description": param_description}

        if param.default is inspect.Parameter.empty:
            required.append(param_name)
        else:
            param_schema["default"] = param.default

        properties[param_name] = param_schema

    return ToolDescriptor(
        name=name,
        description=description,
        input_schema={"type": "object", "properties": properties, "required": required},
    )


class ToolRegistry:
    """Registry for managing tools and their descriptors.

    Populated once at startup and read-only afterwards, so one instance can
    serve concurrent chat sessions.
    """

    def __init__(self):
        self.tools: Dict[str, Callable] = {}  # name -> handler
        self.descriptors: Dict[str, ToolDescriptor] = {}  # name -> descriptor, insertion order

    @classmethod
    def from_plugins(cls, plugins: list) -> "ToolRegistry":
        """Register every tool provided through ``hook_provide_tools``."""
        registry = cls()
        for plugin in plugins:
            if hasattr(plugin, "hook_provide_tools"):
                for method in plugin.hook_provide_tools():
                    registry.register_callable(method)
        return registry

    def register(self, descriptor: ToolDescriptor, handler: Callable) -> None:
        """
        Add a name -> handler mapping.

        Raises:
            DuplicateToolError: If the name is already registered
        """
        if descriptor.name in self.tools:
            raise DuplicateToolError(f"Tool '{descriptor.name}' is already registered")

        self.tools[descriptor.name] = handler
        self.descriptors[descriptor.name] = descriptor

    def register_callable(
        self,
        callable_func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        """
        Register a callable and auto-generate its descriptor.

        Args:
            callable_func: The callable to register
            name: Optional name override (defaults to callable name)
            description: Optional description
        """
        tool_name = name or callable_func.__name__
        self.register(callable_to_descriptor(callable_func, tool_name, description), callable_func)

    def list_descriptors(self) -> tuple:
        """Return the descriptor catalog in registration order."""
        return tuple(self.descriptors.values())

    def get_schemas(self) -> List[Dict[str, Any]]:
        """Get all tool advertisements for the upstream API."""
        return [descriptor.to_anthropic() for descriptor in self.descriptors.values()]

    def get_tool_names(self) -> List[str]:
        """Get list of registered tool names."""
        return list(self.tools.keys())

    async def invoke(self, name: str, arguments: Dict[str, Any]) -> ToolInvocationResult:
        """
        Execute a registered tool by name.

        Never raises: unknown names and handler faults come back as
        ``ToolInvocationResult(ok=False, value=<message>)``.

        Args:
            name: Tool name, as chosen by the model
            arguments: Parsed tool arguments

        Returns:
            ToolInvocationResult
        """
        if name not in self.tools:
            logger.info(f"TOOL NOT FOUND: {name}")
            return ToolInvocationResult(ok=False, value=f"Tool not found: {name}")

        callable_func = self.tools[name]

        try:
            if not isinstance(arguments, dict):
                raise TypeError("tool arguments must be a JSON object")
            # Execute the callable (handle both sync and async)
            if inspect.iscoroutinefunction(callable_func):
                result = await callable_func(**arguments)
            else:
                result = callable_func(**arguments)
        except ToolError as e:
            logger.info(f"TOOL ERROR: {name} - {str(e)}")
            return ToolInvocationResult(ok=False, value=str(e))
        except Exception as e:
            logger.info(f"TOOL ERROR: {name} - {str(e)}")
            return ToolInvocationResult(ok=False, value=f"error executing tool: {str(e)}")

        return ToolInvocationResult(ok=True, value=result)

    def __len__(self) -> int:
        """Get number of registered tools."""
        return len(self.tools)
