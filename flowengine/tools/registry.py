"""
Tool Registry for FlowEngine.

Local tools are plain Python functions grouped by server name. The
registry exposes them to flows through ``LocalToolResolver`` and
``LocalToolInvoker`` (see ``flowengine.tools.local``), the same way a
remote tool server would be exposed.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
import asyncio
import functools
import inspect
import logging

from flowengine.engine.collaborators import ToolDefinition


logger = logging.getLogger(__name__)


_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


def _input_schema(func: Callable) -> Dict[str, Any]:
    """Derive a JSON schema for ``func``'s parameters from its signature."""
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for param_name, param in inspect.signature(func).parameters.items():
        if param_name in ("self", "cls"):
            continue
        properties[param_name] = {"type": _JSON_TYPES.get(param.annotation, "string")}
        if param.default is inspect.Parameter.empty:
            required.append(param_name)
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


@dataclass
class Tool:
    """
    A registered tool.

    Attributes:
        server_name: Server the tool is grouped under
        name: Tool name, unique within its server
        func: The callable (sync or async)
        description: Human-readable description
        input_schema: JSON schema of the arguments
    """
    server_name: str
    name: str
    func: Callable
    description: str = ""
    input_schema: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_async(self) -> bool:
        return asyncio.iscoroutinefunction(self.func)

    async def call(self, args: Dict[str, Any]) -> Any:
        """Call the tool; sync functions run in the default executor."""
        if self.is_async:
            return await self.func(**args)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(self.func, **args))

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            server_name=self.server_name,
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
        )


class ToolRegistry:
    """
    Registry of local tools, grouped by server.

    Usage:
        registry = ToolRegistry()

        @registry.register(server="text")
        def shout(text: str) -> dict:
            return {"result": text.upper()}

        tool = registry.get("text", "shout")
        result = await tool.call({"text": "hello"})
    """

    def __init__(self):
        self._tools: Dict[Tuple[str, str], Tool] = {}

    def register(
        self,
        server: str,
        name: Optional[str] = None,
        description: str = "",
        input_schema: Optional[Dict[str, Any]] = None,
    ) -> Callable:
        """
        Decorator to register a function as a tool of ``server``.

        Args:
            server: Server name the tool is grouped under
            name: Tool name (defaults to function name)
            description: Tool description (defaults to docstring)
            input_schema: Argument schema (derived from the signature if omitted)
        """
        def decorator(func: Callable) -> Callable:
            self.add(func, server, name, description, input_schema)
            return func

        return decorator

    def add(
        self,
        func: Callable,
        server: str,
        name: Optional[str] = None,
        description: str = "",
        input_schema: Optional[Dict[str, Any]] = None,
    ) -> Tool:
        """Directly add a function as a tool (non-decorator version)."""
        tool = Tool(
            server_name=server,
            name=name or func.__name__,
            func=func,
            description=(description or func.__doc__ or "").strip(),
            input_schema=input_schema or _input_schema(func),
        )
        self._tools[(server, tool.name)] = tool
        logger.debug(f"Registered tool: {server}/{tool.name}")
        return tool

    def get(self, server: str, name: str) -> Optional[Tool]:
        """Get a tool by server and name."""
        return self._tools.get((server, name))

    def servers(self) -> List[str]:
        return sorted({server for server, _ in self._tools})

    def has_server(self, server: str) -> bool:
        return any(s == server for s, _ in self._tools)

    def list_tools(self, server: Optional[str] = None) -> List[Tool]:
        """List registered tools, optionally only those of one server."""
        return [
            tool for (s, _), tool in self._tools.items()
            if server is None or s == server
        ]


# Global tool registry instance
tool_registry = ToolRegistry()


def register_tool(
    server: str,
    name: Optional[str] = None,
    description: str = "",
    input_schema: Optional[Dict[str, Any]] = None,
) -> Callable:
    """
    Convenience decorator to register a tool in the global registry.

    Usage:
        @register_tool("builtin", description="Does something useful")
        def my_tool(data: str) -> dict:
            return {"result": data}
    """
    return tool_registry.register(server, name, description, input_schema)
