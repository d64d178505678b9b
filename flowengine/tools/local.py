"""
Tool resolver and invoker backed by the local ``ToolRegistry``.
"""

from typing import Any, Dict, List, Optional
import logging

from flowengine.engine.collaborators import ToolDefinition, ToolResolution, ToolResult
from flowengine.tools.registry import ToolRegistry, tool_registry


logger = logging.getLogger(__name__)


class LocalToolResolver:
    """
    Resolves tool nodes against registry servers.

    A tool node descriptor names its server in ``properties.mcpServer``
    (falling back to its label) and may restrict the exposed tools with
    ``properties.enabledTools``.
    """

    def __init__(self, registry: Optional[ToolRegistry] = None):
        self.registry = registry or tool_registry

    async def resolve_tools(self, node_config: Dict[str, Any]) -> ToolResolution:
        tools: List[ToolDefinition] = []
        for descriptor in node_config.get("mcpNodes") or []:
            properties = descriptor.get("properties") or {}
            server = properties.get("mcpServer") or descriptor.get("label")
            if not server or not self.registry.has_server(server):
                return ToolResolution(
                    success=False,
                    error=f"Tool server '{server}' is not available",
                )

            enabled = properties.get("enabledTools")
            for tool in self.registry.list_tools(server):
                if enabled is None or tool.name in enabled:
                    tools.append(tool.to_definition())

        logger.debug(f"Resolved {len(tools)} local tools")
        return ToolResolution(success=True, available_tools=tools)


class LocalToolInvoker:
    """Calls registry tools; a tool that raises yields a failure result."""

    def __init__(self, registry: Optional[ToolRegistry] = None):
        self.registry = registry or tool_registry

    async def invoke_tool(self, server_name: str, tool_name: str, args: Dict[str, Any]) -> ToolResult:
        tool = self.registry.get(server_name, tool_name)
        if tool is None:
            return ToolResult(success=False, error=f"Tool '{server_name}/{tool_name}' not found")

        try:
            data = await tool.call(args)
        except Exception as e:
            logger.warning(f"Tool {server_name}/{tool_name} failed: {e}")
            return ToolResult(success=False, error=str(e))
        return ToolResult(success=True, data=data)
