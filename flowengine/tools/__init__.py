"""
Tools package - Local tool registry and its resolver/invoker adapters.
"""

from flowengine.tools.registry import ToolRegistry, tool_registry, register_tool
from flowengine.tools.local import LocalToolResolver, LocalToolInvoker

__all__ = [
    "ToolRegistry",
    "tool_registry",
    "register_tool",
    "LocalToolResolver",
    "LocalToolInvoker",
]
