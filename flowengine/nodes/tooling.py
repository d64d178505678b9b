"""
Tool-call helpers shared by the concrete nodes.

Tools reach the model under a qualified name that encodes the server they
belong to, ``_-_-_<server>_-_-_<tool>``, so a tool call coming back from
the model can be routed to the right server.
"""

from typing import Any, Dict, List, Optional, Tuple
import json
import logging

from flowengine.engine.collaborators import ToolDefinition, ToolInvoker
from flowengine.engine.errors import ToolExecutionError
from flowengine.engine.node import BaseNode


logger = logging.getLogger(__name__)


TOOL_NAME_SEPARATOR = "_-_-_"

TOOL_RESULT_NUDGE = (
    "This is the result of the tool call. "
    "If you want to call any further tools, let me know"
)

REJECTED_TOOL_CALL_MESSAGE = "Error: Tool call was rejected by the user"

TOOL_NODE_TYPE = "mcp"


def format_tool_name(server_name: str, tool_name: str) -> str:
    return f"{TOOL_NAME_SEPARATOR}{server_name}{TOOL_NAME_SEPARATOR}{tool_name}"


def parse_tool_name(qualified_name: str) -> Tuple[str, str]:
    """
    Split a qualified tool name into ``(server_name, tool_name)``.

    Raises:
        ValueError: If the name does not carry a server prefix
    """
    if not qualified_name.startswith(TOOL_NAME_SEPARATOR):
        raise ValueError(f"Tool name '{qualified_name}' has no server prefix")
    parts = qualified_name[len(TOOL_NAME_SEPARATOR):].split(TOOL_NAME_SEPARATOR, 1)
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Malformed tool name '{qualified_name}'")
    return parts[0], parts[1]


def prepare_tools(tools: List[ToolDefinition]) -> List[Dict[str, Any]]:
    """Build OpenAI-style function descriptors for ``tools``."""
    return [
        {
            "type": "function",
            "function": {
                "name": format_tool_name(tool.server_name, tool.name),
                "description": tool.description,
                "parameters": tool.input_schema,
            },
        }
        for tool in tools
    ]


def assistant_message(content: Optional[str], tool_calls: List[Dict[str, Any]]) -> Dict[str, Any]:
    message: Dict[str, Any] = {"role": "assistant", "content": content or ""}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return message


def tool_message(tool_call_id: str, content: str) -> Dict[str, Any]:
    return {"role": "tool", "tool_call_id": tool_call_id, "content": content}


async def run_tool_calls(
    tool_calls: List[Dict[str, Any]],
    invoker: Optional[ToolInvoker],
) -> List[Dict[str, Any]]:
    """
    Execute model tool calls and return the messages to feed back.

    One ``tool`` message is produced per call, followed by a single user
    nudge. Bad names, bad arguments and failure results become
    ``Error: ...`` tool messages. An invoker that raises aborts the run.

    Raises:
        ToolExecutionError: If the invoker raises
    """
    messages: List[Dict[str, Any]] = []
    for call in tool_calls:
        call_id = call.get("id", "")
        function = call.get("function") or {}
        qualified_name = function.get("name", "")

        try:
            server_name, tool_name = parse_tool_name(qualified_name)
            raw_args = function.get("arguments") or "{}"
            args = json.loads(raw_args) if isinstance(raw_args, str) else dict(raw_args)
        except (ValueError, TypeError) as e:
            logger.warning(f"Invalid tool call {qualified_name!r}: {e}")
            messages.append(tool_message(call_id, f"Error: {e}"))
            continue

        if invoker is None:
            messages.append(tool_message(call_id, "Error: No tool invoker is configured"))
            continue

        logger.info(f"Calling tool {tool_name} on server {server_name}")
        try:
            result = await invoker.invoke_tool(server_name, tool_name, args)
        except Exception as e:
            raise ToolExecutionError(server_name, tool_name, str(e)) from e

        if result.success:
            content = json.dumps(result.data, default=str)
        else:
            content = f"Error: {result.error or 'Tool call failed'}"
        messages.append(tool_message(call_id, content))

    if messages:
        messages.append({"role": "user", "content": TOOL_RESULT_NUDGE})
    return messages


def reject_tool_calls(tool_calls: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Answer each pending tool call with a rejection message."""
    return [tool_message(call.get("id", ""), REJECTED_TOOL_CALL_MESSAGE) for call in tool_calls]


def is_tool_binding(action: str, target: BaseNode) -> bool:
    """True if an edge binds a tool server instead of moving control."""
    if target.node_type == TOOL_NODE_TYPE:
        return True
    return "-mcpEdge" in action or action.endswith("mcpEdge") or "-mcp" in action


def flow_control_actions(node: BaseNode) -> List[str]:
    return [
        action for action, target in node.successors.items()
        if not is_tool_binding(action, target)
    ]
