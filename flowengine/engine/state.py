"""
Shared execution state for a single run.

One ``SharedState`` is threaded by reference through every node a run
visits. It is the only object the engine never clones, so it must not be
driven by two traversals at the same time.
"""

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field
from datetime import datetime

from flowengine.engine.collaborators import ToolDefinition


class ToolContext(BaseModel):
    """Tools resolved for the run, keyed by nothing but their order."""
    available_tools: List[ToolDefinition] = Field(default_factory=list)

    def merge(self, tools: List[ToolDefinition]) -> None:
        """Add tools that are not already present (by server and name)."""
        known = {(t.server_name, t.name) for t in self.available_tools}
        for tool in tools:
            if (tool.server_name, tool.name) not in known:
                self.available_tools.append(tool)
                known.add((tool.server_name, tool.name))


class SharedState(BaseModel):
    """
    Mutable context owned by one run.

    Attributes:
        messages: Conversation history, oldest first. Each entry is a
            role-tagged dict (``system``, ``user``, ``assistant``, ``tool``).
        flow_id: Name of the flow being run
        conversation_id: Caller supplied conversation identifier
        last_response: Final text, or a structured failure object
        node_execution_tracker: One entry per tracked node visit
        current_node_id: Paused position, set on suspension
        tool_context: Tools resolved ahead of process nodes
        pending_tool_calls: Tool calls waiting for approval
        require_approval: Suspend before executing model tool calls
        debug: Suspend between every pair of nodes
        nested_positions: Paused positions inside nested flows, keyed by
            the nested flow's node id
        batch_positions: Index of the paused pass of each batch flow,
            keyed by the batch flow's node id
    """

    messages: List[Dict[str, Any]] = Field(default_factory=list)
    flow_id: Optional[str] = None
    conversation_id: Optional[str] = None
    last_response: Union[str, Dict[str, Any], None] = None
    node_execution_tracker: List[Dict[str, Any]] = Field(default_factory=list)
    current_node_id: Optional[str] = None
    tool_context: Optional[ToolContext] = None
    pending_tool_calls: List[Dict[str, Any]] = Field(default_factory=list)
    require_approval: bool = False
    debug: bool = False
    nested_positions: Dict[str, str] = Field(default_factory=dict)
    batch_positions: Dict[str, int] = Field(default_factory=dict)

    @property
    def is_paused(self) -> bool:
        return self.current_node_id is not None

    def track(self, node_type: str, node_id: str, node_name: str, **extra: Any) -> Dict[str, Any]:
        """Append an entry to the execution tracker and return it."""
        entry = {
            "node_type": node_type,
            "node_id": node_id,
            "node_name": node_name,
            "timestamp": datetime.now().isoformat(),
            **extra,
        }
        self.node_execution_tracker.append(entry)
        return entry

    def to_dict(self) -> Dict[str, Any]:
        """Convert state to a plain, JSON-ready dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SharedState":
        """Rehydrate a state previously produced by ``to_dict``."""
        return cls.model_validate(data)
