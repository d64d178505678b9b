"""
Pydantic Schemas for API Request/Response Models.

These schemas define the structure of data flowing through the API,
providing automatic validation and documentation.
"""

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field

from flowengine.engine.flow import ExecutionStatus
from flowengine.engine.graph import EdgeDescriptor, GraphDescription, NodeDescriptor


# ============================================================
# Flow Schemas
# ============================================================

class FlowCreateRequest(BaseModel):
    """Request to store a new flow."""
    name: str = Field(..., min_length=1, description="Unique name of the flow")
    description: str = Field("", description="What this flow does")
    nodes: List[NodeDescriptor] = Field(..., description="Node descriptors")
    edges: List[EdgeDescriptor] = Field(
        default_factory=list,
        description="Edges; each id is the action name on its source node",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "name": "support-bot",
                "description": "Answers support questions",
                "nodes": [
                    {"id": "start", "label": "Start", "type": "start",
                     "properties": {"promptTemplate": "You are a support agent."}},
                    {"id": "answer", "label": "Answer", "type": "process",
                     "properties": {"boundModel": "echo"}},
                    {"id": "finish", "label": "Finish", "type": "finish", "properties": {}},
                ],
                "edges": [
                    {"id": "e1", "source": "start", "target": "answer"},
                    {"id": "e2", "source": "answer", "target": "finish"},
                ],
            }
        }

    def to_description(self) -> GraphDescription:
        return GraphDescription(
            name=self.name,
            description=self.description,
            nodes=self.nodes,
            edges=self.edges,
        )


class FlowCreateResponse(BaseModel):
    """Response after storing a flow."""
    name: str
    node_count: int
    edge_count: int
    mermaid: str
    message: str = "Flow created successfully"


class FlowInfoResponse(BaseModel):
    """A stored flow with its diagram."""
    name: str
    description: str
    nodes: List[NodeDescriptor]
    edges: List[EdgeDescriptor]
    mermaid: str
    created_at: str
    updated_at: str


class FlowSummary(BaseModel):
    name: str
    description: str
    node_count: int
    edge_count: int


class FlowListResponse(BaseModel):
    """Response listing stored flows."""
    flows: List[FlowSummary]
    total: int


# ============================================================
# Run Schemas
# ============================================================

class FlowRunRequest(BaseModel):
    """Request to run a flow, or resume a paused conversation."""
    messages: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Messages to add to the conversation",
    )
    conversation_id: Optional[str] = Field(
        None, description="Continue this conversation (generated when omitted)"
    )
    require_approval: bool = Field(False, description="Pause before running model tool calls")
    debug: bool = Field(False, description="Pause between nodes")
    reject_tool_calls: bool = Field(
        False, description="Reject the tool calls a paused conversation is waiting on"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "messages": [{"role": "user", "content": "hello"}],
                "conversation_id": None,
                "require_approval": False,
                "debug": False,
                "reject_tool_calls": False,
            }
        }


class FlowRunResponse(BaseModel):
    """Response after running a flow."""
    conversation_id: str
    status: ExecutionStatus
    result: Union[str, Dict[str, Any], None]
    messages: List[Dict[str, Any]]
    execution_time: float
    node_execution_tracker: List[Dict[str, Any]]
    current_node_id: Optional[str] = None
    pending_tool_calls: List[Dict[str, Any]] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "conversation_id": "c0ffee00-0000-0000-0000-000000000000",
                "status": "completed",
                "result": "Echo: hello",
                "messages": [
                    {"role": "system", "content": "You are a helpful assistant."},
                    {"role": "user", "content": "hello"},
                    {"role": "assistant", "content": "Echo: hello"},
                ],
                "execution_time": 0.004,
                "node_execution_tracker": [
                    {"node_type": "ProcessNode", "node_id": "assistant",
                     "node_name": "Assistant", "timestamp": "2024-01-01T12:00:00"}
                ],
                "current_node_id": None,
                "pending_tool_calls": [],
            }
        }


# ============================================================
# Tool Schemas
# ============================================================

class ToolInfo(BaseModel):
    """Information about a registered tool."""
    server_name: str
    name: str
    description: str
    input_schema: Dict[str, Any]


class ToolListResponse(BaseModel):
    """Response listing registered tools."""
    tools: List[ToolInfo]
    servers: List[str]
    total: int


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[Any] = None
    status_code: int


class ProviderErrorBody(BaseModel):
    """OpenAI-style error body."""
    message: str
    type: str
    code: Optional[str] = None
    param: Optional[str] = None
