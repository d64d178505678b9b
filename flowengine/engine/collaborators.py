"""
Collaborator interfaces consumed by the engine.

The engine never renders prompts, talks to a model provider or speaks a
tool protocol itself. Nodes reach those services through the narrow async
protocols below, bundled per graph in ``NodeServices``.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable
from dataclasses import dataclass
from pydantic import BaseModel, Field


# ============================================================
# Value types
# ============================================================

class ToolDefinition(BaseModel):
    """A tool exposed by a tool server."""
    server_name: str
    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class ToolResolution(BaseModel):
    """Outcome of resolving the tools bound to a node."""
    success: bool = True
    available_tools: List[ToolDefinition] = Field(default_factory=list)
    error: Optional[str] = None


class ToolResult(BaseModel):
    """Outcome of a single tool invocation."""
    success: bool
    data: Any = None
    error: Optional[str] = None


class PromptRenderOptions(BaseModel):
    """Options passed to the prompt renderer."""
    render_mode: str = "rendered"
    include_conversation_history: bool = False
    exclude_model_prompt: bool = False
    exclude_start_node_prompt: bool = False


class ProviderError(BaseModel):
    """Error reported by a model provider."""
    kind: str = "model_error"
    code: Optional[str] = None
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ModelRequest(BaseModel):
    """Everything a model invoker needs for one completion call."""
    model_id: str
    prompt: str
    messages: List[Dict[str, Any]]
    tools: List[Dict[str, Any]] = Field(default_factory=list)
    iteration: int = 1
    max_iterations: int = 30
    node_name: Optional[str] = None


class ModelResponse(BaseModel):
    """
    Result of a model invocation.

    ``messages`` may carry the provider's own view of the conversation
    after the call; when empty, the caller appends the assistant turn
    itself. ``tool_calls`` uses the OpenAI function-call shape.
    """
    success: bool
    content: Optional[str] = None
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    tool_calls: List[Dict[str, Any]] = Field(default_factory=list)
    raw: Any = None
    error: Optional[ProviderError] = None


# ============================================================
# Protocols
# ============================================================

@runtime_checkable
class PromptRenderer(Protocol):
    async def render_prompt(
        self, flow_id: str, node_id: str, options: PromptRenderOptions
    ) -> str:
        ...


@runtime_checkable
class ToolResolver(Protocol):
    async def resolve_tools(self, node_config: Dict[str, Any]) -> ToolResolution:
        ...


@runtime_checkable
class ModelInvoker(Protocol):
    async def invoke_model(self, request: ModelRequest) -> ModelResponse:
        ...


@runtime_checkable
class ToolInvoker(Protocol):
    async def invoke_tool(
        self, server_name: str, tool_name: str, args: Dict[str, Any]
    ) -> ToolResult:
        ...


@dataclass
class NodeServices:
    """
    The collaborators available to nodes of one built graph.

    Every field is optional so graphs made only of start and finish nodes
    can be built without any backend.
    """
    prompt_renderer: Optional[PromptRenderer] = None
    tool_resolver: Optional[ToolResolver] = None
    model_invoker: Optional[ModelInvoker] = None
    tool_invoker: Optional[ToolInvoker] = None
