"""
Shared fixtures: scripted stand-ins for the collaborator interfaces.
"""

from typing import Any, Dict, List, Optional
import pytest

from flowengine.engine.collaborators import (
    ModelRequest,
    ModelResponse,
    NodeServices,
    PromptRenderOptions,
    ToolDefinition,
    ToolResolution,
    ToolResult,
)


class FakePromptRenderer:
    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    async def render_prompt(self, flow_id: str, node_id: str, options: PromptRenderOptions) -> str:
        self.calls.append({"flow_id": flow_id, "node_id": node_id, "options": options})
        return f"prompt for {node_id}"


class ScriptedModelInvoker:
    """Returns the queued responses in order, then plain "ok" replies."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.requests: List[ModelRequest] = []

    async def invoke_model(self, request: ModelRequest) -> ModelResponse:
        self.requests.append(request.model_copy(deep=True))
        if not self.responses:
            return ModelResponse(success=True, content="ok")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeToolResolver:
    def __init__(self, tools: Optional[List[ToolDefinition]] = None, failures: int = 0):
        self.tools = tools or []
        self.failures = failures
        self.calls: List[Dict[str, Any]] = []

    async def resolve_tools(self, node_config: Dict[str, Any]) -> ToolResolution:
        self.calls.append(node_config)
        if self.failures > 0:
            self.failures -= 1
            return ToolResolution(success=False, error="server unavailable")
        return ToolResolution(success=True, available_tools=self.tools)


class FakeToolInvoker:
    def __init__(self, results: Optional[Dict[str, ToolResult]] = None, raise_error: bool = False):
        self.results = results or {}
        self.raise_error = raise_error
        self.calls: List[Dict[str, Any]] = []

    async def invoke_tool(self, server_name: str, tool_name: str, args: Dict[str, Any]) -> ToolResult:
        self.calls.append({"server": server_name, "tool": tool_name, "args": args})
        if self.raise_error:
            raise ConnectionError("tool server went away")
        return self.results.get(tool_name, ToolResult(success=True, data={"echo": args}))


def tool_call(call_id: str, server: str, tool: str, arguments: str = "{}") -> Dict[str, Any]:
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": f"_-_-_{server}_-_-_{tool}", "arguments": arguments},
    }


@pytest.fixture
def prompt_renderer():
    return FakePromptRenderer()


@pytest.fixture
def model_invoker():
    return ScriptedModelInvoker()


@pytest.fixture
def tool_invoker():
    return FakeToolInvoker()


@pytest.fixture
def weather_tool():
    return ToolDefinition(
        server_name="weather",
        name="forecast",
        description="Forecast for a city",
        input_schema={"type": "object", "properties": {"city": {"type": "string"}}},
    )


@pytest.fixture
def services(prompt_renderer, model_invoker, tool_invoker, weather_tool):
    return NodeServices(
        prompt_renderer=prompt_renderer,
        tool_resolver=FakeToolResolver([weather_tool]),
        model_invoker=model_invoker,
        tool_invoker=tool_invoker,
    )
