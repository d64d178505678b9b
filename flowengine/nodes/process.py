"""
Process node: one model turn, with tool round trips.

Failure channels:

- missing configuration or tool resolution failure in prep: raised (abort)
- provider failure reported by the model invoker: ``ModelExecutionError``
  raised (abort)
- a tool invoker that raises: ``ToolExecutionError`` raised (abort)
- anything else going wrong in execute: returned as ``NodeFailure``, which
  post records as the last response before the run moves on
"""

from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass, field
import logging

from flowengine.config import settings
from flowengine.engine.collaborators import (
    ModelRequest,
    PromptRenderOptions,
    ProviderError,
    ToolDefinition,
)
from flowengine.engine.errors import (
    AbortExecution,
    ModelExecutionError,
    NodeConfigurationError,
    ToolResolutionFailed,
)
from flowengine.engine.node import BaseNode, NodeFailure, DEFAULT_ACTION, STAY_ON_NODE_ACTION
from flowengine.engine.state import SharedState
from flowengine.nodes.tooling import (
    assistant_message,
    flow_control_actions,
    prepare_tools,
    run_tool_calls,
)


logger = logging.getLogger(__name__)


@dataclass
class ProcessPrepResult:
    node_id: str
    node_name: str
    bound_model: str
    prompt: str
    messages: List[Dict[str, Any]]
    available_tools: List[ToolDefinition] = field(default_factory=list)
    pending_tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    require_approval: bool = False


@dataclass
class ProcessExecResult:
    content: str
    messages: List[Dict[str, Any]]
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    raw: Any = None
    pending_tool_calls: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return True


def order_messages(prompt: str, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Put a single fresh system message first, followed by every non-system message."""
    system = {"role": "system", "content": prompt}
    return [system] + [m for m in messages if m.get("role") != "system"]


class ProcessNode(BaseNode):
    """
    Calls the bound model with the rendered prompt and the conversation.

    Node properties:
        boundModel: Model id handed to the model invoker (required)
        excludeModelPrompt: Render without the model's own prompt
        excludeStartNodePrompt: Render without the start node prompt
        mcpNodes: Tool node descriptors, resolved when the run has no
            tool context yet
    """

    node_type = "process"

    async def prep(self, state: SharedState) -> ProcessPrepResult:
        node_id = self.params.get("id") or self.node_id
        props = self.properties
        bound_model = props.get("boundModel")

        if not state.flow_id:
            raise NodeConfigurationError(f"Process node {node_id} requires a flow id")
        if not bound_model:
            raise NodeConfigurationError(f"Process node {node_id} requires a bound model")
        if self.services.prompt_renderer is None or self.services.model_invoker is None:
            raise NodeConfigurationError(
                f"Process node {node_id} requires a prompt renderer and a model invoker"
            )

        prompt = await self.services.prompt_renderer.render_prompt(
            state.flow_id,
            node_id,
            PromptRenderOptions(
                exclude_model_prompt=bool(props.get("excludeModelPrompt", False)),
                exclude_start_node_prompt=bool(props.get("excludeStartNodePrompt", False)),
            ),
        )
        logger.debug(f"Rendered prompt for {node_id} ({len(prompt)} chars)")

        return ProcessPrepResult(
            node_id=node_id,
            node_name=self.params.get("label") or props.get("name") or "Process Node",
            bound_model=bound_model,
            prompt=prompt,
            messages=order_messages(prompt, state.messages),
            available_tools=await self._resolve_tools(state),
            pending_tool_calls=list(state.pending_tool_calls),
            require_approval=state.require_approval,
        )

    async def _resolve_tools(self, state: SharedState) -> List[ToolDefinition]:
        if state.tool_context and state.tool_context.available_tools:
            return list(state.tool_context.available_tools)

        mcp_nodes = self.properties.get("mcpNodes") or []
        if not mcp_nodes:
            return []
        if self.services.tool_resolver is None:
            raise ToolResolutionFailed(
                f"Process node {self.node_id} has tool nodes but no tool resolver"
            )

        logger.info(f"Resolving tools for {len(mcp_nodes)} tool nodes")
        resolution = await self.services.tool_resolver.resolve_tools({"mcpNodes": mcp_nodes})
        if not resolution.success:
            raise ToolResolutionFailed(f"Failed to resolve tools: {resolution.error}")
        return resolution.available_tools

    async def execute(self, prep_result: ProcessPrepResult) -> Union[ProcessExecResult, NodeFailure]:
        try:
            return await self._converse(prep_result)
        except AbortExecution:
            raise
        except Exception as e:
            logger.error(f"Process node {prep_result.node_id} failed: {e}")
            return NodeFailure(error=str(e), details={"type": type(e).__name__})

    async def _converse(self, prep: ProcessPrepResult) -> ProcessExecResult:
        invoker = self.services.tool_invoker
        messages = list(prep.messages)

        if prep.pending_tool_calls:
            logger.info(f"Running {len(prep.pending_tool_calls)} approved tool calls")
            messages.extend(await run_tool_calls(prep.pending_tool_calls, invoker))

        tools = prepare_tools(prep.available_tools)
        max_iterations = settings.MAX_MODEL_ITERATIONS
        result = ProcessExecResult(content="", messages=messages)

        for iteration in range(1, max_iterations + 1):
            response = await self.services.model_invoker.invoke_model(
                ModelRequest(
                    model_id=prep.bound_model,
                    prompt=prep.prompt,
                    messages=messages,
                    tools=tools,
                    iteration=iteration,
                    max_iterations=max_iterations,
                    node_name=prep.node_name,
                )
            )
            if not response.success:
                error = response.error or ProviderError(message="Unknown model error")
                logger.error(f"Model {prep.bound_model} failed: {error.message}")
                raise ModelExecutionError(
                    f"Model execution failed: {error.message}",
                    kind=error.kind,
                    code=error.code,
                    model_id=prep.bound_model,
                    details=error.details,
                )

            if response.messages:
                messages = list(response.messages)
            else:
                messages.append(assistant_message(response.content, response.tool_calls))
            result = ProcessExecResult(
                content=response.content or "",
                messages=messages,
                tool_calls=response.tool_calls,
                raw=response.raw,
            )

            if not response.tool_calls:
                break
            if prep.require_approval:
                logger.info(f"{len(response.tool_calls)} tool calls awaiting approval")
                result.pending_tool_calls = list(response.tool_calls)
                break
            messages.extend(await run_tool_calls(response.tool_calls, invoker))
        else:
            logger.warning(f"Process node {prep.node_id} stopped after {max_iterations} model calls")

        return result

    async def post(
        self,
        state: SharedState,
        prep_result: ProcessPrepResult,
        exec_result: Union[ProcessExecResult, NodeFailure],
    ) -> Optional[str]:
        if isinstance(exec_result, NodeFailure):
            state.last_response = exec_result.to_dict()
            state.messages = prep_result.messages
            state.pending_tool_calls = []
        else:
            if exec_result.content:
                state.last_response = exec_result.content
            if exec_result.messages:
                state.messages = order_messages(prep_result.prompt, exec_result.messages)
            state.pending_tool_calls = exec_result.pending_tool_calls

        state.track(
            "ProcessNode",
            prep_result.node_id,
            prep_result.node_name,
            model=prep_result.bound_model,
            allowed_tools=", ".join(self.properties.get("allowedTools") or []) or None,
        )

        if state.pending_tool_calls:
            return STAY_ON_NODE_ACTION

        actions = flow_control_actions(self)
        if actions:
            return actions[0]
        if self.successors:
            logger.warning(f"Process node {self.node_id} only has tool binding edges")
        return DEFAULT_ACTION
