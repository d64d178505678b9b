"""
Tool node: binds a tool server to the run.

Bound to a process node through an edge, the node's descriptor is handed
to the process node as ``mcpNodes`` at build time. Placed on the flow
path, it resolves its server's tools ahead of time and stores them in the
run's tool context, retrying resolution a few times before giving up.
"""

from typing import Any, Dict, Optional
import logging

from flowengine.config import settings
from flowengine.engine.collaborators import NodeServices, ToolResolution
from flowengine.engine.errors import ToolResolutionFailed
from flowengine.engine.node import RetryNode, DEFAULT_ACTION
from flowengine.engine.state import SharedState, ToolContext
from flowengine.nodes.tooling import TOOL_NODE_TYPE


logger = logging.getLogger(__name__)


class ToolNode(RetryNode):

    node_type = TOOL_NODE_TYPE

    def __init__(
        self,
        node_id: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        services: Optional[NodeServices] = None,
        max_retries: Optional[int] = None,
        interval_ms: Optional[int] = None,
    ):
        super().__init__(
            node_id,
            params,
            services,
            max_retries=settings.TOOL_RESOLUTION_RETRIES if max_retries is None else max_retries,
            interval_ms=settings.TOOL_RESOLUTION_RETRY_INTERVAL_MS if interval_ms is None else interval_ms,
        )

    async def prep(self, state: SharedState) -> Dict[str, Any]:
        if self.services.tool_resolver is None:
            raise ToolResolutionFailed(f"Tool node {self.node_id} has no tool resolver")
        return {"mcpNodes": [dict(self.params, id=self.params.get("id") or self.node_id)]}

    async def execute(self, prep_result: Dict[str, Any]) -> ToolResolution:
        resolution = await self.services.tool_resolver.resolve_tools(prep_result)
        if not resolution.success:
            raise RuntimeError(resolution.error or "Tool resolution failed")
        return resolution

    async def post(self, state: SharedState, prep_result: Dict[str, Any], exec_result: ToolResolution) -> Optional[str]:
        if state.tool_context is None:
            state.tool_context = ToolContext()
        state.tool_context.merge(exec_result.available_tools)
        logger.info(
            f"Tool node {self.node_id} added {len(exec_result.available_tools)} tools "
            f"({len(state.tool_context.available_tools)} available)"
        )

        if settings.ENABLE_EXECUTION_TRACKER:
            state.track(
                "MCPNode",
                self.params.get("id") or self.node_id,
                self.params.get("label") or self.properties.get("name") or "MCP Node",
                server=self.properties.get("mcpServer"),
            )
        if self.successors:
            return next(iter(self.successors))
        return DEFAULT_ACTION
