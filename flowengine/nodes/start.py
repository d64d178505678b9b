"""
Start node: the single entry point of a built graph.
"""

from typing import Optional

from flowengine.config import settings
from flowengine.engine.node import BaseNode, DEFAULT_ACTION
from flowengine.engine.state import SharedState


class StartNode(BaseNode):
    """
    Marks where a walk begins.

    The start node's ``promptTemplate`` property is read by the prompt
    renderer, not by the node itself; at run time it only records its
    visit and moves on along its first edge.
    """

    node_type = "start"

    async def post(self, state: SharedState, prep_result, exec_result) -> Optional[str]:
        if settings.ENABLE_EXECUTION_TRACKER:
            state.track(
                "StartNode",
                self.params.get("id") or self.node_id,
                self.params.get("label") or self.properties.get("name") or "Start Node",
            )
        if self.successors:
            return next(iter(self.successors))
        return DEFAULT_ACTION
