"""
Finish node: publishes the final assistant message as the run's response.
"""

from typing import Any, Dict, List, Optional
import logging

from flowengine.config import settings
from flowengine.engine.node import BaseNode, FINAL_RESPONSE_ACTION
from flowengine.engine.state import SharedState


logger = logging.getLogger(__name__)


class FinishNode(BaseNode):
    """
    Terminal node.

    Follows its first outgoing edge when it has one, so several branches
    can converge on a finish node and still continue. Otherwise it returns
    the final-response action, which ends the walk.
    """

    node_type = "finish"

    async def prep(self, state: SharedState) -> List[Dict[str, Any]]:
        return list(state.messages)

    async def execute(self, prep_result: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {"success": True}

    async def post(
        self,
        state: SharedState,
        prep_result: List[Dict[str, Any]],
        exec_result: Dict[str, Any],
    ) -> Optional[str]:
        if settings.ENABLE_EXECUTION_TRACKER:
            state.track(
                "FinishNode",
                self.params.get("id") or self.node_id,
                self.params.get("label") or self.properties.get("name") or "Finish Node",
            )

        last_message = prep_result[-1] if prep_result else None
        if last_message and last_message.get("role") == "assistant" and last_message.get("content"):
            content = last_message["content"]
            if isinstance(content, str):
                state.last_response = content
            else:
                state.last_response = {"content": content, "role": "assistant"}

        if self.successors:
            return next(iter(self.successors))
        logger.debug(f"Finish node {self.node_id} ends the flow")
        return FINAL_RESPONSE_ACTION
