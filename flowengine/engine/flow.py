"""
Flow orchestration.

A ``Flow`` wraps a start node and walks the graph one node at a time:
run the node, read its action, follow the matching successor. A walk ends
in one of three ways:

- completed: the action has no matching successor
- paused: a node asked to stay, or debug stepping is on
- aborted: an ``AbortExecution`` escaped a node

A Flow is itself a node, so flows nest inside other flows.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass
from enum import Enum
from collections import deque
import copy
import logging

from flowengine.config import settings
from flowengine.engine.collaborators import NodeServices
from flowengine.engine.errors import AbortExecution, FlowContractError, StepLimitExceeded
from flowengine.engine.node import (
    BaseNode,
    NodeRun,
    DEFAULT_ACTION,
    STAY_ON_NODE_ACTION,
)
from flowengine.engine.state import SharedState


logger = logging.getLogger(__name__)


class ExecutionStatus(str, Enum):
    """Status of a traversal."""
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class FlowOutcome:
    """How one orchestration pass ended."""
    status: ExecutionStatus
    last_action: Optional[str] = None
    last_node_id: Optional[str] = None
    steps: int = 0


class Flow(BaseNode):
    """
    A node that runs a graph of nodes.

    Attributes:
        start: Template of the first node
        node_params: Per-node-id params table. An entry replaces the
            params of the node with that id for the duration of a step.
        max_steps: Node visits allowed per orchestration pass
    """

    node_type = "flow"

    def __init__(
        self,
        start: BaseNode,
        node_id: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        node_params: Optional[Dict[str, Dict[str, Any]]] = None,
        services: Optional[NodeServices] = None,
        max_steps: Optional[int] = None,
    ):
        super().__init__(node_id, params, services)
        self.start = start
        self.node_params: Dict[str, Dict[str, Any]] = node_params or {}
        self.max_steps = max_steps or settings.MAX_FLOW_STEPS
        self._status: Optional[ExecutionStatus] = None

    def clone(self) -> "Flow":
        # The start template is shared; it is cloned again on every walk.
        twin = super().clone()
        twin.node_params = copy.deepcopy(self.node_params)
        return twin

    def get_start_node(self) -> BaseNode:
        return self.start.clone()

    def find_node(self, node_id: str) -> Optional[BaseNode]:
        """Breadth-first search from the start node; returns a clone or None."""
        queue = deque([self.start])
        visited = {self.start.node_id}
        while queue:
            node = queue.popleft()
            if node.node_id == node_id:
                return node.clone()
            for successor in node.successors.values():
                if successor.node_id not in visited:
                    visited.add(successor.node_id)
                    queue.append(successor)
        return None

    def _effective_params(self, node: BaseNode, flow_params: Dict[str, Any]) -> Dict[str, Any]:
        if node.node_id in self.node_params:
            return self.node_params[node.node_id]
        return {**node.params, **flow_params}

    def _entry_node(self, state: SharedState) -> BaseNode:
        resume_id = state.current_node_id
        if not resume_id:
            return self.get_start_node()

        logger.info(f"Resuming flow at node {resume_id}")
        state.current_node_id = None
        node = self.find_node(resume_id)
        if node is None:
            logger.warning(f"Could not find node {resume_id}, starting from the beginning")
            return self.get_start_node()
        return node

    @property
    def status(self) -> Optional[ExecutionStatus]:
        """Status of the latest orchestration pass, None before the first."""
        return self._status

    async def orchestrate(
        self,
        state: SharedState,
        flow_params: Optional[Dict[str, Any]] = None,
    ) -> FlowOutcome:
        """
        Walk the graph from the resume position or the start node.

        Args:
            state: Shared state of the run
            flow_params: Params for nodes without an entry in ``node_params``
                (defaults to this flow's own params)

        Returns:
            FlowOutcome describing how the walk ended

        Raises:
            AbortExecution: Propagated unchanged from any node
            StepLimitExceeded: When more than ``max_steps`` nodes run
        """
        self._status = ExecutionStatus.RUNNING
        try:
            outcome = await self._walk(state, self.params if flow_params is None else flow_params)
        except AbortExecution:
            self._status = ExecutionStatus.ABORTED
            raise
        self._status = outcome.status
        return outcome

    async def _walk(self, state: SharedState, flow_params: Dict[str, Any]) -> FlowOutcome:
        current: Optional[BaseNode] = self._entry_node(state)
        steps = 0
        last_action: Optional[str] = None
        last_node_id: Optional[str] = None

        while current is not None:
            if steps >= self.max_steps:
                raise StepLimitExceeded(
                    f"Flow '{self.node_id}' exceeded {self.max_steps} steps"
                )
            steps += 1

            current.set_params(self._effective_params(current, flow_params))
            result = await current.run(state)
            last_action = result.action
            last_node_id = current.node_id
            logger.debug(f"Node {current.node_id} returned action '{result.action}'")

            if result.action == STAY_ON_NODE_ACTION:
                state.current_node_id = current.node_id
                logger.info(f"Flow paused at node {current.node_id}")
                return FlowOutcome(ExecutionStatus.PAUSED, last_action, last_node_id, steps)

            successor = current.get_successor(result.action)
            if successor is not None and state.debug:
                state.current_node_id = successor.node_id
                logger.info(f"Debug step: paused before node {successor.node_id}")
                return FlowOutcome(ExecutionStatus.PAUSED, last_action, last_node_id, steps)

            current = successor

        state.current_node_id = None
        logger.debug(f"Flow {self.node_id} completed after {steps} steps")
        return FlowOutcome(ExecutionStatus.COMPLETED, last_action, last_node_id, steps)

    async def execute(self, prep_result: Any) -> Any:
        raise FlowContractError("Flow node does not support direct execution")

    async def post(self, state: SharedState, prep_result: Any, exec_result: Any) -> Optional[str]:
        return DEFAULT_ACTION

    async def run(self, state: SharedState) -> NodeRun:
        """
        Run the whole graph as a single node step.

        A pause inside the graph is remembered in
        ``state.nested_positions`` and reported to the enclosing flow as
        a stay action, so the enclosing flow pauses on this node and the
        walk picks up at the same inner node on resume.
        """
        prep_result = await self.prep(state)
        if self.node_id in state.nested_positions:
            state.current_node_id = state.nested_positions.pop(self.node_id)
        outcome = await self.orchestrate(state)

        if outcome.status == ExecutionStatus.PAUSED:
            state.nested_positions[self.node_id] = state.current_node_id
            return NodeRun(STAY_ON_NODE_ACTION, prep_result, outcome)

        action = await self.post(state, prep_result, outcome)
        return NodeRun(action or DEFAULT_ACTION, prep_result, outcome)


class BatchFlow(Flow):
    """
    Runs the graph once per params dict against the same shared state.

    ``prep`` returns the list of params dicts; by default it reads
    ``params["batch"]``. Each dict acts as the flow params of one pass.

    A pass that pauses suspends the whole batch: the pass index goes to
    ``state.batch_positions`` and the inner position to
    ``state.nested_positions``, and the enclosing flow sees a stay action.
    On resume the batch picks up at the paused pass, with that pass's
    params, and runs the remaining passes.
    """

    node_type = "batch_flow"

    async def prep(self, state: SharedState) -> List[Dict[str, Any]]:
        return list(self.params.get("batch", []))

    async def post(self, state: SharedState, prep_result: Any, exec_result: Any) -> Optional[str]:
        logger.debug(f"Batch flow {self.node_id} ran {len(exec_result)} of {len(prep_result)} passes")
        return DEFAULT_ACTION

    async def run(self, state: SharedState) -> NodeRun:
        batch = await self.prep(state)
        first_pass = state.batch_positions.pop(self.node_id, 0)
        if self.node_id in state.nested_positions:
            state.current_node_id = state.nested_positions.pop(self.node_id)
        if first_pass:
            logger.info(f"Resuming batch flow {self.node_id} at pass {first_pass + 1} of {len(batch)}")

        outcomes: List[FlowOutcome] = []
        for index in range(first_pass, len(batch)):
            outcome = await self.orchestrate(state, batch[index])
            outcomes.append(outcome)
            if outcome.status == ExecutionStatus.PAUSED:
                state.batch_positions[self.node_id] = index
                state.nested_positions[self.node_id] = state.current_node_id
                logger.info(f"Batch flow {self.node_id} paused in pass {index + 1} of {len(batch)}")
                return NodeRun(STAY_ON_NODE_ACTION, batch, outcomes)

        action = await self.post(state, batch, outcomes)
        return NodeRun(action or DEFAULT_ACTION, batch, outcomes)
