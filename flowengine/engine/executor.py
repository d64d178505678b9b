"""
Run facade.

``FlowExecutor`` loads a stored flow by name, builds it, walks it against
a caller supplied ``SharedState`` and packages what the walk left behind
as an ``ExecutionResult``. Aborting errors are logged and re-raised; the
caller decides how to surface them.
"""

from typing import Any, Dict, List, Optional, Protocol, Union
from dataclasses import dataclass, field
import time
import logging

from flowengine.engine.collaborators import NodeServices
from flowengine.engine.errors import AbortExecution, FlowNotFoundError
from flowengine.engine.flow import ExecutionStatus
from flowengine.engine.graph import GraphBuilder, GraphDescription
from flowengine.engine.state import SharedState


logger = logging.getLogger(__name__)


class FlowLoader(Protocol):
    async def load(self, name: str) -> Optional[GraphDescription]:
        ...


@dataclass
class ExecutionResult:
    """Result of one call to ``FlowExecutor.run``."""
    status: ExecutionStatus
    result: Union[str, Dict[str, Any], None]
    messages: List[Dict[str, Any]]
    execution_time: float
    node_execution_tracker: List[Dict[str, Any]] = field(default_factory=list)
    current_node_id: Optional[str] = None
    pending_tool_calls: List[Dict[str, Any]] = field(default_factory=list)


class FlowExecutor:
    """
    Loads, builds and runs named flows.

    Usage:
        executor = FlowExecutor(flow_storage, services)
        result = await executor.run("my-flow", SharedState(messages=[...]))
        if result.status == ExecutionStatus.PAUSED:
            # persist the state, resume later with the same object
            ...
    """

    def __init__(
        self,
        loader: FlowLoader,
        services: Optional[NodeServices] = None,
        max_steps: Optional[int] = None,
    ):
        self.loader = loader
        self.builder = GraphBuilder(services, max_steps=max_steps)

    async def run(self, flow_name: str, state: SharedState) -> ExecutionResult:
        """
        Run (or resume) a flow.

        Args:
            flow_name: Name of the stored flow
            state: State to run against. A set ``current_node_id`` resumes
                there; on pause it holds the new resume position.

        Returns:
            ExecutionResult with status ``completed`` or ``paused``

        Raises:
            FlowNotFoundError: No flow stored under ``flow_name``
            GraphBuildError: The stored description is invalid
            AbortExecution: A node aborted the run
        """
        description = await self.loader.load(flow_name)
        if description is None:
            raise FlowNotFoundError(flow_name)

        built = self.builder.build(description)
        state.flow_id = flow_name

        start_time = time.time()
        logger.info(
            f"Running flow '{flow_name}'"
            + (f" from node {state.current_node_id}" if state.current_node_id else "")
        )
        try:
            outcome = await built.flow.orchestrate(state)
        except AbortExecution as e:
            logger.error(f"Flow '{flow_name}' {built.flow.status.value}: {e}")
            raise
        execution_time = time.time() - start_time

        logger.info(
            f"Flow '{flow_name}' {outcome.status.value} after {outcome.steps} steps "
            f"in {execution_time * 1000:.1f}ms"
        )
        return ExecutionResult(
            status=outcome.status,
            result=state.last_response,
            messages=state.messages,
            execution_time=execution_time,
            node_execution_tracker=state.node_execution_tracker,
            current_node_id=state.current_node_id,
            pending_tool_calls=state.pending_tool_calls,
        )
