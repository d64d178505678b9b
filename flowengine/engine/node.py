"""
Node Definition for FlowEngine.

A node is a unit of work with a three phase lifecycle:

- ``prep`` reads the shared state and builds a prepared view
- ``execute`` does the work on that view
- ``post`` writes results back to the state and returns an action

The action names the outgoing edge to follow. Nodes are templates: the
orchestrator only ever runs clones, so params mutated during a run never
leak into the graph that produced them.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, field
import asyncio
import copy
import logging
import uuid

from flowengine.engine.collaborators import NodeServices
from flowengine.engine.errors import AbortExecution, DuplicateActionError, RetryExhaustedError
from flowengine.engine.state import SharedState


logger = logging.getLogger(__name__)


# Action tokens
DEFAULT_ACTION = "default"
STAY_ON_NODE_ACTION = "__stay_on_node__"
FINAL_RESPONSE_ACTION = "__final_response__"

RESERVED_ACTIONS = frozenset({DEFAULT_ACTION, STAY_ON_NODE_ACTION, FINAL_RESPONSE_ACTION})


@dataclass
class NodeFailure:
    """
    A recoverable failure returned from ``execute``.

    Post still runs and records it; the run carries on.
    """
    error: str
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.error,
            "error_details": self.details,
        }


@dataclass
class NodeRun:
    """What a single ``run`` produced."""
    action: str
    prep_result: Any = None
    exec_result: Any = None


class BaseNode:
    """
    Base class for every node.

    Attributes:
        node_id: Configuration id, unique within a graph
        params: Free-form configuration. Built graphs store the node
            descriptor here (``id``, ``label``, ``type``, ``properties``).
        successors: Ordered action name -> successor node mapping
        services: Collaborators this node may call
    """

    node_type = "base"

    def __init__(
        self,
        node_id: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        services: Optional[NodeServices] = None,
    ):
        self.node_id = node_id or str(uuid.uuid4())
        self.params: Dict[str, Any] = params or {}
        self.successors: Dict[str, "BaseNode"] = {}
        self.services = services or NodeServices()

    @property
    def name(self) -> str:
        return self.params.get("label") or self.node_id

    @property
    def properties(self) -> Dict[str, Any]:
        return self.params.get("properties") or {}

    def set_params(self, params: Dict[str, Any]) -> None:
        """Replace this node's params with a private copy of ``params``."""
        self.params = copy.deepcopy(params)

    # --------------------------------------------------------
    # Wiring
    # --------------------------------------------------------

    def add_successor(self, node: "BaseNode", action: str = DEFAULT_ACTION) -> "BaseNode":
        """
        Register ``node`` as the target of ``action``.

        Returns the successor so chains can be written left to right.

        Raises:
            DuplicateActionError: If ``action`` is already registered
        """
        if action in self.successors:
            raise DuplicateActionError(self.node_id, action)
        self.successors[action] = node
        return node

    def get_successor(self, action: str) -> Optional["BaseNode"]:
        """Return a clone of the node behind ``action``, or None."""
        target = self.successors.get(action)
        if target is None:
            return None
        return target.clone()

    def clone(self) -> "BaseNode":
        """
        Copy this node for traversal.

        Params are copied deeply and the successor map shallowly, so the
        clone shares its successor templates but nothing mutable.
        """
        twin = copy.copy(self)
        twin.params = copy.deepcopy(self.params)
        twin.successors = dict(self.successors)
        return twin

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    async def prep(self, state: SharedState) -> Any:
        return None

    async def execute(self, prep_result: Any) -> Any:
        return None

    async def post(self, state: SharedState, prep_result: Any, exec_result: Any) -> Optional[str]:
        return DEFAULT_ACTION

    async def _execute_phase(self, prep_result: Any) -> Any:
        return await self.execute(prep_result)

    async def run(self, state: SharedState) -> NodeRun:
        """Run prep, execute and post once and return the chosen action."""
        logger.debug(f"Running node {self.node_id} ({self.node_type})")
        prep_result = await self.prep(state)
        exec_result = await self._execute_phase(prep_result)
        action = await self.post(state, prep_result, exec_result)
        return NodeRun(
            action=action or DEFAULT_ACTION,
            prep_result=prep_result,
            exec_result=exec_result,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(node_id='{self.node_id}', actions={list(self.successors)})"


class RetryNode(BaseNode):
    """
    A node whose execute phase is retried on error.

    Each exception raised by ``execute`` counts as one attempt, with a
    fixed pause of ``interval_ms`` between attempts. Aborting errors are
    never retried. Running out of attempts raises ``RetryExhaustedError``.
    """

    def __init__(
        self,
        node_id: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        services: Optional[NodeServices] = None,
        max_retries: int = 1,
        interval_ms: int = 0,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        super().__init__(node_id, params, services)
        self.max_retries = max_retries
        self.interval_ms = interval_ms

    async def _execute_phase(self, prep_result: Any) -> Any:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return await self.execute(prep_result)
            except AbortExecution:
                raise
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Node {self.node_id} attempt {attempt}/{self.max_retries} failed: {e}"
                )
                if attempt < self.max_retries and self.interval_ms > 0:
                    await asyncio.sleep(self.interval_ms / 1000)
        raise RetryExhaustedError(self.node_id, self.max_retries, last_error) from last_error
