"""
Exceptions raised by the engine.

Three families exist. Construction errors (``GraphBuildError``) are raised
while wiring a graph, before any node runs. Aborting errors
(``AbortExecution``) terminate a run: orchestration and the run facade let
them propagate untouched. ``FlowContractError`` marks misuse of the node
API itself. Ordinary node failures are never raised; they travel as
``NodeFailure`` values (see ``flowengine.engine.node``).
"""

from typing import Any, Dict, Optional


class FlowEngineError(Exception):
    """Base class for every engine error."""


# ============================================================
# Construction errors
# ============================================================

class GraphBuildError(FlowEngineError):
    """A graph description could not be turned into wired nodes."""


class DuplicateActionError(GraphBuildError):
    """An action name was registered twice on the same node."""

    def __init__(self, node_id: str, action: str):
        self.node_id = node_id
        self.action = action
        super().__init__(f"Action '{action}' already exists on node '{node_id}'")


class UnknownNodeTypeError(GraphBuildError):
    """A node descriptor carries a type with no registered implementation."""

    def __init__(self, node_id: str, node_type: str):
        self.node_id = node_id
        self.node_type = node_type
        super().__init__(f"Unknown node type '{node_type}' for node '{node_id}'")


class StartNodeError(GraphBuildError):
    """The graph has zero or several start nodes."""


# ============================================================
# Aborting errors
# ============================================================

class AbortExecution(FlowEngineError):
    """
    A fault that terminates the whole run.

    Raised from a node's execute (or prep) and propagated through the
    orchestration loop without any further successor resolution.
    """


class ModelExecutionError(AbortExecution):
    """
    The model provider failed in a way the run cannot recover from.

    Attributes:
        kind: Provider error class (e.g. ``invalid_request_error``)
        code: Provider error code
        message: Provider message
        model_id: Bound model the call was made with
        details: Extra provider fields (param, status, ...)
    """

    def __init__(
        self,
        message: str,
        kind: str = "model_error",
        code: Optional[str] = None,
        model_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.kind = kind
        self.code = code
        self.model_id = model_id
        self.details = details or {}
        super().__init__(message)


class ToolExecutionError(AbortExecution):
    """A tool invoker raised instead of returning a failure result."""

    def __init__(self, server_name: str, tool_name: str, message: str):
        self.server_name = server_name
        self.tool_name = tool_name
        super().__init__(f"Tool '{server_name}/{tool_name}' failed: {message}")


class ToolResolutionFailed(AbortExecution):
    """The tool resolver could not produce a tool set for a node."""


class NodeConfigurationError(AbortExecution):
    """A node reached execution without the properties it needs."""


class RetryExhaustedError(AbortExecution):
    """A retrying node ran out of attempts."""

    def __init__(self, node_id: str, attempts: int, last_error: Optional[BaseException] = None):
        self.node_id = node_id
        self.attempts = attempts
        self.last_error = last_error
        message = f"Max retries reached after {attempts} attempts on node '{node_id}'"
        if last_error is not None:
            message += f": {last_error}"
        super().__init__(message)


class StepLimitExceeded(AbortExecution):
    """A traversal visited more nodes than the configured ceiling."""


# ============================================================
# Contract and lookup errors
# ============================================================

class FlowContractError(FlowEngineError):
    """A node API was used in a way it does not support."""


class FlowNotFoundError(FlowEngineError):
    """No stored description exists under the requested flow name."""

    def __init__(self, flow_name: str):
        self.flow_name = flow_name
        super().__init__(f"Flow '{flow_name}' not found")
