"""
Engine package - Core orchestration components.

The graph builder and run facade live in ``flowengine.engine.graph`` and
``flowengine.engine.executor``; they depend on ``flowengine.nodes`` and
are imported from there directly.
"""

from flowengine.engine.state import SharedState, ToolContext
from flowengine.engine.node import (
    BaseNode,
    RetryNode,
    NodeRun,
    NodeFailure,
    DEFAULT_ACTION,
    STAY_ON_NODE_ACTION,
    FINAL_RESPONSE_ACTION,
)
from flowengine.engine.flow import Flow, BatchFlow, FlowOutcome, ExecutionStatus

__all__ = [
    "SharedState",
    "ToolContext",
    "BaseNode",
    "RetryNode",
    "NodeRun",
    "NodeFailure",
    "DEFAULT_ACTION",
    "STAY_ON_NODE_ACTION",
    "FINAL_RESPONSE_ACTION",
    "Flow",
    "BatchFlow",
    "FlowOutcome",
    "ExecutionStatus",
]
