"""
Graph descriptions and the graph builder.

A stored flow is a ``GraphDescription``: node descriptors plus edges. The
``GraphBuilder`` turns it into wired node instances and wraps them in a
``Flow``. Each edge becomes a successor of its source node, keyed by the
edge's own id, so the action vocabulary of a node is exactly the ids of
its outgoing edges.
"""

from typing import Any, Dict, List, Optional, Type
from dataclasses import dataclass, field
from enum import Enum
import copy
import logging
import re

from pydantic import BaseModel, Field

from flowengine.engine.collaborators import NodeServices
from flowengine.engine.errors import GraphBuildError, StartNodeError, UnknownNodeTypeError
from flowengine.engine.flow import Flow
from flowengine.engine.node import BaseNode, RESERVED_ACTIONS
from flowengine.nodes import FinishNode, ProcessNode, StartNode, ToolNode


logger = logging.getLogger(__name__)


class NodeType(str, Enum):
    """Node kinds a graph description may use."""
    START = "start"
    PROCESS = "process"
    FINISH = "finish"
    MCP = "mcp"


NODE_REGISTRY: Dict[NodeType, Type[BaseNode]] = {
    NodeType.START: StartNode,
    NodeType.PROCESS: ProcessNode,
    NodeType.FINISH: FinishNode,
    NodeType.MCP: ToolNode,
}


# ============================================================
# Descriptions
# ============================================================

class NodeDescriptor(BaseModel):
    """One node of a stored graph."""
    id: str = Field(..., min_length=1)
    label: str = ""
    type: str
    properties: Dict[str, Any] = Field(default_factory=dict)


class EdgeDescriptor(BaseModel):
    """A directed edge; ``id`` doubles as the action name on ``source``."""
    id: str = Field(..., min_length=1)
    source: str
    target: str


class GraphDescription(BaseModel):
    """A named, stored flow."""
    name: str
    description: str = ""
    nodes: List[NodeDescriptor] = Field(default_factory=list)
    edges: List[EdgeDescriptor] = Field(default_factory=list)

    def to_mermaid(self) -> str:
        """Generate a Mermaid diagram of the graph."""
        lines = ["graph TD"]
        for node in self.nodes:
            key = _mermaid_id(node.id)
            label = (node.label or node.id).replace('"', "'")
            if node.type == NodeType.START:
                lines.append(f'    {key}(["{label}"])')
            elif node.type == NodeType.FINISH:
                lines.append(f'    {key}((("{label}")))')
            elif node.type == NodeType.MCP:
                lines.append(f'    {key}[["{label}"]]')
            else:
                lines.append(f'    {key}["{label}"]')
        for edge in self.edges:
            lines.append(f"    {_mermaid_id(edge.source)} -->|{edge.id}| {_mermaid_id(edge.target)}")
        return "\n".join(lines)


def _mermaid_id(node_id: str) -> str:
    return re.sub(r"[^A-Za-z0-9_]", "_", node_id)


# ============================================================
# Builder
# ============================================================

@dataclass
class BuiltGraph:
    """
    Result of building a description.

    Attributes:
        flow: Flow wrapping the start node
        node_params: Params per node id, also installed on the flow
        nodes: Node templates by id
    """
    flow: Flow
    node_params: Dict[str, Dict[str, Any]]
    nodes: Dict[str, BaseNode] = field(default_factory=dict)


class GraphBuilder:
    """
    Builds wired nodes from a ``GraphDescription``.

    Usage:
        built = GraphBuilder(services).build(description)
        outcome = await built.flow.orchestrate(state)
    """

    def __init__(
        self,
        services: Optional[NodeServices] = None,
        max_steps: Optional[int] = None,
    ):
        self.services = services or NodeServices()
        self.max_steps = max_steps

    def build(self, description: GraphDescription) -> BuiltGraph:
        """
        Build the graph.

        Raises:
            UnknownNodeTypeError: A descriptor type has no implementation
            StartNodeError: Zero or several start nodes
            DuplicateActionError: Two edges share an id on one source
            GraphBuildError: Duplicate node ids, dangling edges or edge
                ids that collide with reserved action tokens
        """
        node_params: Dict[str, Dict[str, Any]] = {}
        node_types: Dict[str, NodeType] = {}

        for descriptor in description.nodes:
            if descriptor.id in node_params:
                raise GraphBuildError(f"Duplicate node id '{descriptor.id}'")
            try:
                node_types[descriptor.id] = NodeType(descriptor.type)
            except ValueError:
                raise UnknownNodeTypeError(descriptor.id, descriptor.type) from None
            node_params[descriptor.id] = descriptor.model_dump()

        start_ids = [node_id for node_id, kind in node_types.items() if kind == NodeType.START]
        if len(start_ids) != 1:
            raise StartNodeError(
                f"Graph '{description.name}' must have exactly one start node, found {len(start_ids)}"
            )

        for edge in description.edges:
            self._check_edge(edge, node_types)
            self._bind_tool_node(edge, node_types, node_params)

        nodes: Dict[str, BaseNode] = {
            node_id: NODE_REGISTRY[kind](
                node_id=node_id,
                params=copy.deepcopy(node_params[node_id]),
                services=self.services,
            )
            for node_id, kind in node_types.items()
        }
        for edge in description.edges:
            nodes[edge.source].add_successor(nodes[edge.target], edge.id)

        flow = Flow(
            start=nodes[start_ids[0]],
            node_id=description.name,
            node_params=node_params,
            services=self.services,
            max_steps=self.max_steps,
        )
        logger.debug(
            f"Built graph '{description.name}' with {len(nodes)} nodes and {len(description.edges)} edges"
        )
        return BuiltGraph(flow=flow, node_params=node_params, nodes=nodes)

    @staticmethod
    def _check_edge(edge: EdgeDescriptor, node_types: Dict[str, NodeType]) -> None:
        if edge.id in RESERVED_ACTIONS:
            raise GraphBuildError(f"Edge id '{edge.id}' is a reserved action name")
        for endpoint in (edge.source, edge.target):
            if endpoint not in node_types:
                raise GraphBuildError(f"Edge '{edge.id}' references unknown node '{endpoint}'")

    @staticmethod
    def _bind_tool_node(
        edge: EdgeDescriptor,
        node_types: Dict[str, NodeType],
        node_params: Dict[str, Dict[str, Any]],
    ) -> None:
        """Record a tool node connected to a process node in its ``mcpNodes``."""
        kinds = (node_types[edge.source], node_types[edge.target])
        if kinds == (NodeType.PROCESS, NodeType.MCP):
            process_id, tool_id = edge.source, edge.target
        elif kinds == (NodeType.MCP, NodeType.PROCESS):
            process_id, tool_id = edge.target, edge.source
        else:
            return

        properties = node_params[process_id].setdefault("properties", {})
        bound = properties.setdefault("mcpNodes", [])
        if all(existing.get("id") != tool_id for existing in bound):
            bound.append(copy.deepcopy(node_params[tool_id]))
