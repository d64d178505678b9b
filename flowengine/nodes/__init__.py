"""
Nodes package - concrete node kinds used by built graphs.
"""

from flowengine.nodes.start import StartNode
from flowengine.nodes.process import ProcessNode
from flowengine.nodes.finish import FinishNode
from flowengine.nodes.tool import ToolNode

__all__ = [
    "StartNode",
    "ProcessNode",
    "FinishNode",
    "ToolNode",
]
