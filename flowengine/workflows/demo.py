"""
Echo demo flow.

start -> assistant -> finish, with the ``builtin`` tool server bound to
the assistant. Runs entirely on local backends:

    Send "hello" to get "Echo: hello" back.
    Send '/tool builtin.word_count {"text": "a b c"}' to see a tool
    round trip.
"""

from typing import Optional
import logging

from flowengine.config import settings
from flowengine.engine.graph import EdgeDescriptor, GraphDescription, NodeDescriptor
from flowengine.storage.memory import FlowStorage, flow_storage


logger = logging.getLogger(__name__)


def create_demo_flow(name: Optional[str] = None) -> GraphDescription:
    return GraphDescription(
        name=name or settings.DEMO_FLOW_NAME,
        description="Echoes the user and can call the builtin tools",
        nodes=[
            NodeDescriptor(
                id="start",
                label="Start",
                type="start",
                properties={"promptTemplate": "You are a helpful assistant."},
            ),
            NodeDescriptor(
                id="assistant",
                label="Assistant",
                type="process",
                properties={
                    "boundModel": "echo",
                    "promptTemplate": "Answer the user. Use tools when asked to.",
                },
            ),
            NodeDescriptor(
                id="builtin-tools",
                label="Builtin tools",
                type="mcp",
                properties={"mcpServer": "builtin"},
            ),
            NodeDescriptor(id="finish", label="Finish", type="finish"),
        ],
        edges=[
            EdgeDescriptor(id="start-assistant", source="start", target="assistant"),
            EdgeDescriptor(id="assistant-builtin-tools", source="assistant", target="builtin-tools"),
            EdgeDescriptor(id="assistant-finish", source="assistant", target="finish"),
        ],
    )


async def register_demo_flow(storage: Optional[FlowStorage] = None) -> GraphDescription:
    """Store the demo flow so it can be run without creating it first."""
    description = create_demo_flow()
    await (storage or flow_storage).save(description)
    logger.info(f"Registered demo flow: {description.name}")
    return description
