"""
Storage package - In-memory storage for flows and conversations.
"""

from flowengine.storage.memory import (
    FlowStorage,
    ConversationStorage,
    flow_storage,
    conversation_storage,
)

__all__ = [
    "FlowStorage",
    "ConversationStorage",
    "flow_storage",
    "conversation_storage",
]
