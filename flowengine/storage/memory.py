"""
In-Memory Storage for FlowEngine.

Stores flow descriptions by name and conversation state snapshots by
conversation id. Both are guarded by an ``asyncio.Lock`` and can be
replaced with a database implementation.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
from dataclasses import dataclass, field
import asyncio

from flowengine.engine.graph import GraphDescription
from flowengine.engine.state import SharedState


@dataclass
class StoredFlow:
    """A stored flow description."""
    name: str
    description: GraphDescription
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class StoredConversation:
    """A snapshot of a conversation's shared state."""
    conversation_id: str
    flow_name: str
    state: Dict[str, Any]
    updated_at: datetime = field(default_factory=datetime.now)


class FlowStorage:
    """
    In-memory storage for flow descriptions.

    Doubles as the ``FlowLoader`` used by ``FlowExecutor``.
    """

    def __init__(self):
        self._flows: Dict[str, StoredFlow] = {}
        self._lock = asyncio.Lock()

    async def save(self, description: GraphDescription) -> StoredFlow:
        """Save a description, replacing any flow with the same name."""
        async with self._lock:
            existing = self._flows.get(description.name)
            stored = StoredFlow(name=description.name, description=description)
            if existing is not None:
                stored.created_at = existing.created_at
            self._flows[description.name] = stored
            return stored

    async def get(self, name: str) -> Optional[StoredFlow]:
        async with self._lock:
            return self._flows.get(name)

    async def load(self, name: str) -> Optional[GraphDescription]:
        """Return a private copy of the named description."""
        async with self._lock:
            stored = self._flows.get(name)
            return stored.description.model_copy(deep=True) if stored else None

    async def delete(self, name: str) -> bool:
        async with self._lock:
            return self._flows.pop(name, None) is not None

    async def list_all(self) -> List[StoredFlow]:
        async with self._lock:
            return list(self._flows.values())

    async def exists(self, name: str) -> bool:
        async with self._lock:
            return name in self._flows

    def __len__(self) -> int:
        return len(self._flows)


class ConversationStorage:
    """
    In-memory storage for conversation state.

    States are stored as snapshots, so a state handed out by ``get`` can be
    run without affecting the stored copy until it is saved again.
    """

    def __init__(self):
        self._conversations: Dict[str, StoredConversation] = {}
        self._lock = asyncio.Lock()

    async def save(self, conversation_id: str, flow_name: str, state: SharedState) -> StoredConversation:
        async with self._lock:
            stored = StoredConversation(
                conversation_id=conversation_id,
                flow_name=flow_name,
                state=state.to_dict(),
            )
            self._conversations[conversation_id] = stored
            return stored

    async def get(self, conversation_id: str) -> Optional[SharedState]:
        async with self._lock:
            stored = self._conversations.get(conversation_id)
            return SharedState.from_dict(stored.state) if stored else None

    async def get_flow_name(self, conversation_id: str) -> Optional[str]:
        async with self._lock:
            stored = self._conversations.get(conversation_id)
            return stored.flow_name if stored else None

    async def delete(self, conversation_id: str) -> bool:
        async with self._lock:
            return self._conversations.pop(conversation_id, None) is not None

    def __len__(self) -> int:
        return len(self._conversations)


# Global storage instances
flow_storage = FlowStorage()
conversation_storage = ConversationStorage()
