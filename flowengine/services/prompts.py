"""
Prompt rendering from stored flow descriptions.
"""

from typing import Dict, Optional
import logging

from flowengine.engine.collaborators import PromptRenderOptions
from flowengine.engine.errors import FlowNotFoundError
from flowengine.engine.executor import FlowLoader


logger = logging.getLogger(__name__)


class DescriptionPromptRenderer:
    """
    Renders a node's system prompt from the flow description.

    The prompt is assembled from up to three parts, in order:

    1. the bound model's own prompt (``model_prompts``), unless
       ``exclude_model_prompt`` is set
    2. the start node's ``promptTemplate``, unless
       ``exclude_start_node_prompt`` is set
    3. the node's own ``promptTemplate``
    """

    def __init__(self, loader: FlowLoader, model_prompts: Optional[Dict[str, str]] = None):
        self.loader = loader
        self.model_prompts = model_prompts or {}

    async def render_prompt(self, flow_id: str, node_id: str, options: PromptRenderOptions) -> str:
        description = await self.loader.load(flow_id)
        if description is None:
            raise FlowNotFoundError(flow_id)

        node = next((n for n in description.nodes if n.id == node_id), None)
        if node is None:
            raise ValueError(f"Node '{node_id}' not found in flow '{flow_id}'")
        start = next((n for n in description.nodes if n.type == "start"), None)

        parts = []
        model_prompt = self.model_prompts.get(node.properties.get("boundModel", ""))
        if model_prompt and not options.exclude_model_prompt:
            parts.append(model_prompt)
        if start is not None and start.id != node.id and not options.exclude_start_node_prompt:
            parts.append(start.properties.get("promptTemplate", ""))
        parts.append(node.properties.get("promptTemplate", ""))

        prompt = "\n\n".join(p.strip() for p in parts if p and p.strip())
        logger.debug(f"Rendered {len(prompt)} chars for {flow_id}/{node_id}")
        return prompt
