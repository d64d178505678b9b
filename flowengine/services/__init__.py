"""
Services package - Development backends for the collaborator interfaces.
"""

from flowengine.services.prompts import DescriptionPromptRenderer
from flowengine.services.echo import EchoModelInvoker

__all__ = [
    "DescriptionPromptRenderer",
    "EchoModelInvoker",
]
