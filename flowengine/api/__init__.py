"""
API package - FastAPI routes and schemas.
"""

from flowengine.api.routes import flows, tools

__all__ = ["flows", "tools"]
