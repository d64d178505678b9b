"""
Tools API Routes.

Endpoints for listing the local tools flows can bind to.
"""

from typing import Optional
from fastapi import APIRouter, HTTPException
import logging

from flowengine.api.schemas import ErrorResponse, ToolInfo, ToolListResponse
from flowengine.tools.registry import Tool, tool_registry


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tools", tags=["Tools"])


def _tool_info(tool: Tool) -> ToolInfo:
    return ToolInfo(
        server_name=tool.server_name,
        name=tool.name,
        description=tool.description,
        input_schema=tool.input_schema,
    )


@router.get("/", response_model=ToolListResponse)
async def list_tools(server: Optional[str] = None) -> ToolListResponse:
    """
    List registered tools.

    Pass ``server`` to list the tools of a single server.
    """
    tools = [_tool_info(t) for t in tool_registry.list_tools(server)]
    return ToolListResponse(tools=tools, servers=tool_registry.servers(), total=len(tools))


@router.get(
    "/{server}/{tool_name}",
    response_model=ToolInfo,
    responses={404: {"model": ErrorResponse}},
)
async def get_tool(server: str, tool_name: str) -> ToolInfo:
    """Get information about a specific tool."""
    tool = tool_registry.get(server, tool_name)
    if not tool:
        raise HTTPException(
            status_code=404,
            detail=f"Tool '{server}/{tool_name}' not found"
        )
    return _tool_info(tool)
