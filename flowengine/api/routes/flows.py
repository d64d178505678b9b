"""
Flow API Routes.

Endpoints for storing flows and running conversations through them.
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse
from uuid import uuid4
import logging

from flowengine.api.schemas import (
    ErrorResponse,
    FlowCreateRequest,
    FlowCreateResponse,
    FlowInfoResponse,
    FlowListResponse,
    FlowRunRequest,
    FlowRunResponse,
    FlowSummary,
    ProviderErrorBody,
)
from flowengine.engine.collaborators import NodeServices
from flowengine.engine.errors import (
    AbortExecution,
    FlowNotFoundError,
    GraphBuildError,
    ModelExecutionError,
)
from flowengine.engine.executor import FlowExecutor
from flowengine.engine.graph import GraphBuilder
from flowengine.engine.state import SharedState
from flowengine.nodes.tooling import reject_tool_calls
from flowengine.services.echo import EchoModelInvoker
from flowengine.services.prompts import DescriptionPromptRenderer
from flowengine.storage.memory import conversation_storage, flow_storage
from flowengine.tools.local import LocalToolInvoker, LocalToolResolver


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/flows", tags=["Flows"])


def get_executor() -> FlowExecutor:
    """Executor wired to the in-memory stores and the local backends."""
    services = NodeServices(
        prompt_renderer=DescriptionPromptRenderer(flow_storage),
        tool_resolver=LocalToolResolver(),
        model_invoker=EchoModelInvoker(),
        tool_invoker=LocalToolInvoker(),
    )
    return FlowExecutor(flow_storage, services)


def _error_response(status_code: int, body: ProviderErrorBody) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": body.model_dump()})


# ============================================================
# Flow CRUD Endpoints
# ============================================================

@router.post(
    "",
    response_model=FlowCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid flow description"},
        409: {"model": ErrorResponse, "description": "Flow already exists"},
    },
)
async def create_flow(request: FlowCreateRequest) -> FlowCreateResponse:
    """
    Store a new flow.

    The description is built once to validate it: unknown node types, a
    missing or repeated start node, dangling edges and reserved edge ids
    are rejected.
    """
    if await flow_storage.exists(request.name):
        raise HTTPException(status_code=409, detail=f"Flow '{request.name}' already exists")

    description = request.to_description()
    try:
        GraphBuilder().build(description)
    except GraphBuildError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await flow_storage.save(description)
    logger.info(f"Created flow: {description.name}")

    return FlowCreateResponse(
        name=description.name,
        node_count=len(description.nodes),
        edge_count=len(description.edges),
        mermaid=description.to_mermaid(),
    )


@router.get("/", response_model=FlowListResponse)
async def list_flows() -> FlowListResponse:
    """List all stored flows."""
    stored = await flow_storage.list_all()
    flows = [
        FlowSummary(
            name=s.name,
            description=s.description.description,
            node_count=len(s.description.nodes),
            edge_count=len(s.description.edges),
        )
        for s in stored
    ]
    return FlowListResponse(flows=flows, total=len(flows))


@router.get(
    "/{name}",
    response_model=FlowInfoResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_flow(name: str) -> FlowInfoResponse:
    """Get a stored flow and its Mermaid diagram."""
    stored = await flow_storage.get(name)
    if not stored:
        raise HTTPException(status_code=404, detail=f"Flow '{name}' not found")

    return FlowInfoResponse(
        name=stored.name,
        description=stored.description.description,
        nodes=stored.description.nodes,
        edges=stored.description.edges,
        mermaid=stored.description.to_mermaid(),
        created_at=stored.created_at.isoformat(),
        updated_at=stored.updated_at.isoformat(),
    )


@router.delete(
    "/{name}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_flow(name: str):
    """Delete a stored flow."""
    deleted = await flow_storage.delete(name)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Flow '{name}' not found")
    logger.info(f"Deleted flow: {name}")


# ============================================================
# Run Endpoint
# ============================================================

async def _load_state(request: FlowRunRequest) -> SharedState:
    """Rehydrate the conversation, or start a new one."""
    state: Optional[SharedState] = None
    if request.conversation_id:
        state = await conversation_storage.get(request.conversation_id)

    if state is None:
        return SharedState(
            messages=list(request.messages),
            conversation_id=request.conversation_id or str(uuid4()),
        )

    if state.pending_tool_calls:
        if request.reject_tool_calls:
            logger.info(f"Rejecting {len(state.pending_tool_calls)} pending tool calls")
            state.messages.extend(reject_tool_calls(state.pending_tool_calls))
            state.pending_tool_calls = []
            state.messages.extend(request.messages)
        elif request.messages:
            logger.warning(
                f"Conversation {state.conversation_id} is waiting for tool approval; "
                f"ignoring {len(request.messages)} new messages"
            )
    else:
        state.messages.extend(request.messages)
    return state


@router.post(
    "/{name}/run",
    response_model=FlowRunResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Stored flow is invalid"},
        404: {"model": ErrorResponse, "description": "Flow not found"},
        500: {"description": "Run aborted"},
        502: {"description": "Model provider error"},
    },
)
async def run_flow(name: str, request: FlowRunRequest):
    """
    Run a flow for a conversation.

    A paused conversation (tool approval or debug stepping) resumes where it
    stopped. Pending tool calls run on resume unless ``reject_tool_calls``
    is set. Aborted runs leave the stored conversation untouched.
    """
    state = await _load_state(request)
    state.require_approval = request.require_approval
    state.debug = request.debug

    try:
        result = await get_executor().run(name, state)
    except FlowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except GraphBuildError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ModelExecutionError as e:
        return _error_response(
            502,
            ProviderErrorBody(
                message=e.message,
                type=e.kind,
                code=e.code,
                param=str(e.details["param"]) if e.details.get("param") is not None else None,
            ),
        )
    except AbortExecution as e:
        return _error_response(
            500,
            ProviderErrorBody(message=str(e), type="flow_execution_error", code=type(e).__name__),
        )

    await conversation_storage.save(state.conversation_id, name, state)

    return FlowRunResponse(
        conversation_id=state.conversation_id,
        status=result.status,
        result=result.result,
        messages=result.messages,
        execution_time=result.execution_time,
        node_execution_tracker=result.node_execution_tracker,
        current_node_id=result.current_node_id,
        pending_tool_calls=result.pending_tool_calls,
    )
