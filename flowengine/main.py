"""
FlowEngine - FastAPI Application Entry Point.

Serves stored flows over HTTP: create them, inspect them, and run
conversations through them.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from flowengine.config import settings
from flowengine.api.routes import flows, tools
from flowengine.storage.memory import conversation_storage, flow_storage
from flowengine.workflows.demo import register_demo_flow

# Import builtin tools to register them
import flowengine.tools.builtin  # noqa: F401


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    
    await register_demo_flow()
    
    yield
    
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.APP_NAME,
    description="""
## FlowEngine API

A graph state machine for model and tool pipelines.

### Features
- **Nodes**: start, process (model calls), finish and tool binding nodes
- **Edges**: Each edge id is the action its source node returns to follow it
- **Suspension**: Pause for tool approval or step through nodes in debug mode
- **Conversations**: Resume a paused conversation by its id

### Quick Start
1. List available tools: `GET /tools`
2. Store a flow: `POST /flows`
3. Run it: `POST /flows/{name}/run`

### Demo Flow
A pre-registered echo flow is available as `echo-demo`.
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(flows.router)
app.include_router(tools.router)


# ============================================================
# Root Endpoints
# ============================================================

@app.get("/", tags=["Root"])
async def root():
    """API root - returns basic info and links."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": "A graph state machine for model and tool pipelines",
        "docs": "/docs",
        "redoc": "/redoc",
        "endpoints": {
            "flows": "/flows",
            "run": "/flows/{name}/run",
            "tools": "/tools",
        },
        "demo_flow": settings.DEMO_FLOW_NAME,
    }


@app.get("/health", tags=["Root"])
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "flows_count": len(flow_storage),
        "conversations_count": len(conversation_storage),
    }


# ============================================================
# Error Handlers
# ============================================================

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.exception(f"Unhandled error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
        },
    )
