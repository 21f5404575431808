"""
Timetrack FastAPI Backend

This is the main entry point for the API server behind the task and time
tracking frontend.

Architecture:
- FastAPI handles HTTP routing and request/response validation
- Pydantic schemas ensure type safety
- RecordStore and the identity provider handle all business logic
- Database provides persistence via SQLite

Run with:
    uvicorn backend.main:app --reload --port 8000

Or:
    python -m backend.main
"""

import logging
import sys
from pathlib import Path
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

# Add project root to path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from backend.routers import (
    auth_router,
    tasks_router,
    categories_router,
    time_entries_router,
    timer_router,
    dashboard_router,
)
from backend.dependencies import (
    get_config,
    get_database,
    get_identity_provider,
    get_timer_registry,
    get_ws_manager,
    resolve_user_id,
)
from backend.errors import install_error_handlers
from backend.websocket import websocket_endpoint

logger = logging.getLogger("backend")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Runs startup and shutdown tasks:
    - Startup: Configure logging, open (or create) the database
    - Shutdown: Stop timers and close WebSocket connections
    """
    config = get_config()
    configure_logging(config.get("log_level", default="INFO"))

    db = get_database()
    logger.info("Database ready: %s", db.db_path)
    logger.info("Config loaded from: %s", config.config_dir)

    yield

    get_timer_registry().stop_all()
    await get_ws_manager().close_all()
    logger.info("Shutting down...")


# Create FastAPI app
app = FastAPI(
    title="Timetrack API",
    description="""
    Personal task and time tracking API.

    ## Features

    - **Auth**: Register, log in and out with an HTTP-only session cookie
    - **Tasks**: Create, update, complete and delete tasks
    - **Categories**: Organize tasks
    - **Timer**: Run a stopwatch against a task and save the time
    - **Dashboard**: Completion stats, monthly trends, top tasks and weekly progress
    - **WebSocket**: Live snapshots of every collection at `/ws`
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS for frontend access
# In production, replace with specific origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:4321",  # Astro dev server
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",
        "http://127.0.0.1:4321",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

# Include routers
app.include_router(auth_router)
app.include_router(tasks_router)
app.include_router(categories_router)
app.include_router(time_entries_router)
app.include_router(timer_router)
app.include_router(dashboard_router)


# ============================================================
# WEBSOCKET ENDPOINT
# ============================================================
# Real-time updates for connected clients.
# Clients subscribe to topics and receive snapshots when data changes.
# ============================================================

@app.websocket("/ws")
async def websocket_route(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Authenticated by the session cookie (or a ``token`` query parameter).

    Topics available:
    - tasks, categories, time_entries: full snapshots after every change
    - dashboard: recomputed analytics after every change
    - timer: stopwatch state every second while running
    """
    cookie_name = get_config().get("session_cookie_name", default="auth-token")
    token = websocket.cookies.get(cookie_name) or websocket.query_params.get("token")
    user_id = resolve_user_id(token, get_identity_provider())
    await websocket_endpoint(websocket, get_ws_manager(), user_id)


@app.get("/")
async def root():
    """API root - returns basic info and available endpoints."""
    return {
        "name": "Timetrack API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "login": "/api/login",
            "register": "/api/register",
            "logout": "/api/logout",
            "tasks": "/api/tasks",
            "categories": "/api/categories",
            "time_entries": "/api/time-entries",
            "timer": "/api/timer",
            "analytics": "/api/dashboard/analytics",
            "dashboard": "/dashboard",
            "websocket": "/ws",
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    try:
        db = get_database()
        # Quick database check
        db.execute_one("SELECT 1")
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.error("Health check failed: %s", e)
        return {"status": "unhealthy", "error": str(e)}


# Allow running directly with: python -m backend.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
