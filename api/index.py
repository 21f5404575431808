"""
Vercel Serverless Function Entry Point

Exposes the FastAPI application as a Vercel serverless function.
All API routes are handled by this single entry point.
"""

import sys
from pathlib import Path

# Ensure project root is in path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from backend.errors import install_error_handlers

# Import routers
from backend.routers import (
    auth_router,
    tasks_router,
    categories_router,
    time_entries_router,
    timer_router,
    dashboard_router,
)

# Create a lightweight app for serverless (no WebSocket, no lifespan)
app = FastAPI(
    title="Timetrack API",
    description="Personal task and time tracking API",
    version="1.0.0",
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "https://*.vercel.app",
        "http://localhost:4321",
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

# Register routers
app.include_router(auth_router)
app.include_router(tasks_router)
app.include_router(categories_router)
app.include_router(time_entries_router)
app.include_router(timer_router)
app.include_router(dashboard_router)


@app.get("/")
async def root():
    """Health check endpoint"""
    return {"status": "ok", "service": "timetrack-api"}


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy"}


# Mangum adapter for AWS Lambda/Vercel
handler = Mangum(app, lifespan="off")
