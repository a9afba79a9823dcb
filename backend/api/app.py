"""
FastAPI App Factory - Creates and configures the app
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.logger import log_critical
from .routes import (
    connection_router,
    sequence_router,
    settings_router,
)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""

    app = FastAPI(
        title="Conveyor Inspection Sequencer API",
        description="REST API for running and observing conveyor inspection sequences",
        version="1.0.0",
    )

    # CORS - must be added first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handler to ensure CORS headers on errors
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        log_critical(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc)},
        )

    # Register routers with /api prefix
    app.include_router(connection_router, prefix="/api")
    app.include_router(sequence_router, prefix="/api")
    app.include_router(settings_router, prefix="/api")

    return app
