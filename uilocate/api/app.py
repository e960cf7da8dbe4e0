"""FastAPI application factory for the uilocate service."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core.config import config
from ..core.logger import log
from .routes import debug_router, locate_router

API_PREFIX = "/api/v1"


def create_app() -> FastAPI:
    """Build the HTTP app: CORS, request logging, locate and debug routers."""
    app = FastAPI(
        title="uilocate API",
        description="Iterative visual localization of clickable UI elements",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        log.info(f"API {request.method} {request.url.path} -> {response.status_code}")
        return response

    app.include_router(locate_router, prefix=f"{API_PREFIX}/locate", tags=["locate"])
    app.include_router(debug_router, prefix=f"{API_PREFIX}/debug", tags=["debug"])

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "uilocate API", "version": __version__}

    @app.get("/")
    async def root():
        """Service index."""
        return {
            "message": "uilocate API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
            "locate": f"{API_PREFIX}/locate",
            "debug": f"{API_PREFIX}/debug/export",
        }

    log.debug("FastAPI application created")
    return app
