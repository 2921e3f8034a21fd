"""
Tasklane API Server

Entry point for the FastAPI application and the Socket.IO gateway mounted
beside it.
"""

from contextlib import asynccontextmanager

import socketio
import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import router as api_router
from app.core.config import get_settings
from app.core.database import check_database, dispose_engine
from app.core.errors import register_error_handlers, error_response
from app.core.events import get_event_queue
from app.core.logging import configure_logging
from app.core.mailer import get_mailer
from app.core.middleware import API_PREFIX, BearerAuthMiddleware, SecurityHeadersMiddleware
from app.core.realtime import gateway, sio
from tasklane_shared.schemas.common import ErrorKind

settings = get_settings()
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("tasklane.starting", socketio_path=settings.socketio_path)
    gateway.start(get_event_queue())
    yield
    log.info("tasklane.shutting_down")
    await gateway.stop()
    await get_mailer().close()
    await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Tasklane",
        description="Workspaces, projects and tasks with realtime notifications.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    register_error_handlers(app)

    # Middleware (order matters: last added is outermost)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(BearerAuthMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(api_router, prefix=API_PREFIX)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint: the database must answer."""
        if not await check_database():
            return error_response(503, ErrorKind.INTERNAL, "Database unavailable")
        return {"status": "ready"}

    return app


app = create_app()

# Served by uvicorn: Socket.IO on its path, everything else to FastAPI.
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app, socketio_path=settings.socketio_path)


def run() -> None:
    """Console entry point (`tasklane-server`)."""
    configure_logging(settings.log_level, settings.log_format)
    uvicorn.run(
        "app.main:asgi_app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
