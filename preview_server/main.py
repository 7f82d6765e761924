# preview_server/main.py
"""
Preview Server - live previews of generated front-end projects
"""
import logging
import time
import uvicorn
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

# Rate limiting
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from preview_server import __version__
from preview_server.core.config import Settings, settings as default_settings
from preview_server.core.exceptions import PreviewServerError
from preview_server.core.logging import log, log_section
from preview_server.lib.monitoring import register_monitoring
from preview_server.lib.websocket import ConnectionManager
from preview_server.sessions import SessionManager, SessionRegistry
from preview_server.sessions.manager import EngineFactory

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# LIFESPAN
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the reaper; on shutdown close every live session before exiting."""
    sessions: SessionManager = app.state.sessions
    log_section("SERVER", "🚀 Preview Server starting...")
    log("SERVER", f"Workspaces: {sessions.workspaces_dir}")
    log("SERVER", f"Engine: {sessions.settings.engine.kind}")
    log("SERVER", f"Allowed origins: {', '.join(sessions.settings.server.allowed_origins)}")
    sessions.start()

    yield

    log("SERVER", "🔌 Shutting down, closing sessions...")
    await sessions.shutdown()


# ---------------------------------------------------------------------------
# ERROR HANDLERS
# ---------------------------------------------------------------------------

async def preview_error_handler(request: Request, exc: PreviewServerError) -> JSONResponse:
    log("ERROR", f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "details": str(exc)})


# ---------------------------------------------------------------------------
# APP INITIALIZATION
# ---------------------------------------------------------------------------

def create_app(
    settings: Optional[Settings] = None,
    engine_factory: Optional[EngineFactory] = None,
) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title="Preview Server",
        version=__version__,
        lifespan=lifespan,
    )

    # Monitoring
    active_sessions = register_monitoring(app)

    manager = ConnectionManager()
    registry = SessionRegistry(observer=active_sessions.set)
    app.state.manager = manager
    app.state.sessions = SessionManager(
        settings,
        registry=registry,
        engine_factory=engine_factory,
        notifier=manager.send_to_project,
    )
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate Limiting - configure via RATE_LIMIT env var (e.g., "50/minute")
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.server.rate_limit],
        enabled=settings.server.rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_exception_handler(PreviewServerError, preview_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    # -----------------------------------------------------------------------
    # WEBSOCKET
    # -----------------------------------------------------------------------

    @app.websocket("/ws/{project_id}")
    async def websocket_endpoint(websocket: WebSocket, project_id: str):
        """Live-update channel for the preview clients of one project."""
        await manager.connect(websocket, project_id)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        except Exception as e:
            log("WS", f"Connection error: {e}", project_id=project_id)
        finally:
            await manager.disconnect(websocket, project_id)

    # -----------------------------------------------------------------------
    # API ROUTES
    # -----------------------------------------------------------------------

    from preview_server.api import health, projects, preview

    app.include_router(health.router)
    app.include_router(projects.router)
    app.include_router(preview.router)

    return app


app = create_app()


# ---------------------------------------------------------------------------
# RUN
# ---------------------------------------------------------------------------

def run() -> None:
    uvicorn.run(
        "preview_server.main:app",
        host="0.0.0.0",
        port=default_settings.server.port,
        reload=default_settings.debug,
        reload_excludes=["projects/**/*", "**/node_modules/**"],
    )


if __name__ == "__main__":
    run()
