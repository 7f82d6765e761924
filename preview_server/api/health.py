# preview_server/api/health.py
"""
Health check endpoints.
"""
import time
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request

from preview_server.api.deps import get_sessions
from preview_server.sessions import SessionManager

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(request: Request, sessions: SessionManager = Depends(get_sessions)):
    """Liveness plus the number of live sessions (also used to wake sleeping hosts)."""
    return {
        "status": "alive",
        "uptime": time.monotonic() - request.app.state.started_at,
        "timestamp": int(time.time() * 1000),
        "activeProjects": len(sessions.registry),
    }


@router.get("/healthz")
async def healthz():
    """Simple health check."""
    return {"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}
