# preview_server/api/preview.py
"""
Preview routing - hands requests to the owning session's engine.

Responses are forced iframe-friendly: the preview is embedded by the caller's
UI on another origin.
"""
from fastapi import APIRouter, Depends, Request
from starlette.responses import JSONResponse, Response

from preview_server.api.deps import get_sessions
from preview_server.core.exceptions import EngineError
from preview_server.core.logging import log
from preview_server.engine.base import EngineRequest
from preview_server.sessions import SessionManager

router = APIRouter(tags=["Preview"])

PREVIEW_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

IFRAME_HEADERS = {
    "Content-Security-Policy": "frame-ancestors *",
    "Cross-Origin-Embedder-Policy": "unsafe-none",
    "Cross-Origin-Opener-Policy": "unsafe-none",
    "Cross-Origin-Resource-Policy": "cross-origin",
    "Access-Control-Allow-Origin": "*",
}

# Recomputed by starlette or blocked outright
DROPPED_HEADERS = {"x-frame-options", "content-length", "content-security-policy"}


def apply_iframe_headers(response: Response) -> Response:
    if "x-frame-options" in response.headers:
        del response.headers["x-frame-options"]
    for name, value in IFRAME_HEADERS.items():
        response.headers[name] = value
    return response


@router.api_route("/preview/{project_id}", methods=PREVIEW_METHODS)
@router.api_route("/preview/{project_id}/{path:path}", methods=PREVIEW_METHODS)
async def preview(
    project_id: str,
    request: Request,
    path: str = "",
    sessions: SessionManager = Depends(get_sessions),
):
    engine_request = EngineRequest(
        method=request.method,
        path="/" + path,
        query=request.url.query,
        headers=dict(request.headers),
        body=await request.body(),
    )

    try:
        result = await sessions.serve(project_id, engine_request)
    except EngineError as e:
        log("ERROR", f"Engine failed serving /{path}: {e.reason}", project_id=project_id)
        return JSONResponse(status_code=502, content={"error": "Preview engine failed", "details": e.reason})

    headers = {k: v for k, v in result.headers.items() if k.lower() not in DROPPED_HEADERS}
    response = Response(content=result.body, status_code=result.status_code, headers=headers)
    return apply_iframe_headers(response)
