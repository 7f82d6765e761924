# preview_server/engine/static.py
"""
In-process engine: serves workspace files straight from disk.

Each served file becomes a node in the module graph holding its compiled
output. The output is reused until the node is invalidated.
"""
import mimetypes
from pathlib import Path
from typing import Optional

from preview_server.core.exceptions import InvalidInputError
from preview_server.core.logging import log
from preview_server.lib.file_system import read_file_bytes, resolve_workspace_file
from .base import EngineRequest, EngineResponse, PreviewEngine

SCRIPT_SUFFIXES = {".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"}
INDEX_FILE = "index.html"


def content_type_for(path: Path) -> str:
    if path.suffix.lower() in SCRIPT_SUFFIXES:
        return "application/javascript; charset=utf-8"
    guessed, _ = mimetypes.guess_type(path.name)
    if not guessed:
        return "application/octet-stream"
    if guessed.startswith("text/") or guessed in ("application/json", "image/svg+xml"):
        return f"{guessed}; charset=utf-8"
    return guessed


class StaticEngine(PreviewEngine):
    def _locate(self, url_path: str) -> Optional[Path]:
        if url_path.strip("/") == "":
            candidate = self.root / INDEX_FILE
        else:
            try:
                candidate = resolve_workspace_file(self.root, url_path)
            except InvalidInputError:
                return None
            if candidate.is_dir():
                candidate = candidate / INDEX_FILE
        return candidate if candidate.is_file() else None

    async def handle(self, request: EngineRequest) -> EngineResponse:
        method = request.method.upper()
        if method not in ("GET", "HEAD"):
            return EngineResponse(405, {"allow": "GET, HEAD", "content-type": "text/plain; charset=utf-8"},
                                  b"Method Not Allowed")

        file_path = self._locate(request.path)
        if file_path is None:
            log("PREVIEW", f"404 {request.path}")
            return EngineResponse(404, {"content-type": "text/plain; charset=utf-8"}, b"Not Found")

        node = self.module_graph.ensure_entry(file_path, request.path or "/")
        if node.transform_result is None:
            node.transform_result = await read_file_bytes(file_path)
            log("PREVIEW", f"Compiled {request.path or '/'}")

        headers = {
            "content-type": content_type_for(file_path),
            "cache-control": "no-cache",
        }
        body = node.transform_result if method == "GET" else b""
        return EngineResponse(200, headers, body)

    async def close(self) -> None:
        self.module_graph.invalidate_all()
