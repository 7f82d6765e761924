# preview_server/engine/vite.py
"""
External engine: one `vite` dev server process per session.

The process listens on a private loopback port and every preview request is
reverse-proxied to it with httpx. Vite watches the workspace itself, so
invalidation only needs to mark our module graph and let the session layer
notify clients.
"""
import asyncio
import json
import shlex
import socket
from typing import Optional

import httpx

from preview_server.core.exceptions import EngineError, InvalidInputError
from preview_server.core.logging import log
from preview_server.lib.file_system import resolve_workspace_file, write_file_content
from .base import EngineOptions, EngineRequest, EngineResponse, PreviewEngine
from .static import INDEX_FILE

HOST = "127.0.0.1"
CONFIG_FILE = ".preview-vite.config.mjs"
LOG_FILE = ".preview-vite.log"
STOP_GRACE_SECONDS = 8

# Never forwarded in either direction
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
    "content-encoding",
}


def pick_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((HOST, 0))
        return int(sock.getsockname()[1])


async def is_port_open(host: str, port: int, timeout_seconds: float = 0.35) -> bool:
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, int(port)), timeout_seconds)
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


def render_config(options: EngineOptions) -> str:
    """Vite config for one session, written into the session's workspace."""
    include = json.dumps(list(options.optimize_deps))
    return (
        "export default {\n"
        f"  root: {json.dumps(str(options.root))},\n"
        f"  base: {json.dumps(options.base)},\n"
        f"  logLevel: {json.dumps(options.log_level)},\n"
        f"  appType: {json.dumps(options.app_type)},\n"
        "  server: {\n"
        f"    hmr: {json.dumps(options.hmr)},\n"
        f"    allowedHosts: {json.dumps(options.allowed_hosts)},\n"
        f"    host: {json.dumps(HOST)},\n"
        "    strictPort: true,\n"
        "  },\n"
        "  css: { postcss: {} },\n"
        "  optimizeDeps: {\n"
        f"    include: {include},\n"
        "    esbuildOptions: { loader: { '.js': 'jsx', '.ts': 'tsx' } },\n"
        "  },\n"
        "};\n"
    )


class ViteEngine(PreviewEngine):
    def __init__(self, options: EngineOptions):
        super().__init__(options)
        self.port: Optional[int] = None
        self.process: Optional[asyncio.subprocess.Process] = None
        self.client: Optional[httpx.AsyncClient] = None

    def build_command(self, port: int) -> list:
        return shlex.split(self.options.command) + [
            "--config",
            str(self.root / CONFIG_FILE),
            "--port",
            str(port),
            "--strictPort",
            "--host",
            HOST,
        ]

    async def start(self) -> None:
        await write_file_content(self.root / CONFIG_FILE, render_config(self.options))
        self.port = pick_free_port()
        command = self.build_command(self.port)
        log("ENGINE", f"Spawning: {' '.join(command)}")

        log_file = await asyncio.to_thread((self.root / LOG_FILE).open, "ab")
        with log_file:
            self.process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(self.root),
                stdout=log_file,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )

        if not await self._wait_until_ready():
            await self.close()
            raise EngineError(
                self.root.name,
                f"vite did not become ready on {HOST}:{self.port}. See {self.root / LOG_FILE} for details.",
            )
        self.client = httpx.AsyncClient(base_url=f"http://{HOST}:{self.port}", timeout=None)

    async def _wait_until_ready(self) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.options.startup_timeout
        while loop.time() < deadline:
            if self.process is not None and self.process.returncode is not None:
                return False
            if await is_port_open(HOST, self.port):
                return True
            await asyncio.sleep(0.25)
        return await is_port_open(HOST, self.port)

    async def handle(self, request: EngineRequest) -> EngineResponse:
        if self.client is None:
            raise EngineError(self.root.name, "vite engine is not running")

        url = self.options.base.rstrip("/") + "/" + request.path.lstrip("/")
        if request.query:
            url = f"{url}?{request.query}"
        headers = {k: v for k, v in request.headers.items() if k.lower() not in HOP_BY_HOP_HEADERS}

        upstream = await self.client.request(
            request.method, url, headers=headers, content=request.body or None
        )
        if upstream.status_code < 400:
            self._record_module(request.path)
        response_headers = {
            k: v for k, v in upstream.headers.items() if k.lower() not in HOP_BY_HOP_HEADERS
        }
        return EngineResponse(upstream.status_code, response_headers, upstream.content)

    def _record_module(self, url_path: str) -> None:
        """Track a served workspace file so later edits can be invalidated."""
        relative = url_path.strip("/") or INDEX_FILE
        try:
            file_path = resolve_workspace_file(self.root, relative)
        except InvalidInputError:
            return
        if file_path.is_file():
            self.module_graph.ensure_entry(file_path, url_path or "/")

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None
        process, self.process = self.process, None
        if process is None or process.returncode is not None:
            return
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=STOP_GRACE_SECONDS)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
        log("ENGINE", f"vite on port {self.port} stopped")
