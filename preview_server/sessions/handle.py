# preview_server/sessions/handle.py
"""
Compiler session handle and the ProjectSession record.

A CompilerSession owns exactly one engine instance for exactly as long as the
session is registered. Closing happens once; a closed handle refuses to serve.
"""
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from preview_server.core.exceptions import EngineError, SessionGoneError
from preview_server.core.logging import log
from preview_server.engine.base import EngineRequest, EngineResponse, PreviewEngine
from preview_server.lib.file_system import FileEntry

# Delivers a live-update payload to every preview client of a project
Notifier = Callable[[str, Dict[str, Any]], Awaitable[None]]


async def _no_clients(project_id: str, message: Dict[str, Any]) -> None:
    return None


class CompilerSession:
    def __init__(self, project_id: str, engine: PreviewEngine, notifier: Optional[Notifier] = None):
        self.project_id = project_id
        self.engine = engine
        self.notifier = notifier or _no_clients
        self._closed = False
        self._last_timestamp = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _next_timestamp(self) -> int:
        """Millisecond wall clock, forced strictly increasing per handle."""
        now = int(time.time() * 1000)
        self._last_timestamp = max(now, self._last_timestamp + 1)
        return self._last_timestamp

    async def serve(self, request: EngineRequest) -> EngineResponse:
        if self._closed:
            raise SessionGoneError(self.project_id)
        try:
            response = await self.engine.handle(request)
        except SessionGoneError:
            raise
        except Exception as e:
            # The reaper may close the engine under an in-flight request
            if self._closed:
                raise SessionGoneError(self.project_id)
            raise EngineError(self.project_id, str(e) or type(e).__name__)
        if self._closed:
            raise SessionGoneError(self.project_id)
        return response

    async def invalidate(self, absolute_path: Path) -> bool:
        """
        Mark the compiled module for absolute_path stale and push an update to
        connected clients. Returns False when the file was never compiled.
        """
        if self._closed:
            raise SessionGoneError(self.project_id)

        node = self.engine.module_graph.get_module_by_id(absolute_path)
        if node is None:
            log("HMR", f"{absolute_path} not in module graph, nothing to invalidate",
                project_id=self.project_id)
            return False

        timestamp = self._next_timestamp()
        self.engine.module_graph.invalidate_module(node, timestamp)
        await self.notifier(self.project_id, {
            "type": "update",
            "updates": [{
                "type": "js-update",
                "path": node.id,
                "acceptedPath": node.id,
                "timestamp": timestamp,
            }],
        })
        log("HMR", f"Invalidated {node.url} @ {timestamp}", project_id=self.project_id)
        return True

    async def close(self) -> None:
        if self._closed:
            log("ENGINE", "close() called on an already closed session, ignoring",
                project_id=self.project_id)
            return
        self._closed = True
        await self.engine.close()
        log("ENGINE", "Engine closed", project_id=self.project_id)


@dataclass
class ProjectSession:
    """One project's live engine plus its isolated workspace."""
    project_id: str
    workspace_path: Path
    handle: CompilerSession
    manifest: List[FileEntry] = field(default_factory=list)
    # Set once; updates never refresh the eviction clock
    created_at: float = field(default_factory=time.time)

    def age(self, now: float) -> float:
        return now - self.created_at
