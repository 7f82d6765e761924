# preview_server/sessions/manager.py
"""
Session Manager - Lifecycle Orchestrator

Admits projects (load-or-replace), routes preview requests and updates to
live sessions, and owns the reaper. One instance per application, injected
into handlers through app.state.
"""
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence

from preview_server.core.config import Settings
from preview_server.core.exceptions import EngineError
from preview_server.core.logging import log
from preview_server.engine.base import (
    EngineOptions,
    EngineRequest,
    EngineResponse,
    PreviewEngine,
    create_engine,
)
from preview_server.lib.file_system import (
    coerce_file_entries,
    materialize_project,
    normalize_relative_path,
    remove_workspace,
    validate_project_id,
)
from .dispatcher import dispatch_update
from .handle import CompilerSession, Notifier, ProjectSession
from .reaper import Reaper
from .registry import SessionRegistry

EngineFactory = Callable[[EngineOptions, str], Awaitable[PreviewEngine]]


def default_engine_factory(kind: str) -> EngineFactory:
    async def factory(options: EngineOptions, project_id: str) -> PreviewEngine:
        return await create_engine(kind, options, project_id)
    return factory


def preview_url(project_id: str) -> str:
    return f"/preview/{project_id}"


class SessionManager:
    def __init__(
        self,
        settings: Settings,
        registry: Optional[SessionRegistry] = None,
        engine_factory: Optional[EngineFactory] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.registry = registry or SessionRegistry()
        self.engine_factory = engine_factory or default_engine_factory(settings.engine.kind)
        self.notifier = notifier
        self.clock = clock
        self.reaper = Reaper(
            self.registry,
            max_age_seconds=settings.sessions.max_age_seconds,
            interval_seconds=settings.sessions.sweep_interval_seconds,
            delete_workspaces=settings.sessions.delete_workspaces,
            clock=clock,
        )

    @property
    def workspaces_dir(self) -> Path:
        return self.settings.paths.workspaces_dir

    def engine_options(self, project_id: str, workspace: Path) -> EngineOptions:
        engine = self.settings.engine
        return EngineOptions(
            root=workspace,
            base=preview_url(project_id) + "/",
            hmr=engine.hmr,
            log_level=engine.log_level,
            optimize_deps=tuple(engine.optimize_deps),
            startup_timeout=engine.startup_timeout,
            command=engine.vite_command,
        )

    # =========================================================================
    # LOAD
    # =========================================================================

    async def load_project(self, project_id: Any, files: Sequence[Any]) -> ProjectSession:
        """
        Load or replace a project.

        Any session already registered under project_id is removed, its engine
        closed and its workspace deleted before the new one is built. The new
        session gets a fresh workspace and a fresh created_at.
        """
        validate_project_id(project_id)
        entries = coerce_file_entries(files)
        # Reject bad paths before an existing session is torn down
        for entry in entries:
            normalize_relative_path(entry.path)

        async with self.registry.lock(project_id):
            previous = self.registry.remove(project_id)
            if previous is not None:
                log("LOAD", "Replacing existing session", project_id=project_id)
                await self.reaper.release(previous)

            log("LOAD", f"Loading {len(entries)} files...", project_id=project_id)
            workspace = await materialize_project(self.workspaces_dir, project_id, entries)

            try:
                engine = await self.engine_factory(self.engine_options(project_id, workspace), project_id)
            except Exception as e:
                await self._discard_workspace(workspace, project_id)
                if isinstance(e, EngineError):
                    raise
                raise EngineError(project_id, str(e) or type(e).__name__)

            session = ProjectSession(
                project_id=project_id,
                workspace_path=workspace,
                handle=CompilerSession(project_id, engine, self.notifier),
                manifest=entries,
                created_at=self.clock(),
            )
            self.registry.insert(project_id, session)

        log("LOAD", "✅ Project loaded successfully", project_id=project_id)
        return session

    async def _discard_workspace(self, workspace: Path, project_id: str) -> None:
        try:
            await remove_workspace(workspace)
        except OSError as e:
            log("LOAD", f"⚠️ Could not delete workspace {workspace}: {e}", project_id=project_id)

    # =========================================================================
    # UPDATE / SERVE
    # =========================================================================

    async def update_file(self, project_id: Any, path: Any, content: Any) -> Path:
        return await dispatch_update(self.registry, project_id, path, content)

    async def serve(self, project_id: str, request: EngineRequest) -> EngineResponse:
        session = self.registry.require(project_id)
        return await session.handle.serve(request)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        self.settings.ensure_directories()
        self.reaper.start()

    async def shutdown(self) -> None:
        """Stop sweeping, then close every remaining session before exit."""
        await self.reaper.stop()
        drained = await self.reaper.drain()
        log("SERVER", f"Closed {len(drained)} session(s)")
