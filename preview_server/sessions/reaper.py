# preview_server/sessions/reaper.py
"""
Reaper - periodic eviction of sessions past their retention threshold.

Usage:
    reaper = Reaper(registry, max_age_seconds=1800, interval_seconds=1800)
    reaper.start()
    ...
    await reaper.stop()
    await reaper.drain()   # on shutdown

Tests call `await reaper.sweep(now=...)` directly instead of waiting on the timer.
"""
import asyncio
import time
from pathlib import Path
from typing import Callable, List, Optional, Set

from preview_server.core.logging import log
from preview_server.lib.file_system import remove_workspace
from .handle import ProjectSession
from .registry import SessionRegistry


class Reaper:
    def __init__(
        self,
        registry: SessionRegistry,
        max_age_seconds: float = 1800,
        interval_seconds: float = 1800,
        delete_workspaces: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.max_age_seconds = max_age_seconds
        self.interval_seconds = interval_seconds
        self.delete_workspaces = delete_workspaces
        self.clock = clock
        self._task: Optional[asyncio.Task] = None
        self._cleanup_tasks: Set[asyncio.Task] = set()

    # =========================================================================
    # TIMER LIFECYCLE
    # =========================================================================

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        log("REAPER", f"Started (every {self.interval_seconds:g}s, max age {self.max_age_seconds:g}s)")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log("REAPER", "Stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.sweep()
            except Exception as e:
                log("REAPER", f"❌ Sweep failed: {e}")

    # =========================================================================
    # EVICTION
    # =========================================================================

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        """
        Evict every session older than the retention threshold.

        Returns:
            Ids of the evicted sessions
        """
        now = self.clock() if now is None else now
        evicted: List[str] = []

        for project_id, session in self.registry.entries():
            if session.age(now) <= self.max_age_seconds:
                continue
            async with self.registry.lock(project_id):
                # A re-load may have replaced the session while we waited
                if self.registry.lookup(project_id) is not session:
                    continue
                log("REAPER", "Cleaning up old project...", project_id=project_id)
                self.registry.remove(project_id)
                await self.release(session)
                evicted.append(project_id)

        if evicted:
            log("REAPER", f"Evicted {len(evicted)} session(s)")
        return evicted

    async def drain(self) -> List[str]:
        """Close every registered session regardless of age (process shutdown)."""
        drained: List[str] = []
        for project_id, session in self.registry.entries():
            async with self.registry.lock(project_id):
                if self.registry.lookup(project_id) is not session:
                    continue
                self.registry.remove(project_id)
                await self.release(session)
                drained.append(project_id)
        await self.wait_for_cleanup()
        return drained

    async def release(self, session: ProjectSession) -> None:
        """Close the engine, then schedule workspace deletion."""
        try:
            await session.handle.close()
        except Exception as e:
            log("REAPER", f"❌ Engine close failed: {e}", project_id=session.project_id)
        if self.delete_workspaces:
            self.schedule_workspace_removal(session.workspace_path, session.project_id)

    def schedule_workspace_removal(self, workspace: Path, project_id: str) -> None:
        """Fire-and-forget deletion. Failures are logged, never retried."""
        task = asyncio.create_task(self._remove_workspace(workspace, project_id))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def _remove_workspace(self, workspace: Path, project_id: str) -> None:
        try:
            await remove_workspace(workspace)
            log("REAPER", f"Deleted workspace {workspace.name}", project_id=project_id)
        except Exception as e:
            log("REAPER", f"⚠️ Could not delete workspace {workspace}: {e}", project_id=project_id)

    async def wait_for_cleanup(self) -> None:
        """Wait for every pending workspace deletion."""
        while self._cleanup_tasks:
            await asyncio.gather(*list(self._cleanup_tasks))
