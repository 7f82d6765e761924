# preview_server/sessions/registry.py
"""
Session Registry - the single source of truth for which projects are live.

Responsibilities:
- Map project ids to ProjectSession records
- Hand out a per-project lock so load / update / evict on one id never interleave
- Report the session count to an optional observer (metrics)

The registry never closes engines itself; whoever removes a session owns
closing it.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

from preview_server.core.exceptions import ProjectNotFoundError
from preview_server.core.logging import log
from .handle import ProjectSession


class SessionRegistry:
    def __init__(self, observer: Optional[Callable[[int], None]] = None) -> None:
        self._sessions: Dict[str, ProjectSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self.observer = observer

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, project_id: str) -> bool:
        return project_id in self._sessions

    def _notify(self) -> None:
        if self.observer is not None:
            self.observer(len(self._sessions))

    def insert(self, project_id: str, session: ProjectSession) -> None:
        """
        Register a session. Overwrites silently: callers must have removed and
        closed any previous session for the id first.
        """
        self._sessions[project_id] = session
        log("REGISTRY", f"Registered ({len(self._sessions)} active)", project_id=project_id)
        self._notify()

    def lookup(self, project_id: str) -> Optional[ProjectSession]:
        return self._sessions.get(project_id)

    def require(self, project_id: str) -> ProjectSession:
        session = self._sessions.get(project_id)
        if session is None:
            raise ProjectNotFoundError(project_id)
        return session

    def remove(self, project_id: str) -> Optional[ProjectSession]:
        session = self._sessions.pop(project_id, None)
        if session is not None:
            log("REGISTRY", f"Removed ({len(self._sessions)} active)", project_id=project_id)
            self._notify()
        return session

    def entries(self) -> List[Tuple[str, ProjectSession]]:
        """Snapshot, safe to iterate while sessions are removed."""
        return list(self._sessions.items())

    @asynccontextmanager
    async def lock(self, project_id: str) -> AsyncIterator[None]:
        """Exclusive section for one project id."""
        lock = self._locks.get(project_id)
        if lock is None:
            lock = self._locks[project_id] = asyncio.Lock()
        self._lock_users[project_id] = self._lock_users.get(project_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[project_id] -= 1
            if self._lock_users[project_id] == 0:
                del self._lock_users[project_id]
                del self._locks[project_id]
