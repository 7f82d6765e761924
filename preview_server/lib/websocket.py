from typing import Any, Dict, List
import asyncio

from fastapi import WebSocket

from preview_server.core.logging import log


class ConnectionManager:
    """
    Per-project WebSocket connection manager for preview clients.

    - Each project_id has its own list of WebSocket connections.
    - Live-update payloads from a session go to every client of that project.
    """

    def __init__(self) -> None:
        # project_id -> list[WebSocket]
        self.active_connections: Dict[str, List[WebSocket]] = {}
        self._lock = asyncio.Lock()

    def count(self, project_id: str) -> int:
        return len(self.active_connections.get(project_id, []))

    async def connect(self, websocket: WebSocket, project_id: str) -> None:
        await websocket.accept()
        async with self._lock:
            self.active_connections.setdefault(project_id, []).append(websocket)
        log("WS", f"Client connected ({self.count(project_id)} total)", project_id=project_id)

    async def disconnect(self, websocket: WebSocket, project_id: str) -> None:
        async with self._lock:
            connections = self.active_connections.get(project_id, [])
            if websocket in connections:
                connections.remove(websocket)
            if not connections and project_id in self.active_connections:
                del self.active_connections[project_id]

    async def send_to_project(self, project_id: str, message: Dict[str, Any]) -> None:
        """
        Send a JSON message to all clients connected for a given project_id.
        Takes a snapshot of connections under lock.
        """
        async with self._lock:
            connections = list(self.active_connections.get(project_id, []))

        disconnected: List[WebSocket] = []

        for ws in connections:
            try:
                await ws.send_json(message)
            except Exception:
                # mark for removal
                disconnected.append(ws)

        for ws in disconnected:
            await self.disconnect(ws, project_id)
