# tests/conftest.py
"""
Shared pytest fixtures for preview server tests.

Provides:
- Temporary workspaces directory and settings pointing at it
- A spy engine that counts start/close calls per project
- A controllable clock for eviction tests
- A SessionManager and an ASGI app + async HTTP client wired to the spy
"""
from typing import Any, Dict, List, Tuple

import pytest
from httpx import AsyncClient, ASGITransport

from preview_server.core.config import PathSettings, ServerSettings, SessionSettings, Settings
from preview_server.engine.base import EngineOptions
from preview_server.engine.static import StaticEngine
from preview_server.main import create_app
from preview_server.sessions import SessionManager
from tests.utils.call_counter import CallCounter


# ═══════════════════════════════════════════════════════
# MOCK TYPES
# ═══════════════════════════════════════════════════════

class FakeClock:
    """Wall clock stand-in; tests move time explicitly."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SpyEngine(StaticEngine):
    """Static engine that records lifecycle calls."""

    def __init__(self, options: EngineOptions, counter: CallCounter, project_id: str):
        super().__init__(options)
        self.counter = counter
        self.project_id = project_id

    async def close(self) -> None:
        self.counter.inc(f"close:{self.project_id}")
        self.counter.inc("close")
        await super().close()


class SpyEngineFactory:
    def __init__(self, counter: CallCounter):
        self.counter = counter
        self.engines: List[SpyEngine] = []
        self.fail_next = False

    async def __call__(self, options: EngineOptions, project_id: str) -> SpyEngine:
        self.counter.inc("start")
        if self.fail_next:
            self.fail_next = False
            raise RuntimeError("engine exploded")
        engine = SpyEngine(options, self.counter, project_id)
        self.engines.append(engine)
        return engine


class NotificationRecorder:
    def __init__(self):
        self.messages: List[Tuple[str, Dict[str, Any]]] = []

    async def __call__(self, project_id: str, message: Dict[str, Any]) -> None:
        self.messages.append((project_id, message))


# ═══════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════

@pytest.fixture
def workspaces_dir(tmp_path):
    path = tmp_path / "projects"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(workspaces_dir):
    return Settings(
        server=ServerSettings(
            port=5173,
            allowed_origins=["http://localhost:3000"],
            rate_limit="1000/minute",
            rate_limit_enabled=False,
        ),
        sessions=SessionSettings(
            max_age_seconds=1800,
            sweep_interval_seconds=1800,
            delete_workspaces=True,
        ),
        paths=PathSettings(workspaces_dir=workspaces_dir),
    )


@pytest.fixture
def counter():
    return CallCounter()


@pytest.fixture
def engine_factory(counter):
    return SpyEngineFactory(counter)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifications():
    return NotificationRecorder()


@pytest.fixture
def session_manager(test_settings, engine_factory, notifications, clock):
    return SessionManager(
        test_settings,
        engine_factory=engine_factory,
        notifier=notifications,
        clock=clock,
    )


@pytest.fixture
def app(test_settings, engine_factory):
    return create_app(test_settings, engine_factory=engine_factory)


@pytest.fixture
async def async_client(app):
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def demo_files():
    return [
        {"path": "/index.html", "content": "<h1>hi</h1>"},
        {"path": "src/main.jsx", "content": "console.log('main')"},
        {"path": "src/components/App.jsx", "content": "export default function App() {}"},
    ]
