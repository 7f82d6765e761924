"""
Session registry tests: mapping semantics, observer, per-project locks.
"""
import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from preview_server.core.exceptions import ProjectNotFoundError
from preview_server.sessions import ProjectSession, SessionRegistry


def make_session(project_id: str) -> ProjectSession:
    return ProjectSession(project_id=project_id, workspace_path=Path(f"/tmp/{project_id}"), handle=MagicMock())


def test_insert_lookup_remove():
    registry = SessionRegistry()
    session = make_session("demo")

    registry.insert("demo", session)
    assert registry.lookup("demo") is session
    assert "demo" in registry
    assert len(registry) == 1

    assert registry.remove("demo") is session
    assert registry.lookup("demo") is None
    assert registry.remove("demo") is None
    assert len(registry) == 0


def test_require_raises_not_found():
    registry = SessionRegistry()
    with pytest.raises(ProjectNotFoundError) as exc_info:
        registry.require("ghost")
    assert exc_info.value.status_code == 404


def test_entries_is_a_snapshot():
    registry = SessionRegistry()
    for name in ("a", "b", "c"):
        registry.insert(name, make_session(name))

    for project_id, _ in registry.entries():
        registry.remove(project_id)

    assert len(registry) == 0


def test_observer_receives_count():
    seen = []
    registry = SessionRegistry(observer=seen.append)

    registry.insert("a", make_session("a"))
    registry.insert("b", make_session("b"))
    registry.remove("a")
    registry.remove("missing")

    assert seen == [1, 2, 1]


async def test_lock_serializes_same_project():
    registry = SessionRegistry()
    order = []

    async def worker(name: str, delay: float):
        async with registry.lock("demo"):
            order.append(f"{name}:enter")
            await asyncio.sleep(delay)
            order.append(f"{name}:exit")

    await asyncio.gather(worker("first", 0.05), worker("second", 0))

    assert order == ["first:enter", "first:exit", "second:enter", "second:exit"]


async def test_lock_does_not_block_other_projects():
    registry = SessionRegistry()
    order = []

    async def worker(project_id: str, delay: float):
        async with registry.lock(project_id):
            order.append(f"{project_id}:enter")
            await asyncio.sleep(delay)
            order.append(f"{project_id}:exit")

    await asyncio.gather(worker("a", 0.05), worker("b", 0))

    assert order.index("b:exit") < order.index("a:exit")


async def test_locks_are_released_when_idle():
    registry = SessionRegistry()
    async with registry.lock("demo"):
        assert "demo" in registry._locks
    assert registry._locks == {}
    assert registry._lock_users == {}
