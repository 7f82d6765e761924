"""
Update dispatcher tests: validation order, not-found isolation, write-before-invalidate.
"""
import pytest

from preview_server.core.exceptions import InvalidInputError, ProjectNotFoundError
from preview_server.engine.base import EngineRequest
from preview_server.sessions import dispatch_update


async def test_unknown_project_is_not_found_and_touches_nothing(session_manager, workspaces_dir):
    with pytest.raises(ProjectNotFoundError):
        await dispatch_update(session_manager.registry, "ghost", "index.html", "boo")

    assert list(workspaces_dir.iterdir()) == []
    assert len(session_manager.registry) == 0


@pytest.mark.parametrize("project_id,path,content", [
    ("demo", None, "x"),
    ("demo", "", "x"),
    ("demo", "index.html", None),
    ("", "index.html", "x"),
    ("demo", "../escape.txt", "x"),
])
async def test_invalid_input(session_manager, demo_files, project_id, path, content):
    await session_manager.load_project("demo", demo_files)
    with pytest.raises(InvalidInputError):
        await dispatch_update(session_manager.registry, project_id, path, content)


async def test_invalid_input_wins_over_not_found(session_manager):
    with pytest.raises(InvalidInputError):
        await dispatch_update(session_manager.registry, "ghost", None, "x")


async def test_update_overwrites_and_invalidates(session_manager, demo_files, notifications):
    session = await session_manager.load_project("demo", demo_files)
    await session.handle.serve(EngineRequest("GET", "/src/main.jsx"))

    target = await dispatch_update(session_manager.registry, "demo", "src/main.jsx", "console.log('v2')")

    assert target.read_text(encoding="utf-8") == "console.log('v2')"
    assert len(notifications.messages) == 1
    assert notifications.messages[0][1]["updates"][0]["path"] == str(target)


async def test_write_completes_before_invalidation(session_manager, demo_files, monkeypatch):
    session = await session_manager.load_project("demo", demo_files)
    await session.handle.serve(EngineRequest("GET", "/index.html"))
    seen = []
    original = session.handle.invalidate

    async def spying_invalidate(path):
        seen.append(path.read_text(encoding="utf-8"))
        return await original(path)

    monkeypatch.setattr(session.handle, "invalidate", spying_invalidate)

    await dispatch_update(session_manager.registry, "demo", "/index.html", "<h1>new</h1>")

    assert seen == ["<h1>new</h1>"]


async def test_update_can_add_new_files(session_manager, demo_files, notifications):
    session = await session_manager.load_project("demo", demo_files)

    target = await dispatch_update(session_manager.registry, "demo", "src/new/Widget.jsx", "export {}")

    assert target == (session.workspace_path / "src" / "new" / "Widget.jsx").resolve()
    assert target.read_text(encoding="utf-8") == "export {}"
    # Never compiled, so nothing to push
    assert notifications.messages == []


async def test_update_does_not_touch_manifest_or_created_at(session_manager, demo_files, clock):
    session = await session_manager.load_project("demo", demo_files)
    created = session.created_at
    clock.advance(600)

    await dispatch_update(session_manager.registry, "demo", "index.html", "changed")

    assert session.created_at == created
    assert [entry.content for entry in session.manifest][0] == "<h1>hi</h1>"
