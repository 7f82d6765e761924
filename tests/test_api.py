"""
HTTP surface tests: load, update, preview routing and error mapping.
"""
import pytest


async def load_demo(client, project_id="demo", files=None):
    return await client.post("/load-project", json={
        "projectId": project_id,
        "files": files or [{"path": "/index.html", "content": "<h1>hi</h1>"}],
    })


@pytest.mark.asyncio
async def test_load_then_preview_scenario(async_client):
    response = await load_demo(async_client)
    assert response.status_code == 200
    assert response.json() == {"success": True, "projectId": "demo", "previewUrl": "/preview/demo"}

    preview = await async_client.get("/preview/demo")
    assert preview.status_code == 200
    assert "<h1>hi</h1>" in preview.text


@pytest.mark.asyncio
async def test_preview_is_iframe_friendly(async_client):
    await load_demo(async_client)

    preview = await async_client.get("/preview/demo/index.html")

    assert "x-frame-options" not in preview.headers
    assert preview.headers["content-security-policy"] == "frame-ancestors *"
    assert preview.headers["cross-origin-resource-policy"] == "cross-origin"
    assert preview.headers["cross-origin-embedder-policy"] == "unsafe-none"
    assert preview.headers["cross-origin-opener-policy"] == "unsafe-none"
    assert preview.headers["access-control-allow-origin"] == "*"


@pytest.mark.asyncio
async def test_update_unknown_project_scenario(async_client, workspaces_dir):
    response = await async_client.post("/update-file", json={
        "projectId": "ghost", "path": "index.html", "content": "boo",
    })

    assert response.status_code == 404
    assert response.json()["error"] == "Project not found"
    assert not any(p.name.startswith("ghost") for p in workspaces_dir.iterdir())


@pytest.mark.asyncio
async def test_update_then_preview_shows_new_content(async_client):
    await load_demo(async_client)
    first = await async_client.get("/preview/demo/")
    assert "<h1>hi</h1>" in first.text

    response = await async_client.post("/update-file", json={
        "projectId": "demo", "path": "/index.html", "content": "<h1>updated</h1>",
    })
    assert response.status_code == 200
    assert response.json() == {"success": True}

    second = await async_client.get("/preview/demo/")
    assert "<h1>updated</h1>" in second.text


@pytest.mark.asyncio
async def test_nested_assets_are_served(async_client):
    await load_demo(async_client, files=[
        {"path": "index.html", "content": "<script src='/src/main.jsx'></script>"},
        {"path": "src/main.jsx", "content": "console.log(1)"},
    ])

    asset = await async_client.get("/preview/demo/src/main.jsx")

    assert asset.status_code == 200
    assert asset.text == "console.log(1)"
    assert asset.headers["content-type"].startswith("application/javascript")


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {},
    {"projectId": "demo"},
    {"projectId": "demo", "files": "index.html"},
    {"projectId": "", "files": []},
    {"projectId": "bad/id", "files": []},
    {"projectId": "demo", "files": [{"path": "../x", "content": "y"}]},
    {"projectId": "demo", "files": [{"path": "x"}]},
])
async def test_load_invalid_input_is_400(async_client, body):
    response = await async_client.post("/load-project", json=body)
    assert response.status_code == 400
    assert "error" in response.json()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"projectId": "demo", "content": "x"},
    {"projectId": "demo", "path": "index.html"},
    {"path": "index.html", "content": "x"},
    {"projectId": "demo", "path": "", "content": "x"},
])
async def test_update_invalid_input_is_400(async_client, body):
    await load_demo(async_client)
    response = await async_client.post("/update-file", json=body)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_accepts_empty_content(async_client):
    await load_demo(async_client)
    response = await async_client.post("/update-file", json={
        "projectId": "demo", "path": "empty.txt", "content": "",
    })
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_engine_failure_is_500_with_details(async_client, engine_factory):
    engine_factory.fail_next = True

    response = await load_demo(async_client)

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to load project"
    assert "engine exploded" in response.json()["details"]

    health = await async_client.get("/health")
    assert health.json()["activeProjects"] == 0


@pytest.mark.asyncio
async def test_preview_unknown_project_is_404(async_client):
    response = await async_client.get("/preview/nobody")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_preview_on_closed_session_is_gone(async_client, app):
    await load_demo(async_client)
    session = app.state.sessions.registry.lookup("demo")
    # Closed by an eviction racing this request, still visible in the lookup
    await session.handle.close()

    response = await async_client.get("/preview/demo")

    assert response.status_code == 410


@pytest.mark.asyncio
async def test_reload_keeps_single_session(async_client, app, counter):
    await load_demo(async_client)
    await load_demo(async_client, files=[{"path": "index.html", "content": "<h1>again</h1>"}])

    assert len(app.state.sessions.registry) == 1
    counter.assert_exact("close:demo", 1)
    preview = await async_client.get("/preview/demo")
    assert "again" in preview.text


@pytest.mark.asyncio
async def test_metrics_expose_active_sessions(async_client):
    await load_demo(async_client)
    response = await async_client.get("/metrics")
    assert response.status_code == 200
    assert "preview_active_sessions 1.0" in response.text


@pytest.mark.asyncio
async def test_reload_with_nul_path_keeps_live_session(async_client, app, counter, workspaces_dir):
    await load_demo(async_client)

    response = await load_demo(async_client, files=[
        {"path": "ok.txt", "content": "fine"},
        {"path": "a\u0000b", "content": "bad"},
    ])

    assert response.status_code == 400
    assert app.state.sessions.registry.lookup("demo") is not None
    counter.assert_exact("close:demo", 0)
    assert len(list(workspaces_dir.iterdir())) == 1
    preview = await async_client.get("/preview/demo")
    assert "<h1>hi</h1>" in preview.text
