# preview_server/sessions/dispatcher.py
"""
Update Dispatcher - apply one file change to a live session.

The write is awaited before the engine is told to invalidate, so a recompile
triggered by the notification can never read the old content.
"""
from pathlib import Path
from typing import Any

from preview_server.core.exceptions import InvalidInputError, MaterializationError
from preview_server.core.logging import log
from preview_server.lib.file_system import (
    normalize_relative_path,
    resolve_workspace_file,
    write_file_content,
)
from .registry import SessionRegistry


async def dispatch_update(registry: SessionRegistry, project_id: Any, path: Any, content: Any) -> Path:
    """
    Overwrite (or add) a file in a session's workspace and invalidate it.

    Raises:
        InvalidInputError: missing project id / path, or content is not a string
        ProjectNotFoundError: nothing registered for project_id; nothing is touched
        MaterializationError: the write itself failed

    Returns:
        The absolute path that was written.
    """
    if not project_id or not isinstance(project_id, str):
        raise InvalidInputError("Invalid request")
    if not isinstance(content, str):
        raise InvalidInputError("Invalid request")
    normalize_relative_path(path)

    async with registry.lock(project_id):
        # Looked up under the lock so an in-flight load or eviction settles first
        session = registry.require(project_id)
        target = resolve_workspace_file(session.workspace_path, path)

        log("UPDATE", f"Updating file: {path}", project_id=project_id)
        try:
            await write_file_content(target, content)
        except OSError as e:
            raise MaterializationError("Failed to update file", str(e), str(target))

        pushed = await session.handle.invalidate(target)
        log("UPDATE", "✅ File updated" + (" with HMR" if pushed else ""), project_id=project_id)
        return target
