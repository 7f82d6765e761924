# preview_server/lib/file_system.py
# Preview Server - Workspace File System Operations
# Materializes incoming project files into isolated per-session workspaces.

import asyncio
import os
import re
import shutil
import uuid
import aiofiles
from pathlib import Path
from typing import Any, List, Sequence
from pydantic import BaseModel

from preview_server.core.exceptions import InvalidInputError, MaterializationError
from preview_server.core.logging import log

# ================================================================
# MODELS
# ================================================================

class FileEntry(BaseModel):
    """A single virtual file: path relative to the workspace root plus its text."""
    path: str
    content: str

# ================================================================
# PATH SAFETY FUNCTIONS
# ================================================================

PROJECT_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]{1,100}$')


def validate_project_id(project_id: Any) -> str:
    """
    Validate project_id format to prevent path traversal attacks.
    Only allows alphanumeric, hyphens, and underscores (1-100 chars).
    """
    if not project_id or not isinstance(project_id, str):
        raise InvalidInputError("Invalid request: projectId required")
    if not PROJECT_ID_PATTERN.match(project_id):
        raise InvalidInputError(
            "Invalid project ID format",
            {"reason": "projectId may only contain letters, digits, '-' and '_' (max 100)"},
        )
    return project_id


def normalize_relative_path(raw_path: Any) -> str:
    """
    Normalize a caller supplied path to a clean POSIX path relative to the workspace.
    Leading slashes are dropped ("/index.html" -> "index.html"); ".." is rejected.
    Characters the file system cannot store (NUL, unencodable text) are rejected.
    """
    if not isinstance(raw_path, str):
        raise InvalidInputError("Invalid request: file path must be a string")
    if "\x00" in raw_path:
        raise InvalidInputError("Invalid file path", {"reason": "file path contains a NUL byte"})
    try:
        os.fsencode(raw_path)
    except UnicodeError:
        raise InvalidInputError("Invalid file path", {"reason": "file path is not valid text"})
    cleaned = raw_path.replace("\\", "/").strip().lstrip("/")
    parts: List[str] = []
    for part in cleaned.split("/"):
        if not part or part == ".":
            continue
        if part == "..":
            raise InvalidInputError(
                "Path traversal is not allowed", {"reason": f"'{raw_path}' escapes the workspace"}
            )
        parts.append(part)
    if not parts:
        raise InvalidInputError("Invalid request: file path required")
    return "/".join(parts)


def resolve_workspace_file(workspace_root: Path, raw_path: Any) -> Path:
    """
    Resolve a caller supplied path inside workspace_root.

    Uses resolve() so symlinks inside the workspace cannot point the write elsewhere.
    """
    relative = normalize_relative_path(raw_path)
    root = workspace_root.resolve()
    candidate = (root / relative).resolve()
    try:
        candidate.relative_to(root)
    except ValueError:
        raise InvalidInputError(
            "Path traversal is not allowed", {"reason": f"'{raw_path}' escapes the workspace"}
        )
    return candidate


def create_workspace(base_dir: Path, project_id: str) -> Path:
    """
    Create a fresh, exclusively owned workspace directory for one session.

    The random suffix keeps every session generation on its own path, so a
    replaced session's pending deletion never touches its successor.
    """
    validate_project_id(project_id)
    workspace = base_dir.resolve() / f"{project_id}-{uuid.uuid4().hex[:8]}"
    workspace.mkdir(parents=True, exist_ok=False)
    return workspace

# ================================================================
# FILE I/O OPERATIONS
# ================================================================

async def read_file_bytes(file_path: Path) -> bytes:
    """Read a file asynchronously as raw bytes."""
    async with aiofiles.open(file_path, "rb") as f:
        return await f.read()


async def write_file_content(file_path: Path, content: str) -> None:
    """Write text content to a file asynchronously, ensuring parent directory exists."""
    file_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(file_path, "w", encoding="utf-8") as f:
        await f.write(content)


async def remove_workspace(workspace: Path) -> None:
    """Recursively delete a workspace. A missing directory is not an error."""
    if not workspace.exists():
        return
    await asyncio.to_thread(shutil.rmtree, workspace)


def coerce_file_entries(files: Any) -> List[FileEntry]:
    """Validate the raw file set shape: a list of {path, content} entries."""
    if not isinstance(files, (list, tuple)):
        raise InvalidInputError("Invalid request: projectId and files required")
    entries: List[FileEntry] = []
    for item in files:
        if isinstance(item, FileEntry):
            entries.append(item)
        elif isinstance(item, dict) and isinstance(item.get("path"), str) and isinstance(item.get("content"), str):
            entries.append(FileEntry(path=item["path"], content=item["content"]))
        else:
            raise InvalidInputError("Invalid request: every file needs a path and string content")
    return entries


async def materialize_project(base_dir: Path, project_id: str, files: Sequence[Any]) -> Path:
    """
    Write a project's files into a brand new workspace.

    Every path is validated before anything touches the disk, so a single
    traversal attempt rejects the whole load. On I/O failure the partial
    workspace is removed and MaterializationError is raised; any other error
    also removes it before propagating.
    """
    validate_project_id(project_id)
    entries = coerce_file_entries(files)
    for entry in entries:
        normalize_relative_path(entry.path)

    try:
        workspace = create_workspace(base_dir, project_id)
    except OSError as e:
        raise MaterializationError("Failed to load project", str(e), str(base_dir))

    try:
        for entry in entries:
            target = resolve_workspace_file(workspace, entry.path)
            await write_file_content(target, entry.content)
            log("MATERIALIZE", f"Wrote {entry.path}", project_id=project_id)
    except OSError as e:
        await remove_workspace(workspace)
        raise MaterializationError("Failed to load project", str(e), str(workspace))
    except Exception:
        await remove_workspace(workspace)
        raise

    log("MATERIALIZE", f"Materialized {len(entries)} files into {workspace}", project_id=project_id)
    return workspace
