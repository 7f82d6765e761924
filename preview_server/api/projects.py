# preview_server/api/projects.py
"""
Project admission and incremental updates.
"""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import JSONResponse

from preview_server.api.deps import get_sessions
from preview_server.core.exceptions import EngineError, MaterializationError
from preview_server.core.logging import log
from preview_server.lib.file_system import FileEntry
from preview_server.sessions import SessionManager, preview_url

router = APIRouter(tags=["Projects"])


class LoadProjectRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(alias="projectId")
    files: List[FileEntry]


class UpdateFileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(alias="projectId")
    path: str
    content: str


@router.post("/load-project")
async def load_project(data: LoadProjectRequest, sessions: SessionManager = Depends(get_sessions)):
    """Materialize the files and start a session; replaces any session with the same id."""
    try:
        await sessions.load_project(data.project_id, data.files)
    except (MaterializationError, EngineError) as e:
        log("ERROR", f"Error loading project: {e.message}", project_id=data.project_id)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to load project", "details": e.reason},
        )

    return {
        "success": True,
        "projectId": data.project_id,
        "previewUrl": preview_url(data.project_id),
    }


@router.post("/update-file")
async def update_file(data: UpdateFileRequest, sessions: SessionManager = Depends(get_sessions)):
    """Overwrite or add one file and push the change to connected previews."""
    await sessions.update_file(data.project_id, data.path, data.content)
    return {"success": True}
