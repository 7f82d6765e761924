# preview_server/core/exceptions.py
"""
Custom exceptions for the preview server.

Every exception carries the HTTP status it maps to at the handler boundary.
"""
from typing import Optional, Dict, Any


class PreviewServerError(Exception):
    """Base exception for all preview server errors."""
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details.get("reason", self.details)
        return body


class InvalidInputError(PreviewServerError):
    """Missing or malformed request fields. Never retried."""
    status_code = 400


class ProjectNotFoundError(PreviewServerError):
    """No session is registered for the project id."""
    status_code = 404

    def __init__(self, project_id: str):
        super().__init__("Project not found", {"project_id": project_id})
        self.project_id = project_id

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message, "projectId": self.project_id}


class MaterializationError(PreviewServerError):
    """Workspace creation or file write failed."""
    status_code = 500

    def __init__(self, message: str, reason: str, path: Optional[str] = None):
        details: Dict[str, Any] = {"reason": reason}
        if path:
            details["path"] = path
        super().__init__(message, details)
        self.reason = reason
        self.path = path


class EngineError(PreviewServerError):
    """The build/serve engine failed to start or to serve a request."""
    status_code = 500

    def __init__(self, project_id: str, reason: str):
        super().__init__(
            f"Engine error for {project_id}: {reason}",
            {"project_id": project_id, "reason": reason},
        )
        self.project_id = project_id
        self.reason = reason


class SessionGoneError(PreviewServerError):
    """The session was evicted while the request was in flight."""
    status_code = 410

    def __init__(self, project_id: str):
        super().__init__("Project session has been closed", {"project_id": project_id})
        self.project_id = project_id

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message, "projectId": self.project_id}
