# preview_server/core/__init__.py
"""
Core module - configuration, exceptions and logging.
"""
from .config import settings, Settings
from .exceptions import (
    PreviewServerError,
    InvalidInputError,
    ProjectNotFoundError,
    MaterializationError,
    EngineError,
    SessionGoneError,
)

__all__ = [
    "settings",
    "Settings",
    "PreviewServerError",
    "InvalidInputError",
    "ProjectNotFoundError",
    "MaterializationError",
    "EngineError",
    "SessionGoneError",
]
