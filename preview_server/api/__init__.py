# preview_server/api/__init__.py
"""
API module - All route handlers.
"""
from . import health, projects, preview

__all__ = [
    "health",
    "projects",
    "preview",
]
