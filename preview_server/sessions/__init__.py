# preview_server/sessions/__init__.py
"""
Project session lifecycle: registry, handles, updates and eviction.
"""
from .handle import CompilerSession, ProjectSession
from .registry import SessionRegistry
from .dispatcher import dispatch_update
from .reaper import Reaper
from .manager import SessionManager, preview_url

__all__ = [
    "CompilerSession",
    "ProjectSession",
    "SessionRegistry",
    "dispatch_update",
    "Reaper",
    "SessionManager",
    "preview_url",
]
