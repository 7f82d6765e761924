# preview_server/engine/__init__.py
"""
Build/serve engines. One engine instance compiles and serves one workspace.
"""
from .base import EngineOptions, EngineRequest, EngineResponse, PreviewEngine, create_engine
from .module_graph import ModuleGraph, ModuleNode

__all__ = [
    "EngineOptions",
    "EngineRequest",
    "EngineResponse",
    "PreviewEngine",
    "create_engine",
    "ModuleGraph",
    "ModuleNode",
]
