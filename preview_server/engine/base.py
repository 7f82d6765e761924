# preview_server/engine/base.py
"""
Engine contract.

An engine is the build/serve capability for one workspace. The session layer
only talks to it through this interface: hand it an HTTP-shaped request, get
an HTTP-shaped response, look things up in its module graph, close it.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from preview_server.core.exceptions import EngineError
from preview_server.core.logging import log
from .module_graph import ModuleGraph


@dataclass
class EngineOptions:
    """
    How an engine instance is configured.

    Engines are request-driven: they only answer what the preview mount
    hands them, with their own live-reload transport off, because update
    delivery belongs to the session layer. Any Host header is accepted
    because previews are reverse-proxied under arbitrary hostnames.
    app_type "spa" lets an external engine answer "/" with index.html.
    """
    root: Path
    base: str = "/"
    hmr: bool = False
    allowed_hosts: bool = True
    app_type: str = "spa"
    log_level: str = "error"
    optimize_deps: Tuple[str, ...] = ("react", "react-dom")
    startup_timeout: float = 60.0
    command: str = "npx vite"


@dataclass
class EngineRequest:
    method: str
    path: str
    query: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass
class EngineResponse:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""


class PreviewEngine(ABC):
    """One running build/serve instance rooted at a workspace."""

    def __init__(self, options: EngineOptions):
        self.options = options
        self.root = options.root.resolve()
        self.module_graph = ModuleGraph()

    async def start(self) -> None:
        """Bring the engine up. In-process engines have nothing to do."""

    @abstractmethod
    async def handle(self, request: EngineRequest) -> EngineResponse:
        """Serve one request scoped to the workspace."""

    @abstractmethod
    async def close(self) -> None:
        """Release every resource held by the engine."""


ENGINE_KINDS = ("static", "vite")


async def create_engine(kind: str, options: EngineOptions, project_id: str = "") -> PreviewEngine:
    """
    Build and start an engine of the given kind.

    Any failure while starting is reported as EngineError; the caller treats
    the session as never created.
    """
    if kind == "static":
        from .static import StaticEngine
        engine_cls = StaticEngine
    elif kind == "vite":
        from .vite import ViteEngine
        engine_cls = ViteEngine
    else:
        raise EngineError(project_id, f"Unknown engine kind '{kind}' (expected one of {ENGINE_KINDS})")

    engine: Optional[PreviewEngine] = None
    try:
        engine = engine_cls(options)
        await engine.start()
    except EngineError as e:
        raise EngineError(project_id or e.project_id, e.reason)
    except Exception as e:
        if engine is not None:
            await engine.close()
        raise EngineError(project_id, str(e) or type(e).__name__)

    log("ENGINE", f"{kind} engine ready at {options.root}", project_id=project_id or None)
    return engine
