# preview_server/core/config.py
"""
Application configuration - single source of truth for all settings.
"""
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Tuple
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name) or default
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class ServerSettings:
    """HTTP surface configuration."""
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "5173")))
    allowed_origins: List[str] = field(
        default_factory=lambda: _env_list("ALLOWED_ORIGINS", "http://localhost:3000")
    )
    rate_limit: str = field(default_factory=lambda: os.getenv("RATE_LIMIT", "100/minute"))
    rate_limit_enabled: bool = field(default_factory=lambda: _env_bool("RATE_LIMIT_ENABLED", "true"))


@dataclass
class SessionSettings:
    """Session retention and reaper configuration."""
    # Sessions older than this are evicted on the next sweep
    max_age_seconds: float = field(
        default_factory=lambda: float(os.getenv("SESSION_MAX_AGE_SECONDS", "1800"))
    )
    sweep_interval_seconds: float = field(
        default_factory=lambda: float(os.getenv("SESSION_SWEEP_INTERVAL_SECONDS", "1800"))
    )
    delete_workspaces: bool = field(default_factory=lambda: _env_bool("DELETE_WORKSPACES", "true"))


@dataclass
class EngineSettings:
    """Build/serve engine configuration."""
    kind: str = field(default_factory=lambda: os.getenv("PREVIEW_ENGINE", "static"))
    hmr: bool = field(default_factory=lambda: _env_bool("PREVIEW_HMR", "false"))
    vite_command: str = field(default_factory=lambda: os.getenv("VITE_COMMAND", "npx vite"))
    startup_timeout: float = field(
        default_factory=lambda: float(os.getenv("ENGINE_STARTUP_TIMEOUT", "60"))
    )
    log_level: str = field(default_factory=lambda: os.getenv("ENGINE_LOG_LEVEL", "error"))
    optimize_deps: Tuple[str, ...] = ("react", "react-dom")


@dataclass
class PathSettings:
    """Path configuration."""
    base_dir: Path = field(default_factory=lambda: Path(__file__).parent.parent.parent)
    workspaces_dir: Path = field(default_factory=lambda: Path(
        os.getenv("WORKSPACES_DIR") or
        str(Path(__file__).parent.parent.parent / "projects")
    ))


@dataclass
class Settings:
    """Main application settings."""
    server: ServerSettings = field(default_factory=ServerSettings)
    sessions: SessionSettings = field(default_factory=SessionSettings)
    engine: EngineSettings = field(default_factory=EngineSettings)
    paths: PathSettings = field(default_factory=PathSettings)
    debug: bool = field(default_factory=lambda: _env_bool("DEBUG", "false"))

    def ensure_directories(self):
        """Ensure required directories exist."""
        self.paths.workspaces_dir.mkdir(parents=True, exist_ok=True)


# Singleton instance
settings = Settings()
