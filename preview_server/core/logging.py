import sys
import os
from datetime import datetime
from typing import Any, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# LOG FILTERING
# ═══════════════════════════════════════════════════════════════════════════════
# Only these scopes are shown at INFO level
# Everything else is gated behind DEBUG

INFO_SCOPES = {
    "SERVER",       # Startup / shutdown
    "LOAD",         # Project admission
    "UPDATE",       # File updates
    "REAPER",       # Eviction sweeps
    "ENGINE",       # Engine start / stop
    "ERROR",        # Handler boundary failures
}

# DEBUG-only scopes (hidden by default)
DEBUG_SCOPES = {
    "MATERIALIZE",
    "REGISTRY",
    "PREVIEW",
    "HMR",
    "WS",
    "MONITORING",
}


def _debug_mode() -> bool:
    return os.getenv("PREVIEW_DEBUG", "false").lower() == "true"


def log(scope: str, message: str, data: Any = None, project_id: Optional[str] = None) -> None:
    """
    Unified logging function for the preview server.

    Only INFO_SCOPES are shown by default.
    Set PREVIEW_DEBUG=true to see all scopes.
    """
    if not _debug_mode() and scope not in INFO_SCOPES:
        return

    timestamp = datetime.now().strftime("%H:%M:%S")
    prefix = f"[{timestamp}] [{scope}]"

    if project_id:
        prefix += f" [{project_id}]"

    print(f"{prefix} {message}")

    if data:
        print(f"  Data: {data}")

    sys.stdout.flush()


def log_section(scope: str, title: str) -> None:
    """
    Log a section header with visual separator.
    """
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"\n{'='*60}")
    print(f"[{timestamp}] [{scope}] {title}")
    print(f"{'='*60}")
    sys.stdout.flush()
