# preview_server/lib/monitoring.py
from fastapi import FastAPI
from prometheus_client.registry import CollectorRegistry as Registry
from prometheus_client import Gauge
from prometheus_fastapi_instrumentator import Instrumentator
from preview_server.core.logging import log


def register_monitoring(app: FastAPI) -> Gauge:
    """
    Registers Prometheus monitoring on the FastAPI app and exposes /metrics.

    Each app gets its own registry so several apps can live in one process (tests).

    Returns:
        The active sessions gauge, to be fed by the session registry.
    """
    registry = Registry()

    active_sessions = Gauge(
        'preview_active_sessions',
        'Number of live project preview sessions',
        registry=registry
    )

    instrumentator = Instrumentator(
        excluded_handlers=["/metrics"],  # Don't monitor the metrics endpoint itself
        registry=registry
    ).instrument(app)

    instrumentator.expose(app, include_in_schema=False, should_gzip=True)

    app.state.metrics_registry = registry
    log("MONITORING", "Prometheus instrumentation registered at /metrics.")
    return active_sessions
