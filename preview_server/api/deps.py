# preview_server/api/deps.py
"""
Request dependencies. Handlers receive the app's SessionManager instead of
reaching for a module global.
"""
from fastapi import Request

from preview_server.sessions import SessionManager


def get_sessions(request: Request) -> SessionManager:
    return request.app.state.sessions
