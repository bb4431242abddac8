"""FastAPI dependencies for route handlers.

Common dependencies like database sessions and settings.
"""

from scaaf.config import Settings, get_settings
from scaaf.db.session import get_db, get_session_factory

__all__ = ["get_db", "get_session_factory", "get_app_settings"]


def get_app_settings() -> Settings:
    """Settings as a dependency so tests can override them per app."""
    return get_settings()
