"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter

from scaaf.api.routes.addresses import router as addresses_router
from scaaf.api.routes.circles import router as circles_router
from scaaf.api.routes.comments import router as comments_router
from scaaf.api.routes.health import router as health_router
from scaaf.api.routes.highlights import router as highlights_router
from scaaf.api.routes.inbound import router as inbound_router
from scaaf.api.routes.inbox import router as inbox_router
from scaaf.api.routes.me import router as me_router

API_PREFIX = "/api"


def create_api_router() -> APIRouter:
    """Create and configure the API router.

    Returns:
        Configured APIRouter with all routes registered under /api.
    """
    api_router = APIRouter(prefix=API_PREFIX)
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(me_router, tags=["user"])
    api_router.include_router(circles_router, tags=["circles"])
    api_router.include_router(inbox_router)
    api_router.include_router(highlights_router)
    api_router.include_router(comments_router)
    api_router.include_router(addresses_router)
    api_router.include_router(inbound_router)
    return api_router


__all__ = ["create_api_router"]
