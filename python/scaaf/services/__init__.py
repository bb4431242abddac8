"""Business logic services.

This module contains service-layer functions that implement business logic.
Services are called by route handlers and orchestrate database operations.
"""

from scaaf.services.bootstrap import ensure_user
from scaaf.services.inbox import get_email_for_viewer_or_404

__all__ = [
    "ensure_user",
    "get_email_for_viewer_or_404",
]
