"""Database module for SCAAF.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from scaaf.db.engine import create_db_engine, get_engine
from scaaf.db.models import (
    Address,
    AddressStatus,
    Base,
    Circle,
    CircleEmail,
    CircleInvite,
    CircleMember,
    CircleRole,
    CommentReaction,
    EmailComment,
    EmailHighlight,
    InboxEmail,
    User,
)
from scaaf.db.session import get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "AddressStatus",
    "CircleRole",
    # Models
    "User",
    "Address",
    "InboxEmail",
    "EmailHighlight",
    "EmailComment",
    "CommentReaction",
    "Circle",
    "CircleMember",
    "CircleEmail",
    "CircleInvite",
]
