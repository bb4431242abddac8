"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from scaaf.schemas.addresses import AddressOut, ClaimAddressRequest, CreateAddressRequest
from scaaf.schemas.circles import (
    CircleCountsOut,
    CircleDetailOut,
    CircleFeedItemOut,
    CircleHighlightOut,
    CircleOut,
    CreateCircleRequest,
    CreateInviteRequest,
    InviteOut,
    JoinCircleOut,
    JoinCircleRequest,
    MemberProfileOut,
    ShareOut,
    ShareToCircleRequest,
)
from scaaf.schemas.common import PageInfo, UtcDatetime
from scaaf.schemas.emails import (
    AttachmentOut,
    CommentOut,
    CreateCommentRequest,
    CreateHighlightRequest,
    EmailHighlightOut,
    InboxEmailOut,
    InboxEmailSummaryOut,
    ReactionOut,
    ToggleReactionRequest,
    UpdateHighlightRequest,
)

__all__ = [
    # Common
    "PageInfo",
    "UtcDatetime",
    # Addresses
    "AddressOut",
    "ClaimAddressRequest",
    "CreateAddressRequest",
    # Circles
    "CircleCountsOut",
    "CircleDetailOut",
    "CircleFeedItemOut",
    "CircleHighlightOut",
    "CircleOut",
    "CreateCircleRequest",
    "CreateInviteRequest",
    "InviteOut",
    "JoinCircleOut",
    "JoinCircleRequest",
    "MemberProfileOut",
    "ShareOut",
    "ShareToCircleRequest",
    # Emails
    "AttachmentOut",
    "CommentOut",
    "CreateCommentRequest",
    "CreateHighlightRequest",
    "EmailHighlightOut",
    "InboxEmailOut",
    "InboxEmailSummaryOut",
    "ReactionOut",
    "ToggleReactionRequest",
    "UpdateHighlightRequest",
]
