"""Inbox email, highlight, comment and reaction schemas."""

from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from scaaf.schemas.common import UtcDatetime

# =============================================================================
# Output Schemas
# =============================================================================


class InboxEmailSummaryOut(BaseModel):
    """Inbox list row."""

    id: UUID
    from_address: str | None = None
    to_address: str | None = None
    subject: str | None = None
    snippet: str | None = None
    received_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)


class AttachmentOut(BaseModel):
    filename: str | None = None
    content_type: str | None = None
    size: int | None = None


class InboxEmailOut(InboxEmailSummaryOut):
    """Full email for the reader view."""

    body_text: str | None = None
    body_html: str | None = None
    message_id: str | None = None
    in_reply_to: str | None = None
    attachments: list[AttachmentOut] | None = None
    is_owner: bool


class EmailHighlightOut(BaseModel):
    """A highlight owned by the viewer."""

    id: UUID
    email_id: UUID
    user_id: UUID
    quote: str
    memo: str | None = None
    is_shared: bool
    created_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)


class ReactionOut(BaseModel):
    """Aggregated reaction for one emoji on one comment."""

    emoji: str
    count: int
    reacted: bool


class CommentOut(BaseModel):
    """A comment with its author display data and reaction aggregate."""

    id: UUID
    email_id: UUID
    user_id: UUID
    author_name: str
    author_avatar_color: str
    text: str
    created_at: UtcDatetime
    is_owner: bool
    reactions: list[ReactionOut]


# =============================================================================
# Request Schemas
# =============================================================================


class CreateHighlightRequest(BaseModel):
    """Quote is trimmed and must be non-empty; memo is optional."""

    quote: str | None = None
    memo: str | None = Field(default=None, max_length=2000)


class UpdateHighlightRequest(BaseModel):
    """Patch sharing state and/or memo. Omitted fields are left unchanged."""

    is_shared: bool | None = Field(
        default=None, validation_alias=AliasChoices("is_shared", "isShared")
    )
    memo: str | None = Field(default=None, max_length=2000)


class CreateCommentRequest(BaseModel):
    text: str | None = None


class ToggleReactionRequest(BaseModel):
    emoji: str = Field(..., min_length=1, max_length=32)
