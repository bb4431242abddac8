"""Circle Pydantic schemas.

Contains request and response models for circles, invites, sharing and
the circle feeds. Request bodies accept snake_case and the camelCase
spellings older clients send.
"""

from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from scaaf.schemas.common import UtcDatetime

# =============================================================================
# Output Schemas
# =============================================================================


class CircleOut(BaseModel):
    """A circle the viewer belongs to, with aggregate counts."""

    id: UUID
    name: str
    description: str | None = None
    role: str
    member_count: int
    shared_count: int
    created_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)


class CircleCountsOut(BaseModel):
    members: int
    shares: int


class CircleDetailOut(BaseModel):
    """Single circle view."""

    id: UUID
    name: str
    description: str | None = None
    created_by: UUID | None = None
    created_at: UtcDatetime
    counts: CircleCountsOut


class MemberProfileOut(BaseModel):
    """Public face of a circle member."""

    id: UUID
    name: str
    avatar_url: str | None = None


class CircleFeedItemOut(BaseModel):
    """An email shared into a circle."""

    id: UUID
    circle_id: UUID
    email_id: UUID
    shared_at: UtcDatetime
    shared_by: UUID | None = None
    shared_by_profile: MemberProfileOut | None = None
    subject: str | None = None
    from_address: str | None = None
    snippet: str | None = None
    received_at: UtcDatetime | None = None
    highlight_count: int
    comment_count: int
    latest_activity: UtcDatetime | None = None


class CircleHighlightOut(BaseModel):
    """A shared highlight surfaced in a circle."""

    id: UUID
    circle_id: UUID
    circle_name: str
    email_id: UUID
    quote: str
    memo: str | None = None
    created_at: UtcDatetime
    shared_by: UUID | None = None
    shared_by_profile: MemberProfileOut | None = None
    subject: str | None = None
    from_address: str | None = None
    received_at: UtcDatetime | None = None


class InviteOut(BaseModel):
    code: str
    invite_url: str
    expires_at: UtcDatetime | None = None
    max_uses: int | None = None


class JoinCircleOut(BaseModel):
    circle_id: UUID
    circle_name: str
    already_member: bool


class ShareOut(BaseModel):
    """Result of sharing an email (and optionally a highlight) into a circle."""

    circle_id: UUID
    email_id: UUID
    highlight_id: UUID | None = None
    is_shared: bool | None = None
    duplicated: bool


# =============================================================================
# Request Schemas
# =============================================================================


class CreateCircleRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)


class CreateInviteRequest(BaseModel):
    """Invite parameters. Out-of-range values are clamped, not rejected."""

    expires_in_days: int | None = Field(
        default=None, validation_alias=AliasChoices("expires_in_days", "expiresInDays")
    )
    max_uses: int | None = Field(default=None, validation_alias=AliasChoices("max_uses", "maxUses"))


class JoinCircleRequest(BaseModel):
    code: str | None = None


class ShareToCircleRequest(BaseModel):
    """Share an email into a circle.

    circle_id and email_id are validated by the service so that a missing
    id maps to a plain 400 rather than a schema error.
    """

    circle_id: UUID | None = Field(
        default=None, validation_alias=AliasChoices("circle_id", "circleId")
    )
    email_id: UUID | None = Field(
        default=None, validation_alias=AliasChoices("email_id", "emailId")
    )
    highlight_id: UUID | None = Field(
        default=None, validation_alias=AliasChoices("highlight_id", "highlightId")
    )
    is_shared: bool = Field(default=True, validation_alias=AliasChoices("is_shared", "isShared"))
