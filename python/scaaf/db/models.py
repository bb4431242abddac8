"""SQLAlchemy ORM models for SCAAF.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Column types are dialect-neutral (Uuid, DateTime, JSON) and ids/timestamps
get Python-side defaults, so the same metadata runs on Postgres and SQLite.
The Postgres migration adds matching server defaults.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Timezone-aware current time, used for column defaults."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class CircleRole(str, PyEnum):
    """Role of a user inside a circle."""

    owner = "owner"
    member = "member"


class AddressStatus(str, PyEnum):
    """Lifecycle of an inbound mail address."""

    active = "active"
    disabled = "disabled"


# =============================================================================
# Users and addresses
# =============================================================================


class User(Base):
    """User model - mirrors the auth provider's user id."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    username: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    addresses: Mapped[list["Address"]] = relationship("Address", back_populates="user")


class Address(Base):
    """A receiving mailbox such as ``reader@scaaf.day``.

    Anonymous addresses carry a claim_token until a signed-in user claims them.
    """

    __tablename__ = "addresses"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    local_part: Mapped[str] = mapped_column(Text, nullable=False)
    domain: Mapped[str] = mapped_column(Text, nullable=False)
    full_address: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    claim_token: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    status: Mapped[str] = mapped_column(Text, default=AddressStatus.active.value, nullable=False)
    last_received_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("status IN ('active', 'disabled')", name="ck_addresses_status"),
    )

    user: Mapped["User | None"] = relationship("User", back_populates="addresses")


# =============================================================================
# Inbox
# =============================================================================


class InboxEmail(Base):
    """A newsletter delivered by the inbound webhook."""

    __tablename__ = "inbox_emails"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    address_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True
    )
    message_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    in_reply_to: Mapped[str | None] = mapped_column(Text, nullable=True)
    references: Mapped[list | None] = mapped_column(JSON, nullable=True)
    from_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    to_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    body_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    body_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    snippet: Mapped[str | None] = mapped_column(Text, nullable=True)
    headers: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    attachments: Mapped[list | None] = mapped_column(JSON, nullable=True)
    raw_mime: Mapped[str | None] = mapped_column(Text, nullable=True)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_inbox_emails_user_received", "user_id", "received_at"),
        Index("ix_inbox_emails_address_received", "address_id", "received_at"),
    )


class EmailHighlight(Base):
    """A quoted passage of an email, private until shared."""

    __tablename__ = "email_highlights"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("inbox_emails.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    quote: Mapped[str] = mapped_column(Text, nullable=False)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_shared: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("length(quote) > 0", name="ck_email_highlights_quote_nonempty"),
        Index("ix_email_highlights_email_created", "email_id", "created_at"),
    )


class EmailComment(Base):
    """A comment left on an email."""

    __tablename__ = "email_comments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("inbox_emails.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("length(text) > 0", name="ck_email_comments_text_nonempty"),
        Index("ix_email_comments_email_created", "email_id", "created_at"),
    )

    reactions: Mapped[list["CommentReaction"]] = relationship(
        "CommentReaction", cascade="all, delete-orphan"
    )


class CommentReaction(Base):
    """One emoji reaction by one user on one comment."""

    __tablename__ = "comment_reactions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    comment_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("email_comments.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    emoji: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", "emoji", name="uq_comment_reactions_user_emoji"),
    )


# =============================================================================
# Circles
# =============================================================================


class Circle(Base):
    """A small private group that shares newsletters."""

    __tablename__ = "circles"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("length(name) BETWEEN 1 AND 100", name="ck_circles_name_length"),
    )

    members: Mapped[list["CircleMember"]] = relationship(
        "CircleMember", back_populates="circle", cascade="all, delete-orphan"
    )


class CircleMember(Base):
    """Circle membership - the gate for every circle-scoped read and write."""

    __tablename__ = "circle_members"

    circle_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("circles.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[str] = mapped_column(Text, default=CircleRole.member.value, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("role IN ('owner', 'member')", name="ck_circle_members_role"),
    )

    circle: Mapped["Circle"] = relationship("Circle", back_populates="members")


class CircleEmail(Base):
    """An email shared into a circle. At most one row per (circle, email)."""

    __tablename__ = "circle_emails"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    circle_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("circles.id", ondelete="CASCADE"), nullable=False
    )
    email_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("inbox_emails.id", ondelete="CASCADE"), nullable=False
    )
    shared_by: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("circle_id", "email_id", name="uq_circle_emails_circle_email"),
        Index("ix_circle_emails_circle_created", "circle_id", "created_at"),
    )


class CircleInvite(Base):
    """A join code for a circle with an expiry and a use budget."""

    __tablename__ = "circle_invites"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    circle_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("circles.id", ondelete="CASCADE"), nullable=False
    )
    code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    created_by: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    uses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (CheckConstraint("uses >= 0", name="ck_circle_invites_uses"),)
