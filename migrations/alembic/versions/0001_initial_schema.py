"""Initial schema: users, addresses, inbox, highlights, comments, circles

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates tables:
  - users, addresses
  - inbox_emails, email_highlights, email_comments, comment_reactions
  - circles, circle_members, circle_emails, circle_invites

Keyset-paged reads order by (created_at DESC, id DESC) or
(received_at DESC, id DESC); the supporting indexes match that order.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID as PG_UUID

# revision identifiers, used by Alembic
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        PG_UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def _fk(name: str, target: str, ondelete: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        PG_UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    # =========================================================================
    # Users and addresses
    # =========================================================================
    op.create_table(
        "users",
        sa.Column("id", PG_UUID(as_uuid=True), primary_key=True),
        sa.Column("username", sa.Text(), nullable=True),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        _created_at(),
    )

    op.create_table(
        "addresses",
        _id(),
        _fk("user_id", "users.id", "SET NULL", nullable=True),
        sa.Column("local_part", sa.Text(), nullable=False),
        sa.Column("domain", sa.Text(), nullable=False),
        sa.Column("full_address", sa.Text(), nullable=False, unique=True),
        sa.Column("claim_token", sa.Text(), nullable=True, unique=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column("last_received_at", TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        sa.CheckConstraint("status IN ('active', 'disabled')", name="ck_addresses_status"),
    )
    op.create_index("idx_addresses_user", "addresses", ["user_id", "created_at"])

    # =========================================================================
    # Inbox
    # =========================================================================
    op.create_table(
        "inbox_emails",
        _id(),
        _fk("user_id", "users.id", "SET NULL", nullable=True),
        _fk("address_id", "addresses.id", "SET NULL", nullable=True),
        sa.Column("message_id", sa.Text(), nullable=True),
        sa.Column("in_reply_to", sa.Text(), nullable=True),
        sa.Column("references", JSONB(), nullable=True),
        sa.Column("from_address", sa.Text(), nullable=True),
        sa.Column("to_address", sa.Text(), nullable=True),
        sa.Column("subject", sa.Text(), nullable=True),
        sa.Column("body_text", sa.Text(), nullable=True),
        sa.Column("body_html", sa.Text(), nullable=True),
        sa.Column("snippet", sa.Text(), nullable=True),
        sa.Column("headers", JSONB(), nullable=True),
        sa.Column("attachments", JSONB(), nullable=True),
        sa.Column("raw_mime", sa.Text(), nullable=True),
        sa.Column(
            "received_at",
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        _created_at(),
    )
    op.create_index(
        "ix_inbox_emails_user_received",
        "inbox_emails",
        ["user_id", sa.text("received_at DESC"), sa.text("id DESC")],
    )
    op.create_index(
        "ix_inbox_emails_address_received",
        "inbox_emails",
        ["address_id", sa.text("received_at DESC"), sa.text("id DESC")],
    )

    op.create_table(
        "email_highlights",
        _id(),
        _fk("email_id", "inbox_emails.id", "CASCADE"),
        _fk("user_id", "users.id", "CASCADE"),
        sa.Column("quote", sa.Text(), nullable=False),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("is_shared", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.CheckConstraint("length(quote) > 0", name="ck_email_highlights_quote_nonempty"),
    )
    op.create_index(
        "ix_email_highlights_email_created", "email_highlights", ["email_id", "created_at"]
    )
    op.create_index(
        "idx_email_highlights_user_created",
        "email_highlights",
        ["user_id", sa.text("created_at DESC"), sa.text("id DESC")],
    )

    op.create_table(
        "email_comments",
        _id(),
        _fk("email_id", "inbox_emails.id", "CASCADE"),
        _fk("user_id", "users.id", "CASCADE"),
        sa.Column("text", sa.Text(), nullable=False),
        _created_at(),
        sa.CheckConstraint("length(text) > 0", name="ck_email_comments_text_nonempty"),
    )
    op.create_index(
        "ix_email_comments_email_created", "email_comments", ["email_id", "created_at"]
    )

    op.create_table(
        "comment_reactions",
        _id(),
        _fk("comment_id", "email_comments.id", "CASCADE"),
        _fk("user_id", "users.id", "CASCADE"),
        sa.Column("emoji", sa.Text(), nullable=False),
        _created_at(),
        sa.UniqueConstraint(
            "comment_id", "user_id", "emoji", name="uq_comment_reactions_user_emoji"
        ),
    )

    # =========================================================================
    # Circles
    # =========================================================================
    op.create_table(
        "circles",
        _id(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _fk("created_by", "users.id", "SET NULL", nullable=True),
        _created_at(),
        sa.CheckConstraint("length(name) BETWEEN 1 AND 100", name="ck_circles_name_length"),
    )

    op.create_table(
        "circle_members",
        sa.Column(
            "circle_id",
            PG_UUID(as_uuid=True),
            sa.ForeignKey("circles.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "user_id",
            PG_UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        _created_at(),
        sa.CheckConstraint("role IN ('owner', 'member')", name="ck_circle_members_role"),
    )
    op.create_index("idx_circle_members_user", "circle_members", ["user_id", "circle_id"])

    op.create_table(
        "circle_emails",
        _id(),
        _fk("circle_id", "circles.id", "CASCADE"),
        _fk("email_id", "inbox_emails.id", "CASCADE"),
        _fk("shared_by", "users.id", "SET NULL", nullable=True),
        _created_at(),
        sa.UniqueConstraint("circle_id", "email_id", name="uq_circle_emails_circle_email"),
    )
    op.create_index(
        "ix_circle_emails_circle_created",
        "circle_emails",
        ["circle_id", sa.text("created_at DESC"), sa.text("id DESC")],
    )
    op.create_index("idx_circle_emails_email", "circle_emails", ["email_id", "circle_id"])

    op.create_table(
        "circle_invites",
        _id(),
        _fk("circle_id", "circles.id", "CASCADE"),
        sa.Column("code", sa.Text(), nullable=False, unique=True),
        _fk("created_by", "users.id", "SET NULL", nullable=True),
        sa.Column("expires_at", TIMESTAMP(timezone=True), nullable=True),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("uses", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        sa.CheckConstraint("uses >= 0", name="ck_circle_invites_uses"),
    )


def downgrade() -> None:
    op.drop_table("circle_invites")
    op.drop_table("circle_emails")
    op.drop_table("circle_members")
    op.drop_table("circles")
    op.drop_table("comment_reactions")
    op.drop_table("email_comments")
    op.drop_table("email_highlights")
    op.drop_table("inbox_emails")
    op.drop_table("addresses")
    op.drop_table("users")
