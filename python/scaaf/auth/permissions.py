"""Authorization predicates for visibility and access control.

These predicates are the single source of truth for all visibility logic.
They are used by services to enforce access control consistently.

All functions:
- Accept an explicit SQLAlchemy Session
- Return booleans or SQL expressions only (no HTTP exceptions)
- Must not leak existence: "not found" and "not visible" both return False

Email Visibility (can_read_email):
- Viewer owns the email (delivered to them directly or to one of their addresses), OR
- The email is shared into a circle the viewer is a member of
"""

from uuid import UUID

from sqlalchemy import ColumnElement, exists, or_, select
from sqlalchemy.orm import Session

from scaaf.db.models import Address, CircleEmail, CircleMember, EmailComment, InboxEmail


def is_circle_member(session: Session, viewer_user_id: UUID, circle_id: UUID) -> bool:
    """Check whether the viewer belongs to the circle. False for unknown circles."""
    stmt = select(
        exists().where(
            CircleMember.circle_id == circle_id,
            CircleMember.user_id == viewer_user_id,
        )
    )
    return bool(session.execute(stmt).scalar())


def owned_email_filter(viewer_user_id: UUID) -> ColumnElement[bool]:
    """WHERE clause for emails the viewer owns directly or through an address."""
    owned_addresses = select(Address.id).where(Address.user_id == viewer_user_id)
    return or_(
        InboxEmail.user_id == viewer_user_id,
        InboxEmail.address_id.in_(owned_addresses),
    )


def owns_email(session: Session, viewer_user_id: UUID, email_id: UUID) -> bool:
    """Check whether the email was delivered to the viewer."""
    stmt = select(
        exists().where(InboxEmail.id == email_id, owned_email_filter(viewer_user_id))
    )
    return bool(session.execute(stmt).scalar())


def shared_with_viewer(session: Session, viewer_user_id: UUID, email_id: UUID) -> bool:
    """Check whether the email is shared into any circle the viewer belongs to."""
    stmt = select(
        exists().where(
            CircleEmail.email_id == email_id,
            CircleMember.circle_id == CircleEmail.circle_id,
            CircleMember.user_id == viewer_user_id,
        )
    )
    return bool(session.execute(stmt).scalar())


def can_read_email(session: Session, viewer_user_id: UUID, email_id: UUID) -> bool:
    """Check if viewer can read an email (owner or circle share).

    Returns False if email_id does not exist.
    """
    return owns_email(session, viewer_user_id, email_id) or shared_with_viewer(
        session, viewer_user_id, email_id
    )


def can_read_comment(session: Session, viewer_user_id: UUID, comment_id: UUID) -> bool:
    """Check if viewer can read a comment, i.e. can read the email it belongs to."""
    email_id = session.execute(
        select(EmailComment.email_id).where(EmailComment.id == comment_id)
    ).scalar_one_or_none()
    if email_id is None:
        return False
    return can_read_email(session, viewer_user_id, email_id)
