"""Inbox email service layer.

Emails reach a viewer either directly (user_id) or through an address they
own (address_id). Reads beyond the owner are allowed for emails shared
into one of the viewer's circles; everything else is a masked 404.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from scaaf.auth.permissions import can_read_email, owned_email_filter, owns_email
from scaaf.db.models import InboxEmail
from scaaf.errors import ApiErrorCode, NotFoundError
from scaaf.schemas.common import PageInfo
from scaaf.schemas.emails import AttachmentOut, InboxEmailOut, InboxEmailSummaryOut
from scaaf.services.pagination import clamp_limit, paginate

INBOX_DEFAULT_LIMIT = 50
INBOX_MAX_LIMIT = 500


def get_email_for_viewer_or_404(db: Session, viewer_id: UUID, email_id: UUID) -> InboxEmail:
    """Load an email the viewer can read.

    Raises:
        NotFoundError(E_EMAIL_NOT_FOUND): If email doesn't exist OR viewer cannot read it.
    """
    email = db.get(InboxEmail, email_id)
    if email is None or not can_read_email(db, viewer_id, email_id):
        raise NotFoundError(ApiErrorCode.E_EMAIL_NOT_FOUND, "Email not found")
    return email


def list_inbox_emails(
    db: Session,
    viewer_id: UUID,
    limit: int | None = None,
    cursor: str | None = None,
) -> tuple[list[InboxEmailSummaryOut], PageInfo]:
    """List the viewer's own emails, most recently received first."""
    rows, next_cursor = paginate(
        db,
        select(InboxEmail).where(owned_email_filter(viewer_id)),
        sort_col=InboxEmail.received_at,
        id_col=InboxEmail.id,
        key=lambda row: (row[0].received_at, row[0].id),
        cursor=cursor,
        limit=clamp_limit(limit, INBOX_DEFAULT_LIMIT, INBOX_MAX_LIMIT),
    )
    items = [InboxEmailSummaryOut.model_validate(email) for (email,) in rows]
    return items, PageInfo(next_cursor=next_cursor)


def get_inbox_email(db: Session, viewer_id: UUID, email_id: UUID) -> InboxEmailOut:
    """Get one email with its bodies."""
    email = get_email_for_viewer_or_404(db, viewer_id, email_id)
    return InboxEmailOut(
        id=email.id,
        from_address=email.from_address,
        to_address=email.to_address,
        subject=email.subject,
        snippet=email.snippet,
        received_at=email.received_at,
        body_text=email.body_text,
        body_html=email.body_html,
        message_id=email.message_id,
        in_reply_to=email.in_reply_to,
        attachments=[AttachmentOut(**a) for a in email.attachments or []],
        is_owner=owns_email(db, viewer_id, email_id),
    )
