"""Email highlight service layer.

All operations:
- Scope reads and writes to the highlight's author; other users' highlights
  surface only through circle feeds
- Use E_HIGHLIGHT_NOT_FOUND for both missing and foreign highlights
- New highlights start private (is_shared=false)

Service functions correspond 1:1 with route handlers.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from scaaf.db.models import EmailHighlight
from scaaf.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from scaaf.logging import get_logger
from scaaf.schemas.emails import (
    CreateHighlightRequest,
    EmailHighlightOut,
    UpdateHighlightRequest,
)
from scaaf.services.inbox import get_email_for_viewer_or_404
from scaaf.services.pagination import clamp_limit

logger = get_logger(__name__)

LIST_DEFAULT_LIMIT = 50
LIST_MAX_LIMIT = 200


def get_own_highlight_or_404(db: Session, viewer_id: UUID, highlight_id: UUID) -> EmailHighlight:
    """Load a highlight authored by the viewer.

    Raises:
        NotFoundError(E_HIGHLIGHT_NOT_FOUND): Missing or authored by someone else.
    """
    highlight = db.get(EmailHighlight, highlight_id)
    if highlight is None or highlight.user_id != viewer_id:
        raise NotFoundError(ApiErrorCode.E_HIGHLIGHT_NOT_FOUND, "Highlight not found")
    return highlight


def list_email_highlights(db: Session, viewer_id: UUID, email_id: UUID) -> list[EmailHighlightOut]:
    """List the viewer's highlights on one email, newest first."""
    get_email_for_viewer_or_404(db, viewer_id, email_id)
    highlights = db.execute(
        select(EmailHighlight)
        .where(EmailHighlight.email_id == email_id, EmailHighlight.user_id == viewer_id)
        .order_by(EmailHighlight.created_at.desc(), EmailHighlight.id.desc())
    ).scalars()
    return [EmailHighlightOut.model_validate(h) for h in highlights]


def create_email_highlight(
    db: Session, viewer_id: UUID, email_id: UUID, req: CreateHighlightRequest
) -> EmailHighlightOut:
    """Create a private highlight on a readable email."""
    quote = (req.quote or "").strip()
    if not quote:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Quote is required")

    get_email_for_viewer_or_404(db, viewer_id, email_id)

    memo = (req.memo or "").strip()
    highlight = EmailHighlight(
        email_id=email_id, user_id=viewer_id, quote=quote, memo=memo or None, is_shared=False
    )
    db.add(highlight)
    db.commit()

    logger.info("highlight_created", highlight_id=str(highlight.id), email_id=str(email_id))
    return EmailHighlightOut.model_validate(highlight)


def list_viewer_highlights(
    db: Session,
    viewer_id: UUID,
    email_id: UUID | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[EmailHighlightOut]:
    """List the viewer's highlights across emails (offset paged)."""
    stmt = select(EmailHighlight).where(EmailHighlight.user_id == viewer_id)
    if email_id is not None:
        stmt = stmt.where(EmailHighlight.email_id == email_id)

    highlights = db.execute(
        stmt.order_by(EmailHighlight.created_at.desc(), EmailHighlight.id.desc())
        .offset(max(offset, 0))
        .limit(clamp_limit(limit, LIST_DEFAULT_LIMIT, LIST_MAX_LIMIT))
    ).scalars()
    return [EmailHighlightOut.model_validate(h) for h in highlights]


def update_highlight(
    db: Session, viewer_id: UUID, highlight_id: UUID, req: UpdateHighlightRequest
) -> EmailHighlightOut:
    """Update sharing state and/or memo of the viewer's highlight."""
    highlight = get_own_highlight_or_404(db, viewer_id, highlight_id)

    fields = req.model_fields_set
    if "is_shared" in fields and req.is_shared is not None:
        highlight.is_shared = req.is_shared
    if "memo" in fields:
        memo = (req.memo or "").strip()
        highlight.memo = memo or None

    db.commit()
    return EmailHighlightOut.model_validate(highlight)


def delete_highlight(db: Session, viewer_id: UUID, highlight_id: UUID) -> None:
    """Delete the viewer's highlight."""
    highlight = get_own_highlight_or_404(db, viewer_id, highlight_id)
    db.delete(highlight)
    db.commit()

    logger.info("highlight_deleted", highlight_id=str(highlight_id))
