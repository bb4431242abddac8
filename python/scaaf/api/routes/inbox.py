"""Inbox API routes.

Route handlers for the viewer's inbox and the per-email highlight and
comment collections. Routes are transport-only: each calls exactly one
service function.

- All routes require authentication
- An email is readable by its owner and by members of any circle it is
  shared into; anything else is 404 E_EMAIL_NOT_FOUND
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from scaaf.api.deps import get_db
from scaaf.auth.middleware import Viewer, get_viewer
from scaaf.responses import mark_no_store, page_response, success_response
from scaaf.schemas.emails import CreateCommentRequest, CreateHighlightRequest
from scaaf.services import comments as comments_service
from scaaf.services import highlights as highlights_service
from scaaf.services import inbox as inbox_service

router = APIRouter(tags=["inbox"])


@router.get("/inbox-emails")
def list_inbox_emails(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    response: Response,
    limit: int | None = Query(default=None, description="Page size (1-500, default 50)"),
    cursor: str | None = Query(default=None, description="Pagination cursor"),
) -> dict:
    """List the viewer's own emails, newest first."""
    items, page = inbox_service.list_inbox_emails(
        db=db, viewer_id=viewer.user_id, limit=limit, cursor=cursor
    )
    mark_no_store(response)
    return page_response([i.model_dump(mode="json") for i in items], page.next_cursor)


@router.get("/inbox-emails/{email_id}")
def get_inbox_email(
    email_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    response: Response,
) -> dict:
    """Get one email with bodies and attachment metadata.

    Errors:
        E_EMAIL_NOT_FOUND (404): Missing or not readable by the viewer.
    """
    result = inbox_service.get_inbox_email(db=db, viewer_id=viewer.user_id, email_id=email_id)
    mark_no_store(response)
    return success_response(result.model_dump(mode="json"))


# =============================================================================
# Highlights on an email
# =============================================================================


@router.get("/inbox-emails/{email_id}/highlights")
def list_email_highlights(
    email_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    response: Response,
) -> dict:
    """List the viewer's highlights on an email, newest first."""
    result = highlights_service.list_email_highlights(
        db=db, viewer_id=viewer.user_id, email_id=email_id
    )
    mark_no_store(response)
    return success_response([h.model_dump(mode="json") for h in result])


@router.post("/inbox-emails/{email_id}/highlights", status_code=201)
def create_email_highlight(
    email_id: UUID,
    request: CreateHighlightRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create a private highlight.

    Errors:
        E_INVALID_REQUEST (400): Empty quote.
        E_EMAIL_NOT_FOUND (404): Email not readable.
    """
    result = highlights_service.create_email_highlight(
        db=db, viewer_id=viewer.user_id, email_id=email_id, req=request
    )
    return success_response(result.model_dump(mode="json"))


# =============================================================================
# Comments on an email
# =============================================================================


@router.get("/inbox-emails/{email_id}/comments")
def list_comments(
    email_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    response: Response,
) -> dict:
    result = comments_service.list_comments(db=db, viewer_id=viewer.user_id, email_id=email_id)
    mark_no_store(response)
    return success_response([c.model_dump(mode="json") for c in result])


@router.post("/inbox-emails/{email_id}/comments", status_code=201)
def create_comment(
    email_id: UUID,
    request: CreateCommentRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Add a comment.

    Errors:
        E_INVALID_REQUEST (400): Empty or over-long text.
        E_EMAIL_NOT_FOUND (404): Email not readable.
    """
    result = comments_service.create_comment(
        db=db, viewer_id=viewer.user_id, email_id=email_id, req=request
    )
    return success_response(result.model_dump(mode="json"))
