"""Highlight API routes.

Route handlers for the viewer's highlights across emails.
Routes are transport-only: each calls exactly one service function.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from scaaf.api.deps import get_db
from scaaf.auth.middleware import Viewer, get_viewer
from scaaf.responses import mark_no_store, success_response
from scaaf.schemas.emails import UpdateHighlightRequest
from scaaf.services import highlights as highlights_service

router = APIRouter(tags=["highlights"])


@router.get("/email-highlights")
def list_viewer_highlights(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    response: Response,
    email_id: UUID | None = Query(default=None, description="Restrict to one email"),
    limit: int | None = Query(default=None, description="Page size (1-200, default 50)"),
    offset: int = Query(default=0, ge=0),
) -> dict:
    """List the viewer's highlights, newest first."""
    result = highlights_service.list_viewer_highlights(
        db=db, viewer_id=viewer.user_id, email_id=email_id, limit=limit, offset=offset
    )
    mark_no_store(response)
    return success_response([h.model_dump(mode="json") for h in result])


@router.patch("/email-highlights/{highlight_id}")
def update_highlight(
    highlight_id: UUID,
    request: UpdateHighlightRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Toggle sharing and/or edit the memo.

    Errors:
        E_HIGHLIGHT_NOT_FOUND (404): Missing or owned by someone else.
    """
    result = highlights_service.update_highlight(
        db=db, viewer_id=viewer.user_id, highlight_id=highlight_id, req=request
    )
    return success_response(result.model_dump(mode="json"))


@router.delete("/email-highlights/{highlight_id}", status_code=204)
def delete_highlight(
    highlight_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Delete a highlight. Returns 204 No Content."""
    highlights_service.delete_highlight(db=db, viewer_id=viewer.user_id, highlight_id=highlight_id)
    return Response(status_code=204)
