"""Comment API routes.

Comment deletion and reaction toggling. Listing and creation live under
/inbox-emails/{email_id}/comments.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from scaaf.api.deps import get_db
from scaaf.auth.middleware import Viewer, get_viewer
from scaaf.responses import success_response
from scaaf.schemas.emails import ToggleReactionRequest
from scaaf.services import comments as comments_service

router = APIRouter(tags=["comments"])


@router.delete("/email-comments/{comment_id}", status_code=204)
def delete_comment(
    comment_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Delete the viewer's own comment.

    Errors:
        E_COMMENT_NOT_FOUND (404): Missing or authored by someone else.
    """
    comments_service.delete_comment(db=db, viewer_id=viewer.user_id, comment_id=comment_id)
    return Response(status_code=204)


@router.post("/email-comments/{comment_id}/reactions")
def toggle_reaction(
    comment_id: UUID,
    request: ToggleReactionRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Add the emoji reaction if absent, remove it if present.

    Returns the comment's reaction aggregate after the toggle.
    """
    result = comments_service.toggle_reaction(
        db=db, viewer_id=viewer.user_id, comment_id=comment_id, emoji=request.emoji
    )
    return success_response([r.model_dump(mode="json") for r in result])
