"""Circle API routes.

Route handlers for circles, invites, sharing and the circle feeds.
Routes are transport-only: each calls exactly one service function.

- All routes require authentication
- Circle-scoped routes return 403 E_NOT_CIRCLE_MEMBER for non-members
- Feed reads are cursor paged and never cached
- Static paths (/circles/feed, /circles/join, /circles/share) are
  registered before /circles/{circle_id}
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from scaaf.api.deps import get_app_settings, get_db
from scaaf.auth.middleware import Viewer, get_viewer
from scaaf.config import Settings
from scaaf.responses import mark_no_store, page_response, success_response
from scaaf.schemas.circles import (
    CreateCircleRequest,
    CreateInviteRequest,
    JoinCircleRequest,
    ShareToCircleRequest,
)
from scaaf.services import circles as circles_service

router = APIRouter()

LimitQuery = Annotated[int | None, Query(description="Page size; clamped to the route maximum")]
CursorQuery = Annotated[str | None, Query(description="Pagination cursor")]


# =============================================================================
# Collection endpoints
# =============================================================================


@router.get("/circles")
def list_circles(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    response: Response,
    limit: LimitQuery = None,
) -> dict:
    """List circles the viewer belongs to (limit 1-100, default 50)."""
    result = circles_service.list_circles(db, viewer.user_id, limit=limit)
    mark_no_store(response)
    return success_response([c.model_dump(mode="json") for c in result])


@router.post("/circles", status_code=201)
def create_circle(
    request: CreateCircleRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create a circle owned by the viewer."""
    result = circles_service.create_circle(db, viewer.user_id, request)
    return success_response(result.model_dump(mode="json"))


@router.get("/circles/feed")
def get_viewer_feed(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    response: Response,
    limit: LimitQuery = None,
    cursor: CursorQuery = None,
) -> dict:
    """Shares across all of the viewer's circles, newest first."""
    items, page = circles_service.get_viewer_feed(db, viewer.user_id, limit=limit, cursor=cursor)
    mark_no_store(response)
    return page_response([i.model_dump(mode="json") for i in items], page.next_cursor)


@router.post("/circles/join")
def join_circle(
    request: JoinCircleRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Join a circle with an invite code.

    Errors:
        E_INVALID_REQUEST (400): Missing code.
        E_INVITE_NOT_FOUND (404): Unknown code.
        E_INVITE_EXPIRED (410): Invite expired.
        E_INVITE_EXHAUSTED (409): Invite use limit reached.
    """
    result = circles_service.join_circle(db, viewer.user_id, request.code)
    return success_response(result.model_dump(mode="json"))


@router.post("/circles/share")
def share_to_circle(
    request: ShareToCircleRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Share an email (and optionally mark a highlight shared) into a circle.

    Errors:
        E_INVALID_REQUEST (400): circle_id or email_id missing.
        E_NOT_CIRCLE_MEMBER (403): Viewer is not a member.
        E_EMAIL_NOT_FOUND (404): Viewer cannot read the email.
        E_HIGHLIGHT_NOT_FOUND (404) / E_HIGHLIGHT_NOT_OWNED (403) /
        E_HIGHLIGHT_EMAIL_MISMATCH (400): Highlight cannot be attached.
    """
    result = circles_service.share_to_circle(db, viewer.user_id, request)
    return success_response(result.model_dump(mode="json"))


# =============================================================================
# Circle-scoped endpoints
# =============================================================================


@router.get("/circles/{circle_id}")
def get_circle(
    circle_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    response: Response,
) -> dict:
    result = circles_service.get_circle(db, viewer.user_id, circle_id)
    mark_no_store(response)
    return success_response(result.model_dump(mode="json"))


@router.get("/circles/{circle_id}/feed")
def get_circle_feed(
    circle_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    response: Response,
    limit: LimitQuery = None,
    cursor: CursorQuery = None,
) -> dict:
    """Emails shared into the circle (limit 1-100, default 20)."""
    items, page = circles_service.get_circle_feed(
        db, viewer.user_id, circle_id, limit=limit, cursor=cursor
    )
    mark_no_store(response)
    return page_response([i.model_dump(mode="json") for i in items], page.next_cursor)


@router.get("/circles/{circle_id}/highlights")
def list_circle_highlights(
    circle_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    response: Response,
    limit: LimitQuery = None,
    cursor: CursorQuery = None,
) -> dict:
    """Shared highlights in the circle (limit 1-100, default 30)."""
    items, page = circles_service.list_circle_highlights(
        db, viewer.user_id, circle_id, limit=limit, cursor=cursor
    )
    mark_no_store(response)
    return page_response([i.model_dump(mode="json") for i in items], page.next_cursor)


@router.post("/circles/{circle_id}/invite", status_code=201)
def create_invite(
    circle_id: UUID,
    http_request: Request,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    request: CreateInviteRequest | None = None,
) -> dict:
    """Create an invite link. The body is optional; defaults are 7 days / 50 uses."""
    base_url = settings.app_base_url or str(http_request.base_url)
    result = circles_service.create_invite(
        db, viewer.user_id, circle_id, request or CreateInviteRequest(), base_url
    )
    return success_response(result.model_dump(mode="json"))
