"""Circle service layer.

Implements circles, invites, membership, sharing, and the circle feeds.

All operations:
- Gate every circle-scoped read and write on circle_members with
  E_NOT_CIRCLE_MEMBER (403), whether or not the circle exists
- Use the shared keyset paginator for both feeds
- Validate a shared highlight before writing anything, so a rejected
  share leaves no circle_emails row behind

Service functions correspond 1:1 with route handlers.
Routes are transport-only and call exactly one service function.
"""

import secrets
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from scaaf.auth.permissions import can_read_email, is_circle_member
from scaaf.db.models import (
    Circle,
    CircleEmail,
    CircleInvite,
    CircleMember,
    CircleRole,
    EmailComment,
    EmailHighlight,
    InboxEmail,
    User,
    utcnow,
)
from scaaf.db.session import transaction
from scaaf.errors import (
    ApiErrorCode,
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from scaaf.logging import get_logger
from scaaf.schemas.circles import (
    CircleCountsOut,
    CircleDetailOut,
    CircleFeedItemOut,
    CircleHighlightOut,
    CircleOut,
    CreateCircleRequest,
    CreateInviteRequest,
    InviteOut,
    JoinCircleOut,
    MemberProfileOut,
    ShareOut,
    ShareToCircleRequest,
)
from scaaf.schemas.common import PageInfo, ensure_utc
from scaaf.services.pagination import clamp_limit, paginate

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

CIRCLES_DEFAULT_LIMIT = 50
CIRCLES_MAX_LIMIT = 100

FEED_DEFAULT_LIMIT = 20
FEED_MAX_LIMIT = 100

HIGHLIGHTS_DEFAULT_LIMIT = 30
HIGHLIGHTS_MAX_LIMIT = 100

INVITE_DEFAULT_DAYS = 7
INVITE_MAX_DAYS = 30
INVITE_DEFAULT_MAX_USES = 50
INVITE_MAX_USES = 500
INVITE_CODE_BYTES = 9

FALLBACK_MEMBER_NAME = "Member"


# =============================================================================
# Shared Helpers
# =============================================================================


def require_circle_member_or_403(db: Session, viewer_id: UUID, circle_id: UUID) -> None:
    """Raise 403 unless the viewer belongs to the circle.

    Unknown circles produce the same error so ids cannot be probed.
    """
    if not is_circle_member(db, viewer_id, circle_id):
        raise ForbiddenError(ApiErrorCode.E_NOT_CIRCLE_MEMBER, "Not a member of this circle")


def member_display_name(user: User | None) -> str:
    """Display name, then username, then a generic label."""
    if user is not None:
        for candidate in (user.display_name, user.username):
            if candidate and candidate.strip():
                return candidate.strip()
    return FALLBACK_MEMBER_NAME


def load_profiles(db: Session, user_ids: Iterable[UUID | None]) -> dict[UUID, MemberProfileOut]:
    """Batch-load public profiles for the given users."""
    ids = {uid for uid in user_ids if uid is not None}
    if not ids:
        return {}
    users = db.execute(select(User).where(User.id.in_(ids))).scalars().all()
    profiles = {
        user.id: MemberProfileOut(
            id=user.id, name=member_display_name(user), avatar_url=user.avatar_url
        )
        for user in users
    }
    # Authors without a users row still get a placeholder profile
    for uid in ids - profiles.keys():
        profiles[uid] = MemberProfileOut(id=uid, name=FALLBACK_MEMBER_NAME)
    return profiles


def latest(*values: datetime | None) -> datetime | None:
    present = [ensure_utc(v) for v in values if v is not None]
    return max(present) if present else None


def circle_count_columns() -> tuple[Any, Any]:
    """Correlated member and share counts for a select over Circle."""
    members = aliased(CircleMember)
    member_count = (
        select(func.count())
        .select_from(members)
        .where(members.circle_id == Circle.id)
        .correlate(Circle)
        .scalar_subquery()
    )
    shared_count = (
        select(func.count())
        .select_from(CircleEmail)
        .where(CircleEmail.circle_id == Circle.id)
        .correlate(Circle)
        .scalar_subquery()
    )
    return member_count, shared_count


# =============================================================================
# Circles
# =============================================================================


def list_circles(db: Session, viewer_id: UUID, limit: int | None = None) -> list[CircleOut]:
    """List the circles the viewer belongs to, newest first."""
    limit = clamp_limit(limit, CIRCLES_DEFAULT_LIMIT, CIRCLES_MAX_LIMIT)
    member_count, shared_count = circle_count_columns()

    rows = db.execute(
        select(Circle, CircleMember.role, member_count, shared_count)
        .join(
            CircleMember,
            and_(CircleMember.circle_id == Circle.id, CircleMember.user_id == viewer_id),
        )
        .order_by(Circle.created_at.desc(), Circle.id.desc())
        .limit(limit)
    ).all()

    return [
        CircleOut(
            id=circle.id,
            name=circle.name,
            description=circle.description,
            role=role,
            member_count=members or 0,
            shared_count=shares or 0,
            created_at=circle.created_at,
        )
        for circle, role, members, shares in rows
    ]


def create_circle(db: Session, viewer_id: UUID, req: CreateCircleRequest) -> CircleOut:
    """Create a circle with the viewer as its owner."""
    name = req.name.strip()
    if not name:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Circle name is required")

    circle = Circle(name=name, description=req.description, created_by=viewer_id)
    with transaction(db):
        db.add(circle)
        db.flush()
        db.add(
            CircleMember(circle_id=circle.id, user_id=viewer_id, role=CircleRole.owner.value)
        )

    logger.info("circle_created", circle_id=str(circle.id))

    return CircleOut(
        id=circle.id,
        name=circle.name,
        description=circle.description,
        role=CircleRole.owner.value,
        member_count=1,
        shared_count=0,
        created_at=circle.created_at,
    )


def get_circle(db: Session, viewer_id: UUID, circle_id: UUID) -> CircleDetailOut:
    """Get a circle with member and share counts."""
    require_circle_member_or_403(db, viewer_id, circle_id)
    member_count, shared_count = circle_count_columns()

    row = db.execute(
        select(Circle, member_count, shared_count).where(Circle.id == circle_id)
    ).one_or_none()
    if row is None:
        raise NotFoundError(ApiErrorCode.E_NOT_FOUND, "Circle not found")

    circle, members, shares = row
    return CircleDetailOut(
        id=circle.id,
        name=circle.name,
        description=circle.description,
        created_by=circle.created_by,
        created_at=circle.created_at,
        counts=CircleCountsOut(members=members or 0, shares=shares or 0),
    )


# =============================================================================
# Invites
# =============================================================================


def create_invite(
    db: Session,
    viewer_id: UUID,
    circle_id: UUID,
    req: CreateInviteRequest,
    base_url: str,
) -> InviteOut:
    """Create a join code for a circle.

    expires_in_days is clamped to [1, 30] (default 7) and max_uses to
    [1, 500] (default 50).
    """
    require_circle_member_or_403(db, viewer_id, circle_id)

    days = clamp_limit(req.expires_in_days, INVITE_DEFAULT_DAYS, INVITE_MAX_DAYS)
    max_uses = clamp_limit(req.max_uses, INVITE_DEFAULT_MAX_USES, INVITE_MAX_USES)

    invite = CircleInvite(
        circle_id=circle_id,
        code=secrets.token_urlsafe(INVITE_CODE_BYTES),
        created_by=viewer_id,
        expires_at=utcnow() + timedelta(days=days),
        max_uses=max_uses,
    )
    db.add(invite)
    db.commit()

    logger.info("circle_invite_created", circle_id=str(circle_id), expires_in_days=days)

    return InviteOut(
        code=invite.code,
        invite_url=f"{base_url.rstrip('/')}/circles/join?code={invite.code}",
        expires_at=invite.expires_at,
        max_uses=invite.max_uses,
    )


def join_circle(db: Session, viewer_id: UUID, code: str | None) -> JoinCircleOut:
    """Join a circle with an invite code.

    Order of checks: missing code (400), unknown code (404), expired (410),
    already a member (success without consuming a use), uses exhausted (409).

    The use counter is bumped with a conditional UPDATE so concurrent joins
    cannot exceed max_uses.
    """
    code = (code or "").strip()
    if not code:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Invite code is required")

    row = db.execute(
        select(CircleInvite, Circle.name)
        .join(Circle, Circle.id == CircleInvite.circle_id)
        .where(CircleInvite.code == code)
    ).one_or_none()
    if row is None:
        raise NotFoundError(ApiErrorCode.E_INVITE_NOT_FOUND, "Invalid invite code")
    invite, circle_name = row

    if invite.expires_at is not None and ensure_utc(invite.expires_at) <= utcnow():
        raise ConflictError(ApiErrorCode.E_INVITE_EXPIRED, "Invite has expired")

    if is_circle_member(db, viewer_id, invite.circle_id):
        return JoinCircleOut(
            circle_id=invite.circle_id, circle_name=circle_name, already_member=True
        )

    consumed = db.execute(
        update(CircleInvite)
        .where(
            CircleInvite.id == invite.id,
            or_(CircleInvite.max_uses.is_(None), CircleInvite.uses < CircleInvite.max_uses),
        )
        .values(uses=CircleInvite.uses + 1)
    )
    if consumed.rowcount == 0:
        db.rollback()
        raise ConflictError(ApiErrorCode.E_INVITE_EXHAUSTED, "Invite has reached its use limit")

    db.add(CircleMember(circle_id=invite.circle_id, user_id=viewer_id))
    try:
        db.commit()
    except IntegrityError:
        # Joined concurrently through another request; the use is rolled back too
        db.rollback()
        return JoinCircleOut(
            circle_id=invite.circle_id, circle_name=circle_name, already_member=True
        )

    logger.info("circle_joined", circle_id=str(invite.circle_id), invite_id=str(invite.id))

    return JoinCircleOut(circle_id=invite.circle_id, circle_name=circle_name, already_member=False)


# =============================================================================
# Feeds
# =============================================================================


def build_feed_items(db: Session, rows: Sequence[Any]) -> list[CircleFeedItemOut]:
    """Turn (CircleEmail, InboxEmail) rows into feed items with activity counts.

    Highlight counts only include shared highlights by current members of
    the share's circle.
    """
    if not rows:
        return []

    share_ids = [share.id for share, _ in rows]
    email_ids = {email.id for _, email in rows}

    highlight_stats = {
        share_id: (count, newest)
        for share_id, count, newest in db.execute(
            select(
                CircleEmail.id,
                func.count(EmailHighlight.id),
                func.max(EmailHighlight.created_at),
            )
            .join(EmailHighlight, EmailHighlight.email_id == CircleEmail.email_id)
            .join(
                CircleMember,
                and_(
                    CircleMember.circle_id == CircleEmail.circle_id,
                    CircleMember.user_id == EmailHighlight.user_id,
                ),
            )
            .where(CircleEmail.id.in_(share_ids), EmailHighlight.is_shared.is_(True))
            .group_by(CircleEmail.id)
        ).all()
    }

    comment_stats = {
        email_id: (count, newest)
        for email_id, count, newest in db.execute(
            select(
                EmailComment.email_id,
                func.count(EmailComment.id),
                func.max(EmailComment.created_at),
            )
            .where(EmailComment.email_id.in_(email_ids))
            .group_by(EmailComment.email_id)
        ).all()
    }

    profiles = load_profiles(db, (share.shared_by for share, _ in rows))

    items = []
    for share, email in rows:
        highlight_count, highlight_at = highlight_stats.get(share.id, (0, None))
        comment_count, comment_at = comment_stats.get(email.id, (0, None))
        items.append(
            CircleFeedItemOut(
                id=share.id,
                circle_id=share.circle_id,
                email_id=email.id,
                shared_at=share.created_at,
                shared_by=share.shared_by,
                shared_by_profile=profiles.get(share.shared_by) if share.shared_by else None,
                subject=email.subject,
                from_address=email.from_address,
                snippet=email.snippet,
                received_at=email.received_at,
                highlight_count=highlight_count,
                comment_count=comment_count,
                latest_activity=latest(highlight_at, comment_at),
            )
        )
    return items


def get_circle_feed(
    db: Session,
    viewer_id: UUID,
    circle_id: UUID,
    limit: int | None = None,
    cursor: str | None = None,
) -> tuple[list[CircleFeedItemOut], PageInfo]:
    """List emails shared into a circle, newest share first.

    Raises:
        ForbiddenError(E_NOT_CIRCLE_MEMBER): Viewer is not a member.
        InvalidRequestError(E_INVALID_CURSOR): If cursor is malformed.
    """
    require_circle_member_or_403(db, viewer_id, circle_id)

    stmt = (
        select(CircleEmail, InboxEmail)
        .join(InboxEmail, InboxEmail.id == CircleEmail.email_id)
        .where(CircleEmail.circle_id == circle_id)
    )
    rows, next_cursor = paginate(
        db,
        stmt,
        sort_col=CircleEmail.created_at,
        id_col=CircleEmail.id,
        key=lambda row: (row[0].created_at, row[0].id),
        cursor=cursor,
        limit=clamp_limit(limit, FEED_DEFAULT_LIMIT, FEED_MAX_LIMIT),
    )
    return build_feed_items(db, rows), PageInfo(next_cursor=next_cursor)


def get_viewer_feed(
    db: Session,
    viewer_id: UUID,
    limit: int | None = None,
    cursor: str | None = None,
) -> tuple[list[CircleFeedItemOut], PageInfo]:
    """List shares across every circle the viewer belongs to."""
    viewer_circles = select(CircleMember.circle_id).where(CircleMember.user_id == viewer_id)
    stmt = (
        select(CircleEmail, InboxEmail)
        .join(InboxEmail, InboxEmail.id == CircleEmail.email_id)
        .where(CircleEmail.circle_id.in_(viewer_circles))
    )
    rows, next_cursor = paginate(
        db,
        stmt,
        sort_col=CircleEmail.created_at,
        id_col=CircleEmail.id,
        key=lambda row: (row[0].created_at, row[0].id),
        cursor=cursor,
        limit=clamp_limit(limit, FEED_DEFAULT_LIMIT, FEED_MAX_LIMIT),
    )
    return build_feed_items(db, rows), PageInfo(next_cursor=next_cursor)


def list_circle_highlights(
    db: Session,
    viewer_id: UUID,
    circle_id: UUID,
    limit: int | None = None,
    cursor: str | None = None,
) -> tuple[list[CircleHighlightOut], PageInfo]:
    """List shared highlights by current members on emails shared into the circle."""
    require_circle_member_or_403(db, viewer_id, circle_id)

    stmt = (
        select(EmailHighlight, InboxEmail, Circle.name)
        .join(InboxEmail, InboxEmail.id == EmailHighlight.email_id)
        .join(
            CircleEmail,
            and_(
                CircleEmail.email_id == EmailHighlight.email_id,
                CircleEmail.circle_id == circle_id,
            ),
        )
        .join(
            CircleMember,
            and_(
                CircleMember.circle_id == circle_id,
                CircleMember.user_id == EmailHighlight.user_id,
            ),
        )
        .join(Circle, Circle.id == CircleEmail.circle_id)
        .where(EmailHighlight.is_shared.is_(True))
    )
    rows, next_cursor = paginate(
        db,
        stmt,
        sort_col=EmailHighlight.created_at,
        id_col=EmailHighlight.id,
        key=lambda row: (row[0].created_at, row[0].id),
        cursor=cursor,
        limit=clamp_limit(limit, HIGHLIGHTS_DEFAULT_LIMIT, HIGHLIGHTS_MAX_LIMIT),
    )

    profiles = load_profiles(db, (highlight.user_id for highlight, _, _ in rows))
    items = [
        CircleHighlightOut(
            id=highlight.id,
            circle_id=circle_id,
            circle_name=circle_name,
            email_id=email.id,
            quote=highlight.quote,
            memo=highlight.memo,
            created_at=highlight.created_at,
            shared_by=highlight.user_id,
            shared_by_profile=profiles.get(highlight.user_id),
            subject=email.subject,
            from_address=email.from_address,
            received_at=email.received_at,
        )
        for highlight, email, circle_name in rows
    ]
    return items, PageInfo(next_cursor=next_cursor)


# =============================================================================
# Sharing
# =============================================================================


def get_highlight_for_share_or_error(
    db: Session, viewer_id: UUID, highlight_id: UUID, email_id: UUID
) -> EmailHighlight:
    """Load a highlight the viewer may attach to a share of email_id.

    Raises:
        NotFoundError(E_HIGHLIGHT_NOT_FOUND): Highlight doesn't exist.
        ForbiddenError(E_HIGHLIGHT_NOT_OWNED): Highlight belongs to someone else.
        InvalidRequestError(E_HIGHLIGHT_EMAIL_MISMATCH): Highlight is on another email.
    """
    highlight = db.get(EmailHighlight, highlight_id)
    if highlight is None:
        raise NotFoundError(ApiErrorCode.E_HIGHLIGHT_NOT_FOUND, "Highlight not found")
    if highlight.user_id != viewer_id:
        raise ForbiddenError(ApiErrorCode.E_HIGHLIGHT_NOT_OWNED, "Not the owner of this highlight")
    if highlight.email_id != email_id:
        raise InvalidRequestError(
            ApiErrorCode.E_HIGHLIGHT_EMAIL_MISMATCH, "Highlight does not belong to this email"
        )
    return highlight


def share_to_circle(db: Session, viewer_id: UUID, req: ShareToCircleRequest) -> ShareOut:
    """Share an email into a circle, optionally marking a highlight as shared.

    Idempotent on (circle_id, email_id): a repeat share reports duplicated=True
    and still applies the highlight flag.
    """
    if req.circle_id is None or req.email_id is None:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "circle_id and email_id are required"
        )
    circle_id, email_id = req.circle_id, req.email_id

    require_circle_member_or_403(db, viewer_id, circle_id)
    if not can_read_email(db, viewer_id, email_id):
        raise NotFoundError(ApiErrorCode.E_EMAIL_NOT_FOUND, "Email not found")

    if req.highlight_id is not None:
        get_highlight_for_share_or_error(db, viewer_id, req.highlight_id, email_id)

    existing = db.execute(
        select(CircleEmail.id).where(
            CircleEmail.circle_id == circle_id, CircleEmail.email_id == email_id
        )
    ).scalar_one_or_none()

    duplicated = existing is not None
    if not duplicated:
        db.add(CircleEmail(circle_id=circle_id, email_id=email_id, shared_by=viewer_id))
        try:
            db.flush()
        except IntegrityError:
            # Shared concurrently by another request
            db.rollback()
            duplicated = True

    is_shared = None
    if req.highlight_id is not None:
        highlight = db.get(EmailHighlight, req.highlight_id)
        if highlight is None:
            raise NotFoundError(ApiErrorCode.E_HIGHLIGHT_NOT_FOUND, "Highlight not found")
        highlight.is_shared = req.is_shared
        is_shared = req.is_shared

    db.commit()

    logger.info(
        "email_shared_to_circle",
        circle_id=str(circle_id),
        email_id=str(email_id),
        duplicated=duplicated,
        with_highlight=req.highlight_id is not None,
    )

    return ShareOut(
        circle_id=circle_id,
        email_id=email_id,
        highlight_id=req.highlight_id,
        is_shared=is_shared,
        duplicated=duplicated,
    )
