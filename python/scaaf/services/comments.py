"""Email comment and reaction service layer.

Comments are visible to everyone who can read the email. Reactions are a
per-user toggle on (comment, emoji) and are always returned aggregated:
one entry per emoji with its count and whether the viewer reacted.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from scaaf.auth.permissions import can_read_comment
from scaaf.db.models import CommentReaction, EmailComment, User
from scaaf.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from scaaf.logging import get_logger
from scaaf.schemas.emails import CommentOut, CreateCommentRequest, ReactionOut
from scaaf.services.inbox import get_email_for_viewer_or_404

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

AVATAR_COLORS = ("#3b82f6", "#8b5cf6", "#10b981", "#f59e0b", "#ef4444", "#06b6d4")
VIEWER_AUTHOR_NAME = "You"
FALLBACK_AUTHOR_NAME = "Friend"
MAX_COMMENT_LENGTH = 4000


# =============================================================================
# Helpers
# =============================================================================


def avatar_color_for(seed: str) -> str:
    """Pick a stable avatar color from a string hash (h = h * 31 + c, signed 32-bit)."""
    h = 0
    for ch in seed:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return AVATAR_COLORS[abs(h) % len(AVATAR_COLORS)]


def aggregate_reactions(
    db: Session, viewer_id: UUID, comment_ids: Iterable[UUID]
) -> dict[UUID, list[ReactionOut]]:
    """Aggregate reactions per comment, emojis in first-reacted order."""
    ids = list(comment_ids)
    if not ids:
        return {}

    rows = db.execute(
        select(CommentReaction.comment_id, CommentReaction.emoji, CommentReaction.user_id)
        .where(CommentReaction.comment_id.in_(ids))
        .order_by(CommentReaction.created_at, CommentReaction.id)
    ).all()

    grouped: dict[UUID, dict[str, ReactionOut]] = {}
    for comment_id, emoji, user_id in rows:
        per_comment = grouped.setdefault(comment_id, {})
        entry = per_comment.get(emoji)
        if entry is None:
            entry = per_comment[emoji] = ReactionOut(emoji=emoji, count=0, reacted=False)
        entry.count += 1
        entry.reacted = entry.reacted or user_id == viewer_id

    return {comment_id: list(per.values()) for comment_id, per in grouped.items()}


def author_names(db: Session, viewer_id: UUID, user_ids: Iterable[UUID]) -> dict[UUID, str]:
    others = {uid for uid in user_ids if uid != viewer_id}
    names: dict[UUID, str] = {viewer_id: VIEWER_AUTHOR_NAME}
    if others:
        for user in db.execute(select(User).where(User.id.in_(others))).scalars():
            names[user.id] = (user.display_name or user.username or "").strip()
    return {uid: name or FALLBACK_AUTHOR_NAME for uid, name in names.items()}


def comment_to_out(
    comment: EmailComment, viewer_id: UUID, author_name: str, reactions: list[ReactionOut]
) -> CommentOut:
    return CommentOut(
        id=comment.id,
        email_id=comment.email_id,
        user_id=comment.user_id,
        author_name=author_name,
        author_avatar_color=avatar_color_for(str(comment.user_id)),
        text=comment.text,
        created_at=comment.created_at,
        is_owner=comment.user_id == viewer_id,
        reactions=reactions,
    )


# =============================================================================
# Comments
# =============================================================================


def list_comments(db: Session, viewer_id: UUID, email_id: UUID) -> list[CommentOut]:
    """List comments on a readable email, newest first."""
    get_email_for_viewer_or_404(db, viewer_id, email_id)

    comments = (
        db.execute(
            select(EmailComment)
            .where(EmailComment.email_id == email_id)
            .order_by(EmailComment.created_at.desc(), EmailComment.id.desc())
        )
        .scalars()
        .all()
    )

    reactions = aggregate_reactions(db, viewer_id, (c.id for c in comments))
    names = author_names(db, viewer_id, (c.user_id for c in comments))
    return [
        comment_to_out(
            c, viewer_id, names.get(c.user_id, FALLBACK_AUTHOR_NAME), reactions.get(c.id, [])
        )
        for c in comments
    ]


def create_comment(
    db: Session, viewer_id: UUID, email_id: UUID, req: CreateCommentRequest
) -> CommentOut:
    """Add a comment to a readable email."""
    text = (req.text or "").strip()
    if not text:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Comment text is required")
    if len(text) > MAX_COMMENT_LENGTH:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Comment is too long")

    get_email_for_viewer_or_404(db, viewer_id, email_id)

    comment = EmailComment(email_id=email_id, user_id=viewer_id, text=text)
    db.add(comment)
    db.commit()

    logger.info("comment_created", comment_id=str(comment.id), email_id=str(email_id))
    return comment_to_out(comment, viewer_id, VIEWER_AUTHOR_NAME, [])


def delete_comment(db: Session, viewer_id: UUID, comment_id: UUID) -> None:
    """Delete the viewer's own comment.

    Raises:
        NotFoundError(E_COMMENT_NOT_FOUND): Missing or authored by someone else.
    """
    comment = db.get(EmailComment, comment_id)
    if comment is None or comment.user_id != viewer_id:
        raise NotFoundError(ApiErrorCode.E_COMMENT_NOT_FOUND, "Comment not found")

    db.delete(comment)
    db.commit()

    logger.info("comment_deleted", comment_id=str(comment_id))


# =============================================================================
# Reactions
# =============================================================================


def toggle_reaction(
    db: Session, viewer_id: UUID, comment_id: UUID, emoji: str
) -> list[ReactionOut]:
    """Toggle the viewer's emoji reaction and return the comment's new aggregate."""
    emoji = emoji.strip()
    if not emoji:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Emoji is required")
    if not can_read_comment(db, viewer_id, comment_id):
        raise NotFoundError(ApiErrorCode.E_COMMENT_NOT_FOUND, "Comment not found")

    removed = db.execute(
        delete(CommentReaction).where(
            CommentReaction.comment_id == comment_id,
            CommentReaction.user_id == viewer_id,
            CommentReaction.emoji == emoji,
        )
    ).rowcount

    if removed:
        db.commit()
    else:
        db.add(CommentReaction(comment_id=comment_id, user_id=viewer_id, emoji=emoji))
        try:
            db.commit()
        except IntegrityError:
            # A concurrent toggle inserted the same reaction; keep it
            db.rollback()

    logger.info("reaction_toggled", comment_id=str(comment_id), added=not removed)
    return aggregate_reactions(db, viewer_id, [comment_id]).get(comment_id, [])
