"""Keyset pagination shared by every feed.

Pages are ordered newest first by (sort column, id). The cursor is the
sort key of the last row served, so a page never repeats or skips rows
that existed when the walk started, even when rows share a timestamp.
"""

import base64
import json
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, and_, or_
from sqlalchemy.orm import InstrumentedAttribute, Session

from scaaf.errors import ApiErrorCode, InvalidRequestError
from scaaf.schemas.common import ensure_utc

# =============================================================================
# Cursor Encoding/Decoding
# =============================================================================


def encode_cursor(sort_value: datetime, id: UUID) -> str:
    """Encode a page cursor.

    Cursor payload: {"at": "<iso>", "id": "<uuid>"}
    Encoding: base64url without padding
    """
    payload = {"at": ensure_utc(sort_value).isoformat(), "id": str(id)}
    json_bytes = json.dumps(payload).encode("utf-8")
    return base64.urlsafe_b64encode(json_bytes).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> tuple[datetime, UUID]:
    """Decode a page cursor into (sort_value, id).

    Raises:
        InvalidRequestError(E_INVALID_CURSOR): If cursor is malformed or unparseable.
    """
    try:
        padding = -len(cursor) % 4
        json_bytes = base64.urlsafe_b64decode(cursor + "=" * padding)
        payload = json.loads(json_bytes.decode("utf-8"))
        return ensure_utc(datetime.fromisoformat(payload["at"])), UUID(payload["id"])
    except Exception:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_CURSOR, "Invalid cursor") from None


def clamp_limit(limit: int | None, default: int, maximum: int, minimum: int = 1) -> int:
    """Clamp limit to [minimum, maximum]; None means default."""
    if limit is None:
        return default
    return min(max(limit, minimum), maximum)


# =============================================================================
# Page fetch
# =============================================================================


def paginate(
    db: Session,
    stmt: Select[Any],
    *,
    sort_col: InstrumentedAttribute[datetime],
    id_col: InstrumentedAttribute[UUID],
    key: Callable[[Any], tuple[datetime, UUID]],
    cursor: str | None,
    limit: int,
) -> tuple[Sequence[Any], str | None]:
    """Fetch one page of stmt newest first.

    Applies the keyset condition for cursor, orders by (sort_col DESC, id_col DESC),
    and reads limit + 1 rows so the presence of a next page is known without a count.

    Args:
        db: Database session.
        stmt: Base select with filters applied and no ordering or limit.
        sort_col: Timestamp column that orders the feed.
        id_col: Unique tiebreaker column.
        key: Extracts (sort_value, id) from a result row for the next cursor.
        cursor: Opaque cursor from a previous page, or None for the first page.
        limit: Already clamped page size.

    Returns:
        Tuple of (rows, next_cursor). next_cursor is None on the last page.
    """
    if cursor:
        cursor_at, cursor_id = decode_cursor(cursor)
        # (sort, id) < (cursor_at, cursor_id) for DESC ordering
        stmt = stmt.where(
            or_(
                sort_col < cursor_at,
                and_(sort_col == cursor_at, id_col < cursor_id),
            )
        )

    stmt = stmt.order_by(sort_col.desc(), id_col.desc()).limit(limit + 1)
    rows = db.execute(stmt).all()

    has_more = len(rows) > limit
    page = rows[:limit]

    next_cursor = None
    if has_more and page:
        next_cursor = encode_cursor(*key(page[-1]))

    return page, next_cursor
