"""User bootstrap service.

Provides race-safe creation of the local users row on first authenticated request.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from scaaf.db.models import User

logger = logging.getLogger(__name__)


def ensure_user(db: Session, user_id: UUID) -> None:
    """Ensure a users row exists for the authenticated subject.

    Idempotent: a concurrent request that inserts the same id first is
    treated as success.
    """
    if db.get(User, user_id) is not None:
        return

    db.add(User(id=user_id))
    try:
        db.commit()
    except IntegrityError:
        # Lost race: another request created the row
        db.rollback()
        return

    logger.info("Created user %s", user_id)
