"""Inbound email webhook service.

Stores newsletters posted by the mail provider. Two payload shapes are
accepted, both as multipart/urlencoded form fields:

- Parsed (Mailgun "forward" route): from, recipient, subject, body-plain,
  body-html, timestamp (unix seconds), Message-Id, message-headers
- Raw MIME (Mailgun "store(notify)" / generic relays): body-mime, optional recipient

When a signing key is configured, timestamp/token/signature must carry a
valid Mailgun HMAC-SHA256 signature.
"""

import hashlib
import hmac
import json
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from email import policy
from email.message import EmailMessage
from email.parser import Parser
from email.utils import getaddresses, parsedate_to_datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from scaaf.db.models import Address, AddressStatus, InboxEmail, utcnow
from scaaf.errors import ApiErrorCode, ForbiddenError, InvalidRequestError
from scaaf.logging import get_logger

logger = get_logger(__name__)

SNIPPET_LENGTH = 200
_TAG_PATTERN = re.compile(r"<[^>]+>")
_WHITESPACE_PATTERN = re.compile(r"\s+")


# =============================================================================
# Helpers
# =============================================================================


def verify_mailgun_signature(
    signing_key: str, timestamp: str | None, token: str | None, signature: str | None
) -> bool:
    """Check Mailgun's HMAC-SHA256(timestamp + token) signature in constant time."""
    if not (timestamp and token and signature):
        return False
    expected = hmac.new(
        signing_key.encode(), f"{timestamp}{token}".encode(), hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(expected, signature)


def require_signature(fields: Mapping[str, str], signing_key: str | None) -> None:
    """Raise 403 when a signing key is configured and the payload is not signed with it."""
    if signing_key is None:
        return
    if not verify_mailgun_signature(
        signing_key, fields.get("timestamp"), fields.get("token"), fields.get("signature")
    ):
        logger.warning("inbound_signature_rejected")
        raise ForbiddenError(ApiErrorCode.E_INVALID_SIGNATURE, "Invalid webhook signature")


def make_snippet(text: str | None, html: str | None) -> str | None:
    """First SNIPPET_LENGTH characters of the text body (tags stripped from html)."""
    source = text or (_TAG_PATTERN.sub(" ", html) if html else "")
    collapsed = _WHITESPACE_PATTERN.sub(" ", source).strip()
    return collapsed[:SNIPPET_LENGTH] or None


def parse_epoch(value: str | None) -> datetime:
    """Unix seconds to an aware datetime; now when missing or malformed."""
    try:
        return datetime.fromtimestamp(float(value), tz=UTC) if value else utcnow()
    except (TypeError, ValueError, OverflowError, OSError):
        return utcnow()


def parse_date_header(value: str | None) -> datetime:
    try:
        parsed = parsedate_to_datetime(value) if value else None
    except (TypeError, ValueError):
        parsed = None
    if parsed is None:
        return utcnow()
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def recipient_addresses(value: str | None) -> list[str]:
    """Bare lowercase addresses from a recipient/To value."""
    return [addr.strip().lower() for _, addr in getaddresses([value or ""]) if addr.strip()]


def resolve_address(db: Session, recipient: str | None) -> Address | None:
    """First active address matching any of the recipients."""
    candidates = recipient_addresses(recipient)
    if not candidates:
        return None
    return (
        db.execute(
            select(Address)
            .where(
                func.lower(Address.full_address).in_(candidates),
                Address.status == AddressStatus.active.value,
            )
            .limit(1)
        )
        .scalars()
        .first()
    )


def store_email(db: Session, email: InboxEmail) -> UUID:
    """Link the email to its recipient address/owner and persist it."""
    address = resolve_address(db, email.to_address)
    if address is not None:
        email.address_id = address.id
        email.user_id = address.user_id
        address.last_received_at = utcnow()

    db.add(email)
    db.commit()

    logger.info(
        "inbound_email_stored",
        email_id=str(email.id),
        routed=address is not None,
        owned=email.user_id is not None,
    )
    return email.id


# =============================================================================
# MIME parsing
# =============================================================================


def body_part(message: EmailMessage, subtype: str) -> str | None:
    part = message.get_body(preferencelist=(subtype,))
    if part is None or part.get_content_subtype() != subtype:
        return None
    return part.get_content()


def attachment_metadata(message: EmailMessage) -> list[dict]:
    attachments = []
    for part in message.iter_attachments():
        payload = part.get_payload(decode=True) or b""
        attachments.append(
            {
                "filename": part.get_filename(),
                "content_type": part.get_content_type(),
                "size": len(payload),
            }
        )
    return attachments


def header_map(message: EmailMessage) -> dict[str, str]:
    """Headers keyed by lowercase name; repeated headers joined with newlines."""
    headers: dict[str, str] = {}
    for name, value in message.items():
        key = name.lower()
        headers[key] = f"{headers[key]}\n{value}" if key in headers else str(value)
    return headers


def parse_mime(raw: str, recipient: str | None = None) -> InboxEmail:
    """Build an InboxEmail row from a raw RFC 5322 message."""
    message = Parser(policy=policy.default).parsestr(raw)

    text = body_part(message, "plain")
    html = body_part(message, "html")
    references = str(message.get("References") or "").split()

    return InboxEmail(
        message_id=str(message.get("Message-ID") or "").strip() or None,
        in_reply_to=str(message.get("In-Reply-To") or "").strip() or None,
        references=references or None,
        from_address=str(message.get("From") or "") or None,
        to_address=recipient or str(message.get("To") or "") or None,
        subject=str(message.get("Subject") or "") or None,
        body_text=text,
        body_html=html,
        snippet=make_snippet(text, html),
        headers=header_map(message),
        attachments=attachment_metadata(message),
        raw_mime=raw,
        received_at=parse_date_header(message.get("Date")),
    )


# =============================================================================
# Operations
# =============================================================================


def receive_mailgun_message(
    db: Session, fields: Mapping[str, str], signing_key: str | None = None
) -> UUID:
    """Store a message posted as parsed Mailgun fields."""
    require_signature(fields, signing_key)

    text = fields.get("body-plain") or None
    html = fields.get("body-html") or None

    headers = None
    raw_headers = fields.get("message-headers")
    if raw_headers:
        try:
            headers = {str(k).lower(): str(v) for k, v in json.loads(raw_headers)}
        except (ValueError, TypeError):
            logger.warning("inbound_headers_unparseable")

    email = InboxEmail(
        message_id=fields.get("Message-Id") or None,
        from_address=fields.get("from") or fields.get("sender") or None,
        to_address=fields.get("recipient") or None,
        subject=fields.get("subject") or None,
        body_text=text,
        body_html=html,
        snippet=make_snippet(text, html),
        headers=headers,
        received_at=parse_epoch(fields.get("timestamp")),
    )
    return store_email(db, email)


def receive_mime_message(
    db: Session, fields: Mapping[str, str], signing_key: str | None = None
) -> UUID:
    """Store a message posted as a raw MIME blob in body-mime."""
    require_signature(fields, signing_key)

    raw = fields.get("body-mime")
    if not raw:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "body-mime is required")

    return store_email(db, parse_mime(raw, recipient=fields.get("recipient") or None))
