"""Inbox address service layer.

Addresses can be created before sign-in. Every new address carries a
claim token; whoever presents the token later (after signing in) takes
ownership. Anonymous browsers keep their token in the scaaf_addr cookie.
"""

import re
import secrets
import string
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from scaaf.db.models import Address, AddressStatus
from scaaf.errors import (
    ApiError,
    ApiErrorCode,
    ConflictError,
    InvalidRequestError,
    NotFoundError,
)
from scaaf.logging import get_logger
from scaaf.schemas.addresses import AddressOut, CreateAddressRequest

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

LOCAL_PART_PATTERN = re.compile(r"^[a-z0-9][a-z0-9._-]{1,30}[a-z0-9]$")
RANDOM_LOCAL_PART_PREFIX = "scaaf-"
RANDOM_LOCAL_PART_LENGTH = 6
COOKIE_LOCAL_PART_PREFIX = "user-"
COOKIE_LOCAL_PART_HEX_BYTES = 5
MAX_CREATE_ATTEMPTS = 6
CLAIM_TOKEN_BYTES = 24

_RANDOM_ALPHABET = string.ascii_lowercase + string.digits


# =============================================================================
# Helpers
# =============================================================================


def normalize_local_part(raw: str | None) -> str | None:
    """Lowercase and trim; None when empty or not a valid local part."""
    value = (raw or "").strip().lower()
    if value and LOCAL_PART_PATTERN.match(value):
        return value
    return None


def normalize_domain(raw: str | None) -> str:
    return (raw or "").strip().lstrip("@").lower()


def random_local_part() -> str:
    suffix = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(RANDOM_LOCAL_PART_LENGTH))
    return f"{RANDOM_LOCAL_PART_PREFIX}{suffix}"


def address_to_out(address: Address, include_token: bool = False) -> AddressOut:
    return AddressOut(
        id=address.id,
        full_address=address.full_address,
        local_part=address.local_part,
        domain=address.domain,
        status=address.status,
        claimed=address.user_id is not None,
        claim_token=address.claim_token if include_token else None,
        created_at=address.created_at,
    )


def insert_address(
    db: Session, local_part: str, domain: str, owner_id: UUID | None
) -> Address | None:
    """Insert a new active address; None when the full address is taken."""
    full_address = f"{local_part}@{domain}"
    taken = db.execute(
        select(Address.id).where(Address.full_address == full_address)
    ).scalar_one_or_none()
    if taken is not None:
        return None

    address = Address(
        user_id=owner_id,
        local_part=local_part,
        domain=domain,
        full_address=full_address,
        claim_token=secrets.token_urlsafe(CLAIM_TOKEN_BYTES),
        status=AddressStatus.active.value,
    )
    db.add(address)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return None
    return address


# =============================================================================
# Operations
# =============================================================================


def create_address(
    db: Session,
    viewer_id: UUID | None,
    req: CreateAddressRequest,
    mail_domain: str,
) -> AddressOut:
    """Create an address, falling back to a random local part.

    The requested local part is tried first when valid; invalid or taken
    names fall back to scaaf-xxxxxx, up to MAX_CREATE_ATTEMPTS inserts in total.

    Raises:
        InvalidRequestError: Requested domain is not served here.
        ApiError(E_ADDRESS_UNAVAILABLE): Every attempt collided.
    """
    domain = normalize_domain(req.domain) or mail_domain
    if domain != mail_domain:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, f"Domain must be {mail_domain}")

    requested = normalize_local_part(req.local_part)
    candidates = [requested] if requested else []
    while len(candidates) < MAX_CREATE_ATTEMPTS:
        candidates.append(random_local_part())

    for local_part in candidates:
        address = insert_address(db, local_part, domain, viewer_id)
        if address is not None:
            logger.info(
                "address_created",
                address_id=str(address.id),
                requested=requested is not None,
                fallback=local_part != requested,
            )
            return address_to_out(address, include_token=True)

    logger.error("address_create_exhausted", attempts=len(candidates))
    raise ApiError(ApiErrorCode.E_ADDRESS_UNAVAILABLE, "Could not allocate an address")


def claim_address(db: Session, viewer_id: UUID, claim_token: str | None) -> AddressOut:
    """Take ownership of an address by its claim token.

    Raises:
        InvalidRequestError: Missing token.
        NotFoundError(E_ADDRESS_NOT_FOUND): Unknown token.
        ConflictError(E_ADDRESS_ALREADY_CLAIMED): Owned by another user.
    """
    token = (claim_token or "").strip()
    if not token:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "claim_token is required")

    address = db.execute(
        select(Address).where(Address.claim_token == token)
    ).scalar_one_or_none()
    if address is None:
        raise NotFoundError(ApiErrorCode.E_ADDRESS_NOT_FOUND, "Invalid claim token")
    if address.user_id is not None and address.user_id != viewer_id:
        raise ConflictError(ApiErrorCode.E_ADDRESS_ALREADY_CLAIMED, "Address already claimed")

    address.user_id = viewer_id
    address.claim_token = None
    address.status = AddressStatus.active.value
    db.commit()

    logger.info("address_claimed", address_id=str(address.id))
    return address_to_out(address)


def get_or_issue_address(
    db: Session,
    viewer_id: UUID | None,
    claim_token: str | None,
    mail_domain: str,
) -> tuple[AddressOut, str | None]:
    """Resolve the caller's address, issuing a user-xxxxxxxxxx one if needed.

    Resolution order: the address behind the cookie's claim token, then the
    viewer's oldest active address, then a freshly issued address.

    Returns:
        Tuple of (address, token_to_set). token_to_set is the claim token to
        store in the cookie when a new address was issued, else None.
    """
    if claim_token:
        address = db.execute(
            select(Address).where(Address.claim_token == claim_token)
        ).scalar_one_or_none()
        if address is not None:
            return address_to_out(address, include_token=True), None

    if viewer_id is not None:
        owned = db.execute(
            select(Address)
            .where(Address.user_id == viewer_id, Address.status == AddressStatus.active.value)
            .order_by(Address.created_at, Address.id)
            .limit(1)
        ).scalar_one_or_none()
        if owned is not None:
            return address_to_out(owned), None

    for _ in range(MAX_CREATE_ATTEMPTS):
        local_part = f"{COOKIE_LOCAL_PART_PREFIX}{secrets.token_hex(COOKIE_LOCAL_PART_HEX_BYTES)}"
        address = insert_address(db, local_part, mail_domain, viewer_id)
        if address is not None:
            logger.info("address_issued", address_id=str(address.id))
            return address_to_out(address, include_token=True), address.claim_token

    raise ApiError(ApiErrorCode.E_ADDRESS_UNAVAILABLE, "Could not allocate an address")
