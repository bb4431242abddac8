"""Inbox address API routes.

/addresses/create and /addresses/me also serve anonymous callers: the
auth middleware attaches a viewer when a valid session is present and
lets the request through otherwise. Anonymous browsers are tracked by
the claim token kept in the scaaf_addr cookie.
"""

from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, Response
from sqlalchemy.orm import Session

from scaaf.api.deps import get_app_settings, get_db
from scaaf.auth.middleware import Viewer, get_optional_viewer, get_viewer
from scaaf.config import Environment, Settings
from scaaf.responses import mark_no_store, success_response
from scaaf.schemas.addresses import ClaimAddressRequest, CreateAddressRequest
from scaaf.services import addresses as addresses_service

router = APIRouter(tags=["addresses"])

ADDRESS_COOKIE_NAME = "scaaf_addr"
ADDRESS_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


@router.post("/addresses/create", status_code=201)
def create_address(
    viewer: Annotated[Viewer | None, Depends(get_optional_viewer)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    request: CreateAddressRequest | None = None,
) -> dict:
    """Create an address, linked to the viewer when signed in.

    The body is optional; without one a random scaaf-xxxxxx address is
    issued. The response always carries the claim token.

    Errors:
        E_INVALID_REQUEST (400): Domain is not the configured mail domain.
        E_ADDRESS_UNAVAILABLE (500): Every candidate local part was taken.
    """
    result = addresses_service.create_address(
        db=db,
        viewer_id=viewer.user_id if viewer else None,
        req=request or CreateAddressRequest(),
        mail_domain=settings.normalized_mail_domain,
    )
    return success_response(result.model_dump(mode="json"))


@router.get("/addresses/me")
def get_my_address(
    response: Response,
    viewer: Annotated[Viewer | None, Depends(get_optional_viewer)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    scaaf_addr: Annotated[str | None, Cookie()] = None,
) -> dict:
    """Resolve the caller's address, issuing one (and the cookie) when needed."""
    result, token_to_set = addresses_service.get_or_issue_address(
        db=db,
        viewer_id=viewer.user_id if viewer else None,
        claim_token=scaaf_addr,
        mail_domain=settings.normalized_mail_domain,
    )
    if token_to_set:
        response.set_cookie(
            ADDRESS_COOKIE_NAME,
            token_to_set,
            max_age=ADDRESS_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
            secure=settings.scaaf_env in (Environment.STAGING, Environment.PROD),
        )
    mark_no_store(response)
    return success_response(result.model_dump(mode="json"))


@router.post("/addresses/claim")
def claim_address(
    request: ClaimAddressRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Take ownership of an address by its claim token.

    Errors:
        E_INVALID_REQUEST (400): Missing token.
        E_ADDRESS_NOT_FOUND (404): Unknown token.
        E_ADDRESS_ALREADY_CLAIMED (409): Owned by another user.
    """
    result = addresses_service.claim_address(
        db=db, viewer_id=viewer.user_id, claim_token=request.claim_token
    )
    return success_response(result.model_dump(mode="json"))
