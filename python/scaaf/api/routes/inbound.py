"""Inbound email webhook routes.

These paths are public to the auth middleware; when MAILGUN_SIGNING_KEY
is configured every POST must carry a valid Mailgun signature.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from scaaf.api.deps import get_app_settings, get_db
from scaaf.config import Settings
from scaaf.responses import success_response
from scaaf.services import inbound as inbound_service

router = APIRouter(tags=["inbound"])


async def read_form_fields(request: Request) -> dict[str, str]:
    """Form fields as text; uploaded parts (e.g. body-mime as a file) are decoded."""
    form = await request.form()
    fields: dict[str, str] = {}
    for key, value in form.multi_items():
        if key in fields:
            continue
        if isinstance(value, UploadFile):
            fields[key] = (await value.read()).decode("utf-8", errors="replace")
        else:
            fields[key] = value
    return fields


@router.get("/inbound-email")
async def describe_inbound_endpoint() -> dict:
    """Describe the accepted payload for humans poking at the webhook."""
    return success_response(
        {
            "endpoint": "/api/inbound-email",
            "method": "POST",
            "content_type": "multipart/form-data",
            "fields": ["body-mime", "recipient"],
            "mailgun_endpoint": "/api/inbound-email/mailgun/inbound",
        }
    )


@router.post("/inbound-email")
def receive_mime_email(
    fields: Annotated[dict[str, str], Depends(read_form_fields)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> dict:
    """Store a raw MIME message.

    Errors:
        E_INVALID_REQUEST (400): body-mime missing.
        E_INVALID_SIGNATURE (403): Signature check failed.
    """
    email_id = inbound_service.receive_mime_message(
        db=db, fields=fields, signing_key=settings.mailgun_signing_key
    )
    return success_response({"email_id": str(email_id)})


@router.post("/inbound-email/mailgun/inbound")
def receive_mailgun_email(
    fields: Annotated[dict[str, str], Depends(read_form_fields)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> dict:
    """Store a message forwarded as parsed Mailgun fields.

    Errors:
        E_INVALID_SIGNATURE (403): Signature check failed.
    """
    email_id = inbound_service.receive_mailgun_message(
        db=db, fields=fields, signing_key=settings.mailgun_signing_key
    )
    return success_response({"email_id": str(email_id)})
