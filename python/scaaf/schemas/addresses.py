"""Inbox address schemas."""

from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from scaaf.schemas.common import UtcDatetime


class AddressOut(BaseModel):
    """An inbound address. claim_token is only returned to its issuer."""

    id: UUID
    full_address: str
    local_part: str
    domain: str
    status: str
    claimed: bool
    claim_token: str | None = None
    created_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)


class CreateAddressRequest(BaseModel):
    local_part: str | None = Field(
        default=None, validation_alias=AliasChoices("local_part", "localPart")
    )
    domain: str | None = None


class ClaimAddressRequest(BaseModel):
    claim_token: str | None = Field(
        default=None, validation_alias=AliasChoices("claim_token", "claimToken")
    )
