"""Pydantic v2 request/response schemas for registration requests."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from marketplace.schemas.subscription import ListingLimitFields

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RegistrationCreate(BaseModel):
    requested_role: str = Field(..., pattern="^(agent|agency|promoter)$")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    company_name: str | None = Field(None, max_length=150)
    city: str = Field(..., min_length=1, max_length=120)
    country: str = Field(..., min_length=1, max_length=120)
    agency_id: uuid.UUID | None = None


class RegistrationApprove(ListingLimitFields):
    """Admin decision. Without ``plan`` no subscription is opened."""

    plan: str | None = Field(None, pattern="^(basic|elite|platinum)$")
    gold_cards: int = Field(0, ge=0)
    expiration_date: datetime | None = None


class RegistrationReject(BaseModel):
    reason: str = Field(..., max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RegistrationResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    requested_role: str
    agency_id: uuid.UUID | None = None
    first_name: str
    last_name: str
    phone_number: str
    email: str
    company_name: str | None = None
    city: str
    country: str
    status: str
    rejection_reason: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RegistrationListResponse(BaseModel):
    items: list[RegistrationResponse]
    total: int
