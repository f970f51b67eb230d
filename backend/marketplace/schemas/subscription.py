"""Pydantic v2 request/response schemas for subscription and plan endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

_PLAN_PATTERN = "^(basic|elite|platinum)$"
_STATUS_PATTERN = "^(active|pending|expired)$"

# --- Request schemas ---


class ListingLimitFields(BaseModel):
    """``unlimited`` wins over ``listing_limit``; neither means "leave as is / plan default"."""

    listing_limit: int | None = Field(None, ge=0)
    unlimited: bool = False

    def resolved_listing_limit(self) -> dict:
        if self.unlimited:
            return {"listing_limit": None}
        if self.listing_limit is not None:
            return {"listing_limit": self.listing_limit}
        return {}


class SubscriptionCreate(ListingLimitFields):
    user_id: uuid.UUID
    plan: str = Field(..., pattern=_PLAN_PATTERN)
    status: str = Field("active", pattern=_STATUS_PATTERN)
    expiration_date: datetime | None = None


class SubscriptionUpdate(ListingLimitFields):
    plan: str | None = Field(None, pattern=_PLAN_PATTERN)
    status: str | None = Field(None, pattern=_STATUS_PATTERN)
    expiration_date: datetime | None = None


class FeaturePropertyRequest(BaseModel):
    property_id: uuid.UUID


# --- Response schemas ---


class PlanResponse(BaseModel):
    """Plan details for display."""

    name: str
    display_name: str
    default_listing_limit: int | None  # None = unlimited
    allows_featured: bool
    allows_premium: bool
    reserves_featured_slots: bool


class PlansListResponse(BaseModel):
    plans: list[PlanResponse]


class SubscriptionResponse(BaseModel):
    """A ledger with its current usage."""

    id: uuid.UUID
    user_id: uuid.UUID
    plan: str
    status: str
    listing_limit: int | None  # None = unlimited
    listings_used: int
    remaining_listings: int | None
    featured_count: int
    featured_cap: int | None
    expiration_date: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubscriptionDetailResponse(SubscriptionResponse):
    featured_property_ids: list[uuid.UUID] = []


class SubscriptionListResponse(BaseModel):
    items: list[SubscriptionResponse]
    total: int
