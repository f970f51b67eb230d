"""Pydantic v2 request/response schemas for property endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer, model_validator

_CATEGORY_PATTERN = "^(for-sale|for-rent|offices|office-rent|land)$"
_TYPE_PATTERN = "^(Apartment|House|Villa|Penthouse|Duplex|Land|Office|Commercial|Other)$"
_CURRENCY_PATTERN = "^(USD|EUR|MUR)$"
MAX_IMAGES = 10


def _dedupe(values: list[str] | None) -> list[str] | None:
    if values is None:
        return None
    seen: dict[str, None] = {}
    for value in values:
        value = value.strip()
        if value:
            seen.setdefault(value, None)
    return list(seen)


def _check_coordinates(latitude: float | None, longitude: float | None) -> None:
    if (latitude is None) != (longitude is None):
        raise ValueError("latitude and longitude must be provided together")


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class PropertyImage(BaseModel):
    url: str = Field(..., min_length=1, max_length=1024)
    public_id: str | None = Field(None, max_length=255)
    caption: str | None = Field(None, max_length=255)
    is_main: bool = False


class ContactDetails(BaseModel):
    phone: str | None = Field(None, max_length=30)
    email: str | None = Field(None, max_length=255)
    is_restricted: bool = False


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PropertyCreate(BaseModel):
    """Schema for creating a new listing. ``status`` is accepted but ignored."""

    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=5000)
    street: str | None = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=120)
    region: str | None = Field(None, max_length=120)
    country: str = Field("Mauritius", max_length=120)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    price: Decimal = Field(..., ge=0)
    currency: str = Field("MUR", pattern=_CURRENCY_PATTERN)
    category: str = Field(..., pattern=_CATEGORY_PATTERN)
    property_type: str = Field(..., pattern=_TYPE_PATTERN)
    size: Decimal = Field(..., ge=0)
    bedrooms: int = Field(0, ge=0)
    bathrooms: int = Field(0, ge=0)
    amenities: list[str] = Field(default_factory=list)
    images: list[PropertyImage] = Field(default_factory=list, max_length=MAX_IMAGES)
    status: str | None = None
    is_featured: bool = False
    is_premium: bool = False
    is_gold_card: bool = False
    contact_details: ContactDetails = Field(default_factory=ContactDetails)
    agent_id: uuid.UUID | None = None
    expires_at: datetime | None = None

    @field_validator("amenities")
    @classmethod
    def _dedupe_amenities(cls, value: list[str] | None) -> list[str] | None:
        return _dedupe(value)

    @model_validator(mode="after")
    def _coordinates_pair(self) -> "PropertyCreate":
        _check_coordinates(self.latitude, self.longitude)
        return self


class PropertyUpdate(BaseModel):
    """Schema for partially updating a listing. All fields optional."""

    title: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, min_length=1, max_length=5000)
    street: str | None = Field(None, max_length=255)
    city: str | None = Field(None, min_length=1, max_length=120)
    region: str | None = Field(None, max_length=120)
    country: str | None = Field(None, max_length=120)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    price: Decimal | None = Field(None, ge=0)
    currency: str | None = Field(None, pattern=_CURRENCY_PATTERN)
    category: str | None = Field(None, pattern=_CATEGORY_PATTERN)
    property_type: str | None = Field(None, pattern=_TYPE_PATTERN)
    size: Decimal | None = Field(None, ge=0)
    bedrooms: int | None = Field(None, ge=0)
    bathrooms: int | None = Field(None, ge=0)
    amenities: list[str] | None = None
    images: list[PropertyImage] | None = Field(None, max_length=MAX_IMAGES)
    status: str | None = None
    is_featured: bool | None = None
    is_premium: bool | None = None
    is_gold_card: bool | None = None
    contact_details: ContactDetails | None = None
    expires_at: datetime | None = None

    @field_validator("amenities")
    @classmethod
    def _dedupe_amenities(cls, value: list[str] | None) -> list[str] | None:
        return _dedupe(value)


class RejectRequest(BaseModel):
    reason: str = Field(..., max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ContactDetailsPublic(BaseModel):
    """Contact block as a given viewer may see it; hidden fields are left out entirely."""

    phone: str | None = None
    email: str | None = None
    is_restricted: bool = False

    @model_serializer(mode="wrap")
    def _omit_hidden(self, handler) -> dict[str, Any]:
        data = handler(self)
        for key in ("phone", "email"):
            if data.get(key) is None:
                data.pop(key, None)
        return data


class PropertyPublic(BaseModel):
    """A listing as returned to API clients, after redaction."""

    id: uuid.UUID
    owner_id: uuid.UUID
    agent_id: uuid.UUID | None = None
    agency_id: uuid.UUID | None = None
    title: str
    description: str
    street: str | None = None
    city: str
    region: str | None = None
    country: str
    latitude: float | None = None
    longitude: float | None = None
    price: Decimal
    currency: str
    category: str
    property_type: str
    size: Decimal
    bedrooms: int
    bathrooms: int
    amenities: list[str] = []
    images: list[PropertyImage] = []
    status: str
    rejection_reason: str | None = None
    expires_at: datetime | None = None
    is_featured: bool
    is_premium: bool
    is_gold_card: bool
    contact_details: ContactDetailsPublic
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PropertyListResponse(BaseModel):
    """Paginated list of listings."""

    items: list[PropertyPublic]
    total: int
    skip: int
    limit: int


class MediaSignatureResponse(BaseModel):
    """Parameters for a signed direct upload to the media store."""

    cloud_name: str
    api_key: str
    timestamp: int
    signature: str
    folder: str
    upload_url: str
