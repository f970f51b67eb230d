"""Property model — a real-estate listing."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, Float, ForeignKey, Index, Integer, Numeric, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

CATEGORIES = ("for-sale", "for-rent", "offices", "office-rent", "land")
PROPERTY_TYPES = ("Apartment", "House", "Villa", "Penthouse", "Duplex", "Land", "Office", "Commercial", "Other")
CURRENCIES = ("USD", "EUR", "MUR")


class Property(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A listing owned by a user, optionally represented by an agent and agency."""

    __tablename__ = "properties"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    agent_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("agents.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    agency_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("agencies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # Ledger whose quota gates this listing; NULL for unmetered (admin) listings
    subscription_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("subscriptions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Address
    street: Mapped[str | None] = mapped_column(String(255), default=None)
    city: Mapped[str] = mapped_column(String(120), nullable=False)
    region: Mapped[str | None] = mapped_column(String(120), default=None)
    country: Mapped[str] = mapped_column(String(120), nullable=False, default="Mauritius")
    latitude: Mapped[float | None] = mapped_column(Float, default=None)
    longitude: Mapped[float | None] = mapped_column(Float, default=None)

    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="MUR")
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    property_type: Mapped[str] = mapped_column(String(30), nullable=False)
    size: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    bedrooms: Mapped[int] = mapped_column(Integer, default=0)
    bathrooms: Mapped[int] = mapped_column(Integer, default=0)
    amenities: Mapped[list] = mapped_column(JSON, default=list)
    # [{"url", "public_id", "caption", "is_main"}]; exactly one is_main when non-empty
    images: Mapped[list] = mapped_column(JSON, default=list)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, default=None)
    expires_at: Mapped[datetime | None] = mapped_column(nullable=True)

    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    is_gold_card: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())

    contact_phone: Mapped[str | None] = mapped_column(String(30), default=None)
    contact_email: Mapped[str | None] = mapped_column(String(255), default=None)
    contact_is_restricted: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())

    __table_args__ = (
        Index("ix_properties_category_status", "category", "status"),
        Index("ix_properties_owner_status", "owner_id", "status"),
        Index("ix_properties_featured_status", "is_featured", "status"),
    )

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, title={self.title!r}, status={self.status!r})>"
