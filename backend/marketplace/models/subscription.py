"""Subscription ledger models — quota counters and their journal."""

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.billing.plans import featured_cap
from marketplace.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

SUBSCRIPTION_STATUSES = ("active", "pending", "expired")
SLOT_STATES = ("reserved", "committed", "released")


class Subscription(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A user's listing quota and featured-slot allocation.

    ``listing_limit`` of ``None`` means unlimited. ``listings_used`` and
    ``featured_count`` are only ever changed through conditional UPDATE
    statements in ``marketplace.billing.ledger``.
    """

    __tablename__ = "subscriptions"

    # One subscription per user (UNIQUE enforces one-to-one)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    plan: Mapped[str] = mapped_column(String(50), nullable=False, server_default="basic")
    status: Mapped[str] = mapped_column(String(50), nullable=False, server_default="pending")
    listing_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    listings_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    featured_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    expiration_date: Mapped[datetime | None] = mapped_column(nullable=True)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="subscription", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    @property
    def featured_cap(self) -> int | None:
        return featured_cap(self.listing_limit)

    @property
    def remaining_listings(self) -> int | None:
        if self.listing_limit is None:
            return None
        return max(self.listing_limit - self.listings_used, 0)

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, user_id={self.user_id}, plan={self.plan}, "
            f"used={self.listings_used}/{self.listing_limit}, status={self.status})>"
        )


class ListingSlot(UUIDPrimaryKeyMixin, Base):
    """Journal entry for one unit of quota consumed on a subscription."""

    __tablename__ = "listing_slots"

    subscription_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    property_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("properties.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    state: Mapped[str] = mapped_column(String(20), nullable=False, default="reserved")
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    released_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (Index("ix_listing_slots_state_created_at", "state", "created_at"),)

    def __repr__(self) -> str:
        return (
            f"<ListingSlot(id={self.id}, subscription_id={self.subscription_id}, "
            f"property_id={self.property_id}, state={self.state})>"
        )


class FeaturedListing(UUIDPrimaryKeyMixin, Base):
    """Membership of a property in a subscription's featured set."""

    __tablename__ = "featured_listings"

    subscription_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())

    # A property occupies at most one featured slot anywhere
    __table_args__ = (UniqueConstraint("property_id", name="uq_featured_listings_property"),)
