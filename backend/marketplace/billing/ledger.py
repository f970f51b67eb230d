"""Subscription ledger — atomic listing and featured-slot metering.

Every check-and-increment here is a single conditional UPDATE: the database
evaluates the ceiling and bumps the counter in one statement, so two
concurrent reservations against the last free slot cannot both succeed.
``rowcount == 1`` means the slot was granted; anything else is declined and
diagnosed from a fresh read of the row.
"""

import logging
import uuid

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.billing.plans import FEATURED_SHARE_DENOMINATOR, PLANS, featured_cap
from marketplace.database import utcnow
from marketplace.errors import (
    ConflictError,
    FeaturedCapExceededError,
    GoldCardUnavailableError,
    NotFoundError,
    PlanIneligibleError,
    QuotaExceededError,
    SubscriptionInactiveError,
)
from marketplace.models.subscription import FeaturedListing, ListingSlot, Subscription
from marketplace.models.user import User

logger = logging.getLogger(__name__)

FEATURED_SLOT_PLANS = tuple(name for name, plan in PLANS.items() if plan.reserves_featured_slots)


async def _snapshot(db: AsyncSession, subscription_id: uuid.UUID):
    """Read the ledger columns straight from the database (bypasses the identity map)."""
    result = await db.execute(
        select(
            Subscription.status,
            Subscription.plan,
            Subscription.listing_limit,
            Subscription.listings_used,
            Subscription.featured_count,
            Subscription.expiration_date,
        ).where(Subscription.id == subscription_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError("Subscription", subscription_id)
    return row


def _is_live(row) -> bool:
    return row.status == "active" and (row.expiration_date is None or row.expiration_date > utcnow())


def _live_conditions():
    return (
        Subscription.status == "active",
        or_(Subscription.expiration_date.is_(None), Subscription.expiration_date > utcnow()),
    )


# ---------------------------------------------------------------------------
# Listing slots
# ---------------------------------------------------------------------------


async def reserve_slot(db: AsyncSession, subscription_id: uuid.UUID) -> ListingSlot:
    """Consume one listing slot and journal it as ``reserved``.

    Raises:
        QuotaExceededError: ``listings_used`` already equals ``listing_limit``.
        SubscriptionInactiveError: the subscription is pending or expired.
        NotFoundError: no such subscription.
    """
    result = await db.execute(
        update(Subscription)
        .where(
            Subscription.id == subscription_id,
            *_live_conditions(),
            or_(
                Subscription.listing_limit.is_(None),
                Subscription.listings_used < Subscription.listing_limit,
            ),
        )
        .values(listings_used=Subscription.listings_used + 1)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        row = await _snapshot(db, subscription_id)
        if not _is_live(row):
            logger.info("Slot declined on subscription %s: status=%s", subscription_id, row.status)
            raise SubscriptionInactiveError()
        logger.info(
            "Slot declined on subscription %s: %s/%s used",
            subscription_id,
            row.listings_used,
            row.listing_limit,
        )
        raise QuotaExceededError(
            f"Listing limit reached ({row.listings_used}/{row.listing_limit}). Upgrade your plan for more listings.",
            limit=row.listing_limit,
        )

    slot = ListingSlot(subscription_id=subscription_id, state="reserved")
    db.add(slot)
    await db.flush()
    logger.info("Reserved slot %s on subscription %s", slot.id, subscription_id)
    return slot


async def commit_slot(db: AsyncSession, slot: ListingSlot, property_id: uuid.UUID) -> None:
    """Bind a reserved slot to the property it paid for."""
    slot.property_id = property_id
    slot.state = "committed"
    await db.flush()


async def _decrement_listings_used(db: AsyncSession, subscription_id: uuid.UUID) -> bool:
    result = await db.execute(
        update(Subscription)
        .where(Subscription.id == subscription_id, Subscription.listings_used > 0)
        .values(listings_used=Subscription.listings_used - 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def release_reservation(db: AsyncSession, slot_id: uuid.UUID) -> bool:
    """Release one journal row exactly once. Returns False if it was already released."""
    result = await db.execute(
        update(ListingSlot)
        .where(ListingSlot.id == slot_id, ListingSlot.state != "released")
        .values(state="released", released_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    subscription_id = (
        await db.execute(select(ListingSlot.subscription_id).where(ListingSlot.id == slot_id))
    ).scalar_one()
    await _decrement_listings_used(db, subscription_id)
    logger.info("Released slot %s on subscription %s", slot_id, subscription_id)
    return True


async def release_slot(
    db: AsyncSession,
    subscription_id: uuid.UUID,
    property_id: uuid.UUID | None = None,
) -> int:
    """Give back listing quota on a subscription.

    With ``property_id`` the journal rows charged for that property are
    released, each at most once, so a repeated call is a no-op. Without it a
    single unit is returned. ``listings_used`` never drops below zero.

    Returns the number of slots actually released.
    """
    if property_id is None:
        released = await _decrement_listings_used(db, subscription_id)
        return int(released)

    result = await db.execute(
        select(ListingSlot.id).where(
            ListingSlot.subscription_id == subscription_id,
            ListingSlot.property_id == property_id,
            ListingSlot.state != "released",
        )
    )
    count = 0
    for slot_id in result.scalars().all():
        if await release_reservation(db, slot_id):
            count += 1
    return count


async def release_property_slots(db: AsyncSession, property_id: uuid.UUID) -> int:
    """Release every slot charged for a property, whichever ledgers paid for it."""
    result = await db.execute(
        select(ListingSlot.id).where(
            ListingSlot.property_id == property_id,
            ListingSlot.state != "released",
        )
    )
    count = 0
    for slot_id in result.scalars().all():
        if await release_reservation(db, slot_id):
            count += 1
    return count


# ---------------------------------------------------------------------------
# Featured slots
# ---------------------------------------------------------------------------


async def reserve_featured_slot(
    db: AsyncSession,
    subscription_id: uuid.UUID,
    property_id: uuid.UUID,
) -> FeaturedListing:
    """Add a property to the subscription's featured set.

    Only platinum ledgers hold featured slots; the cap is
    ``floor(listing_limit * 0.25)`` and an unlimited ledger has no cap.
    Featuring an already featured property is a no-op.
    """
    existing = (
        await db.execute(select(FeaturedListing).where(FeaturedListing.property_id == property_id))
    ).scalar_one_or_none()
    if existing is not None:
        if existing.subscription_id == subscription_id:
            return existing
        raise ConflictError("Property is already featured under another subscription")

    result = await db.execute(
        update(Subscription)
        .where(
            Subscription.id == subscription_id,
            Subscription.plan.in_(FEATURED_SLOT_PLANS),
            *_live_conditions(),
            or_(
                Subscription.listing_limit.is_(None),
                (Subscription.featured_count + 1) * FEATURED_SHARE_DENOMINATOR <= Subscription.listing_limit,
            ),
        )
        .values(featured_count=Subscription.featured_count + 1)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        row = await _snapshot(db, subscription_id)
        if row.plan not in FEATURED_SLOT_PLANS:
            raise PlanIneligibleError("Only Platinum subscriptions can feature listings")
        if not _is_live(row):
            raise SubscriptionInactiveError()
        cap = featured_cap(row.listing_limit) or 0
        logger.info("Featured slot declined on subscription %s: cap %s reached", subscription_id, cap)
        raise FeaturedCapExceededError(cap)

    entry = FeaturedListing(subscription_id=subscription_id, property_id=property_id)
    db.add(entry)
    await db.flush()
    logger.info("Featured property %s on subscription %s", property_id, subscription_id)
    return entry


async def release_featured_slot(
    db: AsyncSession,
    subscription_id: uuid.UUID,
    property_id: uuid.UUID,
) -> bool:
    """Remove a property from the featured set if present. Idempotent."""
    result = await db.execute(
        delete(FeaturedListing)
        .where(
            FeaturedListing.subscription_id == subscription_id,
            FeaturedListing.property_id == property_id,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    await db.execute(
        update(Subscription)
        .where(Subscription.id == subscription_id, Subscription.featured_count > 0)
        .values(featured_count=Subscription.featured_count - 1)
        .execution_options(synchronize_session=False)
    )
    logger.info("Unfeatured property %s on subscription %s", property_id, subscription_id)
    return True


async def release_property_featured_slot(db: AsyncSession, property_id: uuid.UUID) -> bool:
    """Release the featured slot a property holds, whichever subscription it is on."""
    subscription_id = (
        await db.execute(
            select(FeaturedListing.subscription_id).where(FeaturedListing.property_id == property_id)
        )
    ).scalar_one_or_none()
    if subscription_id is None:
        return False
    return await release_featured_slot(db, subscription_id, property_id)


async def featured_property_ids(db: AsyncSession, subscription_id: uuid.UUID) -> list[uuid.UUID]:
    result = await db.execute(
        select(FeaturedListing.property_id)
        .where(FeaturedListing.subscription_id == subscription_id)
        .order_by(FeaturedListing.created_at)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Gold cards
# ---------------------------------------------------------------------------


async def consume_gold_card(db: AsyncSession, user_id: uuid.UUID) -> None:
    """Take one gold card from the user's balance, or raise if none are left."""
    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.gold_cards > 0)
        .values(gold_cards=User.gold_cards - 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise GoldCardUnavailableError()
    logger.info("Consumed gold card for user %s", user_id)


async def return_gold_card(db: AsyncSession, user_id: uuid.UUID) -> None:
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(gold_cards=User.gold_cards + 1)
        .execution_options(synchronize_session=False)
    )
    logger.info("Returned gold card to user %s", user_id)
