"""Subscription service — admin management of ledgers and featured slots."""

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.billing import ledger
from marketplace.billing.plans import FEATURED_SHARE_DENOMINATOR, get_plan
from marketplace.database import utcnow
from marketplace.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from marketplace.listings import state_machine
from marketplace.models.property import Property
from marketplace.models.subscription import Subscription
from marketplace.models.user import User
from marketplace.services.listing_service import get_property_or_404

logger = logging.getLogger(__name__)

DEFAULT_TERM = timedelta(days=365)

_UNSET = object()


async def get_subscription(db: AsyncSession, subscription_id: uuid.UUID) -> Subscription:
    result = await db.execute(
        select(Subscription)
        .where(Subscription.id == subscription_id)
        .execution_options(populate_existing=True)
    )
    subscription = result.scalar_one_or_none()
    if subscription is None:
        raise NotFoundError("Subscription", subscription_id)
    return subscription


async def get_subscription_for_user(db: AsyncSession, user_id: uuid.UUID) -> Subscription | None:
    result = await db.execute(
        select(Subscription)
        .where(Subscription.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_subscriptions(
    db: AsyncSession,
    status: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Subscription], int]:
    filters = [Subscription.status == status] if status else []
    total = (await db.execute(select(func.count()).select_from(Subscription).where(*filters))).scalar_one()
    result = await db.execute(
        select(Subscription)
        .where(*filters)
        .order_by(Subscription.created_at.desc())
        .offset(skip)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all()), total


async def create_subscription(
    db: AsyncSession,
    user_id: uuid.UUID,
    plan: str,
    listing_limit=_UNSET,
    status: str = "active",
    expiration_date: datetime | None = None,
) -> Subscription:
    """Open a ledger for a user.

    ``listing_limit`` defaults to the plan's limit; pass ``None`` for unlimited.
    ``expiration_date`` defaults to one year from now.
    """
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)

    if await get_subscription_for_user(db, user_id) is not None:
        raise ConflictError("User already has a subscription")

    if listing_limit is _UNSET:
        listing_limit = get_plan(plan).default_listing_limit

    subscription = Subscription(
        user_id=user_id,
        plan=plan,
        status=status,
        listing_limit=listing_limit,
        listings_used=0,
        featured_count=0,
        expiration_date=expiration_date or utcnow() + DEFAULT_TERM,
    )
    db.add(subscription)
    await db.flush()
    await db.refresh(subscription)
    logger.info(
        "Created %s subscription %s for user %s (limit=%s)",
        plan,
        subscription.id,
        user_id,
        listing_limit,
    )
    return subscription


async def update_subscription(
    db: AsyncSession,
    subscription_id: uuid.UUID,
    *,
    plan: str | None = None,
    listing_limit=_UNSET,
    status: str | None = None,
    expiration_date: datetime | None = None,
) -> Subscription:
    """Adjust a ledger in one conditional UPDATE.

    A new finite limit is only applied if current usage and featured slots
    still fit under it, so a concurrent reservation cannot be stranded above
    the ceiling.
    """
    values: dict = {}
    conditions = [Subscription.id == subscription_id]

    if plan is not None:
        values["plan"] = plan
        if not get_plan(plan).reserves_featured_slots:
            conditions.append(Subscription.featured_count == 0)
    if status is not None:
        values["status"] = status
    if expiration_date is not None:
        values["expiration_date"] = expiration_date
    if listing_limit is not _UNSET:
        if listing_limit is not None and listing_limit < 0:
            raise ValidationError("listing_limit cannot be negative", field="listing_limit")
        values["listing_limit"] = listing_limit
        if listing_limit is not None:
            conditions.append(Subscription.listings_used <= listing_limit)
            conditions.append(Subscription.featured_count * FEATURED_SHARE_DENOMINATOR <= listing_limit)

    if not values:
        return await get_subscription(db, subscription_id)

    result = await db.execute(
        update(Subscription)
        .where(*conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = await get_subscription(db, subscription_id)
        if plan is not None and current.featured_count and not get_plan(plan).reserves_featured_slots:
            raise ConflictError(
                f"Unfeature {current.featured_count} listing(s) before moving off the {current.plan} plan"
            )
        raise ConflictError(
            f"Cannot set listing limit to {listing_limit}: {current.listings_used} listing(s) "
            f"and {current.featured_count} featured slot(s) in use"
        )

    logger.info("Updated subscription %s: %s", subscription_id, values)
    return await get_subscription(db, subscription_id)


def ensure_can_access(actor: User, subscription: Subscription) -> None:
    if not actor.is_admin and subscription.user_id != actor.id:
        raise AuthorizationError("Not authorized to access this subscription")


async def feature_property(
    db: AsyncSession,
    actor: User,
    subscription_id: uuid.UUID,
    property_id: uuid.UUID,
) -> Subscription:
    """Put a listing in the ledger's featured set and flag it as featured."""
    subscription = await get_subscription(db, subscription_id)
    ensure_can_access(actor, subscription)
    prop = await get_property_or_404(db, property_id)
    if prop.owner_id != subscription.user_id and not actor.is_admin:
        raise AuthorizationError("Not authorized to feature this property")
    if prop.status not in state_machine.FEATURABLE_STATUSES:
        raise ConflictError(f"A {prop.status} listing cannot be featured")

    await ledger.reserve_featured_slot(db, subscription.id, prop.id)
    prop.is_featured = True
    await db.flush()
    return await get_subscription(db, subscription_id)


async def unfeature_property(
    db: AsyncSession,
    actor: User,
    subscription_id: uuid.UUID,
    property_id: uuid.UUID,
) -> Subscription:
    subscription = await get_subscription(db, subscription_id)
    ensure_can_access(actor, subscription)

    if await ledger.release_featured_slot(db, subscription.id, property_id):
        prop = await db.get(Property, property_id)
        if prop is not None:
            prop.is_featured = False
            await db.flush()
    return await get_subscription(db, subscription_id)
