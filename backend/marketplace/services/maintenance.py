"""Periodic maintenance — ledger reconciliation and expiry sweeps.

Run from ``scripts/reconcile_ledgers.py`` on a schedule, or on demand through
``POST /api/v1/admin/ledgers/reconcile``.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.billing import ledger
from marketplace.config import settings
from marketplace.database import utcnow
from marketplace.listings import state_machine
from marketplace.models.property import Property
from marketplace.models.subscription import FeaturedListing, ListingSlot, Subscription

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    stale_reservations_released: int = 0
    orphaned_slots_released: int = 0
    ledgers_corrected: list[str] = field(default_factory=list)


async def reconcile_ledgers(db: AsyncSession, grace_minutes: int | None = None) -> ReconcileReport:
    """Repair ledger drift from the slot journal.

    1. Reservations never bound to a listing within the grace period are released.
    2. Committed slots whose listing no longer exists are released.
    3. ``listings_used`` and ``featured_count`` are recomputed from the journal
       and the featured set; any mismatch is corrected and logged.
    """
    report = ReconcileReport()
    grace = settings.slot_reservation_grace_minutes if grace_minutes is None else grace_minutes
    cutoff = utcnow() - timedelta(minutes=grace)

    stale = await db.execute(
        select(ListingSlot.id).where(ListingSlot.state == "reserved", ListingSlot.created_at < cutoff)
    )
    for slot_id in stale.scalars().all():
        if await ledger.release_reservation(db, slot_id):
            report.stale_reservations_released += 1

    orphaned = await db.execute(
        select(ListingSlot.id)
        .outerjoin(Property, Property.id == ListingSlot.property_id)
        .where(ListingSlot.state == "committed", Property.id.is_(None))
    )
    for slot_id in orphaned.scalars().all():
        if await ledger.release_reservation(db, slot_id):
            report.orphaned_slots_released += 1

    for subscription_id in await _drifted_ledgers(db):
        if await _correct_ledger(db, subscription_id):
            report.ledgers_corrected.append(str(subscription_id))

    logger.info(
        "Reconciliation done: %d stale, %d orphaned, %d ledger(s) corrected",
        report.stale_reservations_released,
        report.orphaned_slots_released,
        len(report.ledgers_corrected),
    )
    return report


def _journal_counts(subscription_id):
    used = (
        select(func.count())
        .select_from(ListingSlot)
        .where(ListingSlot.subscription_id == subscription_id, ListingSlot.state != "released")
        .scalar_subquery()
    )
    featured = (
        select(func.count())
        .select_from(FeaturedListing)
        .where(FeaturedListing.subscription_id == subscription_id)
        .scalar_subquery()
    )
    return used, featured


async def _drifted_ledgers(db: AsyncSession) -> list[uuid.UUID]:
    """Ledgers whose counters disagree with the journal right now.

    Only a shortlist: ``_correct_ledger`` checks each one again under a row lock.
    """
    used, featured = _journal_counts(Subscription.id)
    result = await db.execute(
        select(Subscription.id)
        .where(or_(Subscription.listings_used != used, Subscription.featured_count != featured))
        .order_by(Subscription.id)
    )
    return list(result.scalars().all())


async def _correct_ledger(db: AsyncSession, subscription_id: uuid.UUID) -> bool:
    """Recompute one ledger's counters from the journal while holding its row lock.

    Reservations and releases change the counter before they touch the journal,
    in the same transaction, so once the lock is held every change to this
    ledger is either committed (and counted below) or waiting for us.
    """
    locked = await db.execute(
        select(Subscription.listings_used, Subscription.featured_count)
        .where(Subscription.id == subscription_id)
        .with_for_update()
    )
    row = locked.one_or_none()
    if row is None:
        return False

    used, featured = _journal_counts(subscription_id)
    expected_used, expected_featured = (await db.execute(select(used, featured))).one()
    if (row.listings_used, row.featured_count) == (expected_used, expected_featured):
        return False

    logger.warning(
        "Ledger %s drifted: listings_used %s -> %s, featured_count %s -> %s",
        subscription_id,
        row.listings_used,
        expected_used,
        row.featured_count,
        expected_featured,
    )
    await db.execute(
        update(Subscription)
        .where(Subscription.id == subscription_id)
        .values(listings_used=expected_used, featured_count=expected_featured)
        .execution_options(synchronize_session=False)
    )
    return True



async def expire_listings(db: AsyncSession) -> int:
    """Mark on-market listings past ``expires_at`` as expired."""
    result = await db.execute(
        update(Property)
        .where(
            Property.status.in_(state_machine.PUBLIC_STATUSES),
            Property.expires_at.is_not(None),
            Property.expires_at <= utcnow(),
        )
        .values(status=state_machine.EXPIRED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info("Expired %d listing(s)", result.rowcount)
    return result.rowcount


async def expire_subscriptions(db: AsyncSession) -> int:
    """Mark active subscriptions past ``expiration_date`` as expired."""
    result = await db.execute(
        update(Subscription)
        .where(
            Subscription.status == "active",
            Subscription.expiration_date.is_not(None),
            Subscription.expiration_date <= utcnow(),
        )
        .values(status="expired")
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info("Expired %d subscription(s)", result.rowcount)
    return result.rowcount
