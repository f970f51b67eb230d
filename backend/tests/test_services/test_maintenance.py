"""Tests for ledger reconciliation and the expiry sweeps."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.billing import ledger
from marketplace.database import utcnow
from marketplace.errors import QuotaExceededError
from marketplace.models.property import Property
from marketplace.models.subscription import ListingSlot, Subscription
from marketplace.models.user import User
from marketplace.services import maintenance

pytestmark = pytest.mark.asyncio


async def _listing(db_session: AsyncSession, owner: User, status: str = "approved", expires_at=None) -> Property:
    prop = Property(
        owner_id=owner.id,
        title="Maintenance test",
        description="Listing for sweeps",
        city="Mahebourg",
        price=Decimal("250000"),
        category="for-sale",
        property_type="Land",
        size=Decimal("500"),
        status=status,
        expires_at=expires_at,
    )
    db_session.add(prop)
    await db_session.flush()
    return prop


async def _used(db_session: AsyncSession, subscription: Subscription) -> tuple[int, int]:
    row = (
        await db_session.execute(
            select(Subscription.listings_used, Subscription.featured_count).where(Subscription.id == subscription.id)
        )
    ).one()
    return tuple(row)


async def _age(db_session: AsyncSession, slot: ListingSlot, minutes: int) -> None:
    slot.created_at = utcnow() - timedelta(minutes=minutes)
    await db_session.flush()


class TestReconcile:
    async def test_stale_reservation_released(self, db_session, make_user, make_subscription) -> None:
        subscription = await make_subscription(await make_user())
        slot = await ledger.reserve_slot(db_session, subscription.id)
        await _age(db_session, slot, 60)

        report = await maintenance.reconcile_ledgers(db_session, grace_minutes=15)

        assert report.stale_reservations_released == 1
        assert report.ledgers_corrected == []
        assert await _used(db_session, subscription) == (0, 0)

    async def test_fresh_reservation_kept(self, db_session, make_user, make_subscription) -> None:
        subscription = await make_subscription(await make_user())
        slot = await ledger.reserve_slot(db_session, subscription.id)
        await _age(db_session, slot, 1)

        report = await maintenance.reconcile_ledgers(db_session, grace_minutes=15)

        assert report.stale_reservations_released == 0
        assert await _used(db_session, subscription) == (1, 0)

    async def test_orphaned_committed_slot_released(self, db_session, make_user, make_subscription) -> None:
        owner = await make_user()
        subscription = await make_subscription(owner)
        prop = await _listing(db_session, owner)
        slot = await ledger.reserve_slot(db_session, subscription.id)
        await ledger.commit_slot(db_session, slot, prop.id)
        # Listing removed behind the ledger's back
        await db_session.execute(delete(Property).where(Property.id == prop.id))

        report = await maintenance.reconcile_ledgers(db_session)

        assert report.orphaned_slots_released == 1
        assert await _used(db_session, subscription) == (0, 0)

    async def test_drift_recomputed_from_journal(self, db_session, make_user, make_subscription) -> None:
        owner = await make_user()
        drifted = await make_subscription(owner, listings_used=4)
        prop = await _listing(db_session, owner)
        slot = await ledger.reserve_slot(db_session, drifted.id)
        await ledger.commit_slot(db_session, slot, prop.id)
        healthy = await make_subscription(await make_user())

        report = await maintenance.reconcile_ledgers(db_session)

        assert report.ledgers_corrected == [str(drifted.id)]
        assert await _used(db_session, drifted) == (1, 0)
        assert await _used(db_session, healthy) == (0, 0)

    async def test_second_pass_is_clean(self, db_session, make_user, make_subscription) -> None:
        await make_subscription(await make_user(), listings_used=2)

        await maintenance.reconcile_ledgers(db_session)
        report = await maintenance.reconcile_ledgers(db_session)

        assert report == maintenance.ReconcileReport()


class TestExpiry:
    async def test_only_on_market_listings_lapse(self, db_session, make_user) -> None:
        owner = await make_user()
        past = utcnow() - timedelta(days=1)
        approved = await _listing(db_session, owner, "approved", past)
        active = await _listing(db_session, owner, "active", past)
        pending = await _listing(db_session, owner, "pending", past)
        current = await _listing(db_session, owner, "approved", utcnow() + timedelta(days=1))
        open_ended = await _listing(db_session, owner, "approved")

        assert await maintenance.expire_listings(db_session) == 2

        result = await db_session.execute(
            select(Property.id, Property.status).where(Property.owner_id == owner.id)
        )
        statuses = dict(result.all())
        assert statuses[approved.id] == "expired"
        assert statuses[active.id] == "expired"
        assert statuses[pending.id] == "pending"
        assert statuses[current.id] == "approved"
        assert statuses[open_ended.id] == "approved"

    async def test_subscriptions_lapse(self, db_session, make_user, make_subscription) -> None:
        lapsed = await make_subscription(await make_user(), expiration_date=utcnow() - timedelta(minutes=5))
        pending = await make_subscription(
            await make_user(), status="pending", expiration_date=utcnow() - timedelta(minutes=5)
        )
        running = await make_subscription(await make_user())

        assert await maintenance.expire_subscriptions(db_session) == 1

        statuses = dict((await db_session.execute(select(Subscription.id, Subscription.status))).all())
        assert statuses[lapsed.id] == "expired"
        assert statuses[pending.id] == "pending"
        assert statuses[running.id] == "active"


class TestReconcileAgainstLiveTraffic:
    async def test_listing_created_mid_pass_is_kept(
        self, db_session, make_user, make_subscription, monkeypatch
    ) -> None:
        owner = await make_user()
        subscription = await make_subscription(owner, listing_limit=5, listings_used=1)
        for _ in range(3):
            slot = await ledger.reserve_slot(db_session, subscription.id)
            await ledger.commit_slot(db_session, slot, (await _listing(db_session, owner)).id)
        # counter says 4, journal says 3

        shortlist = maintenance._drifted_ledgers

        async def create_after_shortlist(db):
            drifted = await shortlist(db)
            slot = await ledger.reserve_slot(db, subscription.id)
            await ledger.commit_slot(db, slot, (await _listing(db, owner)).id)
            return drifted

        monkeypatch.setattr(maintenance, "_drifted_ledgers", create_after_shortlist)

        report = await maintenance.reconcile_ledgers(db_session)

        assert report.ledgers_corrected == [str(subscription.id)]
        live_slots = (
            await db_session.execute(
                select(func.count())
                .select_from(ListingSlot)
                .where(ListingSlot.subscription_id == subscription.id, ListingSlot.state != "released")
            )
        ).scalar_one()
        assert live_slots == 4
        assert await _used(db_session, subscription) == (4, 0)

        await ledger.reserve_slot(db_session, subscription.id)
        with pytest.raises(QuotaExceededError):
            await ledger.reserve_slot(db_session, subscription.id)
