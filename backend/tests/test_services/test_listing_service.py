"""Tests for the listing service: create compensation, image normalisation, review."""

import logging
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.billing import ledger
from marketplace.errors import DependencyFailure, InvalidTransitionError, NotFoundError
from marketplace.models.property import Property
from marketplace.models.subscription import ListingSlot, Subscription
from marketplace.models.user import User
from marketplace.schemas.property import PropertyCreate
from marketplace.services import listing_service, notifications
from marketplace.services.listing_service import Compensation, normalise_images
from marketplace.services.notifications import Notifier

pytestmark = pytest.mark.asyncio


def _payload(**overrides) -> PropertyCreate:
    values = {
        "title": "Service test villa",
        "description": "Three bedrooms with garden",
        "city": "Tamarin",
        "price": "12000000",
        "category": "for-sale",
        "property_type": "Villa",
        "size": "240",
    }
    values.update(overrides)
    return PropertyCreate(**values)


async def _usage(db_session: AsyncSession, user: User) -> int:
    return (
        await db_session.execute(select(Subscription.listings_used).where(Subscription.user_id == user.id))
    ).scalar_one()


class TestCompensation:
    async def test_steps_run_newest_first(self) -> None:
        calls = []
        undo = Compensation()

        async def step(name):
            calls.append(name)

        undo.add("first", lambda: step("first"))
        undo.add("second", lambda: step("second"))
        await undo.run(DependencyFailure("boom"))

        assert calls == ["second", "first"]

    async def test_failing_step_does_not_stop_the_rest(self, caplog) -> None:
        calls = []
        undo = Compensation()

        async def ok():
            calls.append("ok")

        async def broken():
            raise RuntimeError("ledger unavailable")

        undo.add("ok", ok)
        undo.add("broken", broken)
        with caplog.at_level(logging.CRITICAL, logger="marketplace.services.listing_service"):
            await undo.run(DependencyFailure("boom"))

        assert calls == ["ok"]
        assert "needs reconciliation" in caplog.text

    async def test_database_errors_leave_it_to_rollback(self) -> None:
        calls = []
        undo = Compensation()

        async def step():
            calls.append("ran")

        undo.add("step", step)
        await undo.run(OperationalError("UPDATE", {}, Exception("connection lost")))

        assert calls == []


class TestCreateSaga:
    async def test_late_failure_unwinds_every_ledger(
        self, db_session, make_agency, make_agent, make_subscription, monkeypatch
    ) -> None:
        agency_user, agency = await make_agency()
        await make_subscription(agency_user, plan="platinum", listing_limit=20)
        agent_user, _ = await make_agent(agency)
        await make_subscription(agent_user, plan="elite")
        agent_user.gold_cards = 1
        await db_session.flush()

        async def fail_commit(db, slot, property_id):
            raise DependencyFailure("journal unavailable")

        monkeypatch.setattr(ledger, "commit_slot", fail_commit)

        with pytest.raises(DependencyFailure):
            await listing_service.create_property(
                db_session, agent_user, _payload(is_gold_card=True), Notifier(sink=None)
            )

        assert await _usage(db_session, agency_user) == 0
        assert await _usage(db_session, agent_user) == 0
        gold = (await db_session.execute(select(User.gold_cards).where(User.id == agent_user.id))).scalar_one()
        assert gold == 1
        assert (await db_session.execute(select(func.count()).select_from(Property))).scalar_one() == 0
        states = set((await db_session.execute(select(ListingSlot.state))).scalars().all())
        assert states == {"released"}

    async def test_success_queues_review_notice(self, db_session, make_user, make_subscription) -> None:
        admin = await make_user(role="admin")
        seller = await make_user()
        await make_subscription(seller)
        notifier = Notifier(sink=None)

        prop = await listing_service.create_property(db_session, seller, _payload(status="approved"), notifier)

        assert prop.status == "pending"
        assert prop.subscription_id is not None
        assert [(e.user_id, e.type) for e in notifier.pending] == [(admin.id, notifications.PROPERTY_PENDING_REVIEW)]


class TestReview:
    async def test_approve_queues_owner_and_admin_notices(self, db_session, make_user, make_subscription) -> None:
        admin = await make_user(role="admin")
        seller = await make_user()
        await make_subscription(seller)
        prop = await listing_service.create_property(db_session, seller, _payload(), Notifier(sink=None))
        notifier = Notifier(sink=None)

        await listing_service.approve_property(db_session, prop.id, notifier)

        assert {(e.user_id, e.type) for e in notifier.pending} == {
            (seller.id, notifications.PROPERTY_APPROVED),
            (admin.id, notifications.PROPERTY_APPROVED),
        }

    async def test_approve_missing(self, db_session) -> None:
        with pytest.raises(NotFoundError):
            await listing_service.approve_property(db_session, uuid.uuid4(), Notifier(sink=None))

    async def test_reject_inactive(self, db_session, make_user, make_subscription) -> None:
        seller = await make_user()
        await make_subscription(seller)
        prop = await listing_service.create_property(db_session, seller, _payload(), Notifier(sink=None))
        prop.status = "inactive"
        await db_session.flush()

        with pytest.raises(InvalidTransitionError):
            await listing_service.reject_property(db_session, prop.id, "Duplicate", Notifier(sink=None))


class TestNormaliseImages:
    async def test_first_flagged_wins(self) -> None:
        images = normalise_images(
            [{"url": "a", "is_main": False}, {"url": "b", "is_main": True}, {"url": "c", "is_main": True}]
        )
        assert [image["is_main"] for image in images] == [False, True, False]

    async def test_defaults_to_first(self) -> None:
        images = normalise_images([{"url": "a"}, {"url": "b"}])
        assert [image["is_main"] for image in images] == [True, False]

    async def test_empty(self) -> None:
        assert normalise_images([]) == []
