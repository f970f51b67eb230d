"""Tests for admin endpoints — review queue, approval, rejection, ledger maintenance."""

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import utcnow
from marketplace.models.property import Property
from marketplace.models.subscription import Subscription
from marketplace.models.user import User
from marketplace.services import notifications

pytestmark = pytest.mark.asyncio


class TestReviewQueue:
    async def test_pending_listings_by_default(
        self,
        client: AsyncClient,
        approved_property: dict,
        admin_headers: dict,
        property_payload: dict,
        auth_headers: dict,
    ) -> None:
        pending = (
            await client.post("/api/v1/properties", json={**property_payload, "title": "Queued"}, headers=auth_headers)
        ).json()

        response = await client.get("/api/v1/admin/properties", headers=admin_headers)

        assert response.status_code == 200
        ids = [item["id"] for item in response.json()["items"]]
        assert ids == [pending["id"]]

    async def test_filter_by_status(self, client: AsyncClient, approved_property: dict, admin_headers: dict) -> None:
        response = await client.get("/api/v1/admin/properties", params={"status": "approved"}, headers=admin_headers)
        assert [item["id"] for item in response.json()["items"]] == [approved_property["id"]]

    async def test_non_admin_forbidden(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.get("/api/v1/admin/properties", headers=auth_headers)
        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Admin access required", "code": "FORBIDDEN"}


class TestApproveReject:
    async def test_approve_notifies_owner(
        self,
        client: AsyncClient,
        test_property: dict,
        test_user: User,
        admin_headers: dict,
        notification_sink,
    ) -> None:
        response = await client.post(f"/api/v1/admin/properties/{test_property['id']}/approve", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        approved = notification_sink.of_type(notifications.PROPERTY_APPROVED)
        assert test_user.id in [event[0] for event in approved]

    async def test_reject_requires_reason(self, client: AsyncClient, test_property: dict, admin_headers: dict) -> None:
        response = await client.post(
            f"/api/v1/admin/properties/{test_property['id']}/reject",
            json={"reason": "   "},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_reject_then_approve_clears_reason(
        self, client: AsyncClient, test_property: dict, admin_headers: dict, auth_headers: dict, notification_sink
    ) -> None:
        base = f"/api/v1/admin/properties/{test_property['id']}"
        rejected = await client.post(f"{base}/reject", json={"reason": "Wrong city"}, headers=admin_headers)
        assert rejected.json()["rejection_reason"] == "Wrong city"
        assert len(notification_sink.of_type(notifications.PROPERTY_REJECTED)) == 1

        await client.post(f"{base}/approve", headers=admin_headers)

        owner_view = await client.get(f"/api/v1/properties/{test_property['id']}", headers=auth_headers)
        assert owner_view.json()["status"] == "approved"
        assert owner_view.json()["rejection_reason"] is None

    async def test_inactive_cannot_be_approved(
        self, client: AsyncClient, approved_property: dict, admin_headers: dict, auth_headers: dict
    ) -> None:
        await client.put(
            f"/api/v1/properties/{approved_property['id']}", json={"status": "inactive"}, headers=auth_headers
        )

        response = await client.post(
            f"/api/v1/admin/properties/{approved_property['id']}/approve", headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_TRANSITION"

    async def test_unknown_property(self, client: AsyncClient, admin_headers: dict) -> None:
        response = await client.post(f"/api/v1/admin/properties/{uuid.uuid4()}/approve", headers=admin_headers)
        assert response.status_code == 404

    async def test_owner_cannot_approve(self, client: AsyncClient, test_property: dict, auth_headers: dict) -> None:
        response = await client.post(f"/api/v1/admin/properties/{test_property['id']}/approve", headers=auth_headers)
        assert response.status_code == 403


class TestReconcile:
    async def test_sweeps_and_corrects_drift(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        admin_headers: dict,
        auth_headers: dict,
        test_user: User,
        property_payload: dict,
        make_user,
        make_subscription,
    ) -> None:
        past = (utcnow() - timedelta(days=1)).isoformat()
        created = (
            await client.post("/api/v1/properties", json={**property_payload, "expires_at": past}, headers=auth_headers)
        ).json()
        await client.post(f"/api/v1/admin/properties/{created['id']}/approve", headers=admin_headers)
        drifted = await make_subscription(await make_user(), listings_used=3)
        lapsed = await make_subscription(await make_user(), expiration_date=utcnow() - timedelta(hours=1))

        response = await client.post("/api/v1/admin/ledgers/reconcile", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["listings_expired"] == 1
        assert data["subscriptions_expired"] == 1
        assert data["ledgers_corrected"] == [str(drifted.id)]
        assert data["stale_reservations_released"] == 0

        statuses = dict(
            (await db_session.execute(select(Subscription.id, Subscription.status))).all()
        )
        assert statuses[lapsed.id] == "expired"
        used = (
            await db_session.execute(select(Subscription.listings_used).where(Subscription.id == drifted.id))
        ).scalar_one()
        assert used == 0
        status = (
            await db_session.execute(select(Property.status).where(Property.id == uuid.UUID(created["id"])))
        ).scalar_one()
        assert status == "expired"

    async def test_non_admin_forbidden(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.post("/api/v1/admin/ledgers/reconcile", headers=auth_headers)
        assert response.status_code == 403
