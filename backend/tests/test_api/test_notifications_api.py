"""Tests for the notification inbox endpoints."""

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import utcnow
from marketplace.models.notification import Notification
from marketplace.models.user import User

pytestmark = pytest.mark.asyncio


@pytest.fixture
def make_notification(db_session: AsyncSession):
    async def _make(user: User, message: str, minutes_ago: int = 0, is_read: bool = False) -> Notification:
        notification = Notification(
            user_id=user.id,
            type="property_approved",
            message=message,
            is_read=is_read,
            created_at=utcnow() - timedelta(minutes=minutes_ago),
        )
        db_session.add(notification)
        await db_session.flush()
        return notification

    return _make


async def test_inbox_newest_first(
    client: AsyncClient, auth_headers: dict, test_user: User, other_user: User, make_notification
) -> None:
    await make_notification(test_user, "oldest", minutes_ago=30, is_read=True)
    await make_notification(test_user, "middle", minutes_ago=20)
    await make_notification(test_user, "newest", minutes_ago=10)
    await make_notification(other_user, "not yours")

    response = await client.get("/api/v1/notifications", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert [item["message"] for item in data["items"]] == ["newest", "middle", "oldest"]
    assert (data["total"], data["unread"]) == (3, 2)


async def test_unread_only(client: AsyncClient, auth_headers: dict, test_user: User, make_notification) -> None:
    await make_notification(test_user, "seen", is_read=True)
    await make_notification(test_user, "fresh")

    response = await client.get("/api/v1/notifications", params={"unread_only": True}, headers=auth_headers)

    assert [item["message"] for item in response.json()["items"]] == ["fresh"]


async def test_mark_read(client: AsyncClient, auth_headers: dict, test_user: User, make_notification) -> None:
    notification = await make_notification(test_user, "approved")

    response = await client.post(f"/api/v1/notifications/{notification.id}/read", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["is_read"] is True
    inbox = (await client.get("/api/v1/notifications", headers=auth_headers)).json()
    assert inbox["unread"] == 0


async def test_cannot_read_someone_elses(
    client: AsyncClient, other_headers: dict, test_user: User, make_notification
) -> None:
    notification = await make_notification(test_user, "private")

    response = await client.post(f"/api/v1/notifications/{notification.id}/read", headers=other_headers)

    assert response.status_code == 404


async def test_unknown_notification(client: AsyncClient, auth_headers: dict) -> None:
    response = await client.post(f"/api/v1/notifications/{uuid.uuid4()}/read", headers=auth_headers)
    assert response.status_code == 404


async def test_requires_authentication(client: AsyncClient) -> None:
    response = await client.get("/api/v1/notifications")
    assert response.status_code == 401
