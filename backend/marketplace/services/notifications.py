"""Notification dispatch.

Services ``emit`` events into a per-request ``Notifier``; the router hands
``Notifier.dispatch`` to FastAPI's background tasks so delivery happens after
the response, once the triggering write is committed. Delivery failures are
logged and never reach the client.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import async_session_factory
from marketplace.models.notification import Notification
from marketplace.models.user import User

logger = logging.getLogger(__name__)

# Event types
PROPERTY_PENDING_REVIEW = "property_pending_review"
PROPERTY_APPROVED = "property_approved"
PROPERTY_REJECTED = "property_rejected"
REGISTRATION_SUBMITTED = "registration_submitted"
REGISTRATION_APPROVED = "registration_approved"
REGISTRATION_REJECTED = "registration_rejected"


@dataclass(frozen=True)
class NotificationEvent:
    user_id: uuid.UUID
    type: str
    message: str


class NotificationSink(Protocol):
    async def notify(self, user_id: uuid.UUID, type: str, message: str) -> None: ...


class DatabaseNotificationSink:
    """Writes each notification to the in-app inbox in its own transaction."""

    async def notify(self, user_id: uuid.UUID, type: str, message: str) -> None:
        async with async_session_factory() as session:
            session.add(Notification(user_id=user_id, type=type, message=message))
            await session.commit()


class Notifier:
    """Buffers events raised during a request until they can be delivered."""

    def __init__(self, sink: NotificationSink) -> None:
        self.sink = sink
        self.pending: list[NotificationEvent] = []

    def emit(self, user_id: uuid.UUID, type: str, message: str) -> None:
        self.pending.append(NotificationEvent(user_id, type, message))

    async def emit_to_admins(self, db: AsyncSession, type: str, message: str) -> None:
        result = await db.execute(select(User.id).where(User.role == "admin", User.is_active.is_(True)))
        for admin_id in result.scalars().all():
            self.emit(admin_id, type, message)

    async def dispatch(self) -> None:
        events, self.pending = self.pending, []
        for event in events:
            try:
                await self.sink.notify(event.user_id, event.type, event.message)
            except Exception:
                logger.warning("Failed to deliver %s notification to %s", event.type, event.user_id, exc_info=True)


def get_notifier() -> Notifier:
    """FastAPI dependency — one notifier per request."""
    return Notifier(DatabaseNotificationSink())
