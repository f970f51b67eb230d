"""Agent model — a user who lists on behalf of clients, optionally for an agency."""

import uuid

from sqlalchemy import Boolean, ForeignKey, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Agent(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "agents"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    agency_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("agencies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(120), nullable=False, default="Real Estate Agent")
    biography: Mapped[str | None] = mapped_column(Text, default=None)
    license_number: Mapped[str | None] = mapped_column(String(60), default=None)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    approval_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    def __repr__(self) -> str:
        return f"<Agent(id={self.id}, user_id={self.user_id}, agency_id={self.agency_id})>"
