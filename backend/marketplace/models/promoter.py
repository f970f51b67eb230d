"""Promoter model — property developers publishing projects."""

import uuid

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Promoter(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "promoters"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    company_name: Mapped[str] = mapped_column(String(150), nullable=False)
    approval_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
