"""Shared API dependencies — single import point for all routers.

Re-exports the database session, authentication and collaborator
dependencies so that router modules can import everything they need from
one place::

    from marketplace.api.deps import get_db, get_current_active_user
"""

from marketplace.auth.dependencies import (
    get_current_active_user,
    get_current_user,
    get_optional_user,
    require_admin,
)
from marketplace.database import get_db
from marketplace.services.media import get_media_store
from marketplace.services.notifications import get_notifier

__all__ = [
    "get_db",
    "get_current_user",
    "get_current_active_user",
    "get_optional_user",
    "require_admin",
    "get_media_store",
    "get_notifier",
]
