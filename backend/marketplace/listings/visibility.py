"""Read-side projection of listings.

Every listing leaving the API goes through ``redact`` with an explicit
``Viewer``. Contact details depend on who is looking:

    ANONYMOUS      phone and email never shown
    AUTHENTICATED  shown unless the listing restricts them
    OWNER / ADMIN / AGENT   shown

Listings that are not on the market (pending, rejected, inactive, expired)
exist only for their owner and admins; everyone else gets a 404.
"""

import enum
import uuid
from dataclasses import dataclass

from sqlalchemy import or_

from marketplace.errors import NotFoundError
from marketplace.listings.state_machine import HIDDEN_STATUSES, PUBLIC_STATUSES
from marketplace.models.property import Property
from marketplace.models.user import User
from marketplace.schemas.property import ContactDetailsPublic, PropertyImage, PropertyPublic


class ViewerKind(enum.Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    AGENT = "agent"
    OWNER = "owner"
    ADMIN = "admin"


@dataclass(frozen=True)
class Viewer:
    kind: ViewerKind
    user_id: uuid.UUID | None = None

    @property
    def sees_hidden_statuses(self) -> bool:
        return self.kind in (ViewerKind.OWNER, ViewerKind.ADMIN)

    def sees_contact(self, restricted: bool) -> bool:
        if self.kind is ViewerKind.ANONYMOUS:
            return False
        if self.kind is ViewerKind.AUTHENTICATED:
            return not restricted
        return True


ANONYMOUS = Viewer(ViewerKind.ANONYMOUS)


def viewer_for(user: User | None, prop: Property, agent_user_id: uuid.UUID | None = None) -> Viewer:
    """Classify ``user`` relative to one listing.

    ``agent_user_id`` is the user account behind the listing's agent, if any.
    """
    if user is None:
        return ANONYMOUS
    if user.is_admin:
        return Viewer(ViewerKind.ADMIN, user.id)
    if prop.owner_id == user.id:
        return Viewer(ViewerKind.OWNER, user.id)
    if agent_user_id is not None and agent_user_id == user.id:
        return Viewer(ViewerKind.AGENT, user.id)
    return Viewer(ViewerKind.AUTHENTICATED, user.id)


def ensure_visible(prop: Property, viewer: Viewer) -> None:
    """404 for listings the viewer must not know exist."""
    if prop.status in HIDDEN_STATUSES and not viewer.sees_hidden_statuses:
        raise NotFoundError("Property", prop.id)


def visibility_filter(user: User | None):
    """SQL condition equivalent to ``ensure_visible`` for list queries, or None for admins."""
    if user is not None and user.is_admin:
        return None
    public = Property.status.in_(PUBLIC_STATUSES)
    if user is None:
        return public
    return or_(public, Property.owner_id == user.id)


def redact(prop: Property, viewer: Viewer) -> PropertyPublic:
    """Project a listing into its public representation for ``viewer``."""
    restricted = bool(prop.contact_is_restricted)
    if viewer.sees_contact(restricted):
        contact = ContactDetailsPublic(
            phone=prop.contact_phone,
            email=prop.contact_email,
            is_restricted=restricted,
        )
    else:
        contact = ContactDetailsPublic(is_restricted=restricted)

    return PropertyPublic(
        id=prop.id,
        owner_id=prop.owner_id,
        agent_id=prop.agent_id,
        agency_id=prop.agency_id,
        title=prop.title,
        description=prop.description,
        street=prop.street,
        city=prop.city,
        region=prop.region,
        country=prop.country,
        latitude=prop.latitude,
        longitude=prop.longitude,
        price=prop.price,
        currency=prop.currency,
        category=prop.category,
        property_type=prop.property_type,
        size=prop.size,
        bedrooms=prop.bedrooms or 0,
        bathrooms=prop.bathrooms or 0,
        amenities=list(prop.amenities or []),
        images=[PropertyImage(**image) for image in prop.images or []],
        status=prop.status,
        rejection_reason=prop.rejection_reason if viewer.sees_hidden_statuses else None,
        expires_at=prop.expires_at,
        is_featured=bool(prop.is_featured),
        is_premium=bool(prop.is_premium),
        is_gold_card=bool(prop.is_gold_card),
        contact_details=contact,
        created_at=prop.created_at,
        updated_at=prop.updated_at,
    )
