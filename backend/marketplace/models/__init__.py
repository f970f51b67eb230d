"""SQLAlchemy models for the marketplace.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from marketplace.models.agency import Agency
from marketplace.models.agent import Agent
from marketplace.models.notification import Notification
from marketplace.models.promoter import Promoter
from marketplace.models.property import Property
from marketplace.models.registration_request import RegistrationRequest
from marketplace.models.subscription import FeaturedListing, ListingSlot, Subscription
from marketplace.models.user import User

__all__ = [
    "Agency",
    "Agent",
    "FeaturedListing",
    "ListingSlot",
    "Notification",
    "Promoter",
    "Property",
    "RegistrationRequest",
    "Subscription",
    "User",
]
