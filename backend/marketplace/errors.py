"""Domain exceptions for the marketplace.

Every error the listing engine can raise derives from ``MarketplaceError`` and
carries the HTTP status and a stable machine-readable ``code``. The handlers
registered in ``marketplace.main`` render them as::

    {"success": false, "message": "...", "code": "QUOTA_EXCEEDED"}
"""

from typing import Any

from fastapi import status


class MarketplaceError(Exception):
    """Base class for all errors surfaced to API clients."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ---------------------------------------------------------------------------
# Request shape and identity
# ---------------------------------------------------------------------------


class ValidationError(MarketplaceError):
    """Malformed or missing fields."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, {"field": field} if field else None)
        self.field = field


class AuthenticationError(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message)


class AuthorizationError(MarketplaceError):
    """The actor is known but not allowed to perform the action."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFoundError(MarketplaceError):
    """Missing resource, or one deliberately hidden from the caller."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier is not None:
            message += f" with id of {identifier}"
        super().__init__(message)
        self.resource = resource


class ConflictError(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class QuotaExceededError(MarketplaceError):
    """The subscription has no listing slot left."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "QUOTA_EXCEEDED"

    def __init__(self, message: str = "Listing limit reached for this subscription", limit: int | None = None):
        super().__init__(message, {"limit": limit})
        self.limit = limit


class AgencyQuotaExceededError(QuotaExceededError):
    code = "AGENCY_QUOTA_EXCEEDED"

    def __init__(self, limit: int | None = None):
        super().__init__("Your agency has reached its listing limit", limit)


class SubscriptionInactiveError(MarketplaceError):
    """The subscription exists but is pending or expired."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "SUBSCRIPTION_INACTIVE"

    def __init__(self, message: str = "Subscription is not active"):
        super().__init__(message)


class AgencyInactiveError(SubscriptionInactiveError):
    code = "AGENCY_INACTIVE"

    def __init__(self, message: str = "Your agency's subscription is not active"):
        super().__init__(message)


class SubscriptionRequiredError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "SUBSCRIPTION_REQUIRED"

    def __init__(self, message: str = "An active subscription is required to publish listings"):
        super().__init__(message)


class FeaturedCapExceededError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FEATURED_CAP_EXCEEDED"

    def __init__(self, cap: int):
        super().__init__(f"Featured listing limit reached ({cap})", {"cap": cap})
        self.cap = cap


class PlanIneligibleError(MarketplaceError):
    """The subscription plan does not include the requested feature."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "PLAN_INELIGIBLE"


class GoldCardUnavailableError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "GOLD_CARD_UNAVAILABLE"

    def __init__(self):
        super().__init__("No gold cards left on this account")


# ---------------------------------------------------------------------------
# Profiles and lifecycle
# ---------------------------------------------------------------------------


class AgentProfileMissingError(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "AGENT_PROFILE_MISSING"

    def __init__(self):
        super().__init__("Agent profile not found for this user")


class AgencyProfileMissingError(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "AGENCY_PROFILE_MISSING"

    def __init__(self):
        super().__init__("Agency profile not found for this user")


class InvalidTransitionError(MarketplaceError):
    """Illegal listing status change."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str, message: str | None = None):
        super().__init__(
            message or f"Cannot change status from '{current}' to '{requested}'",
            {"current": current, "requested": requested},
        )
        self.current = current
        self.requested = requested


# ---------------------------------------------------------------------------
# External collaborators
# ---------------------------------------------------------------------------


class DependencyFailure(MarketplaceError):
    """Media store or notification failure.

    Only raised to clients for required operations (uploads); everywhere else
    it is logged and swallowed by the caller.
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "DEPENDENCY_FAILURE"
