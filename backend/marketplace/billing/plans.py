"""Plan definitions — listing limits and feature entitlements."""

from dataclasses import dataclass


@dataclass(frozen=True)
class PlanLimits:
    """Entitlements of a subscription plan."""

    name: str
    display_name: str
    default_listing_limit: int | None  # None = unlimited
    allows_featured: bool  # may set is_featured on a listing
    allows_premium: bool  # may set is_premium on a listing
    reserves_featured_slots: bool  # may hold featured slots in the ledger


PLANS: dict[str, PlanLimits] = {
    "basic": PlanLimits(
        name="basic",
        display_name="Basic",
        default_listing_limit=5,
        allows_featured=False,
        allows_premium=False,
        reserves_featured_slots=False,
    ),
    "elite": PlanLimits(
        name="elite",
        display_name="Elite",
        default_listing_limit=20,
        allows_featured=True,
        allows_premium=True,
        reserves_featured_slots=False,
    ),
    "platinum": PlanLimits(
        name="platinum",
        display_name="Platinum",
        default_listing_limit=50,
        allows_featured=True,
        allows_premium=True,
        reserves_featured_slots=True,
    ),
}

VALID_PLAN_NAMES: set[str] = set(PLANS.keys())

# Share of the listing limit that may be featured at once
FEATURED_SHARE_DENOMINATOR = 4


def get_plan(plan_name: str) -> PlanLimits:
    """Get plan limits by name. Defaults to basic if unknown."""
    return PLANS.get(plan_name, PLANS["basic"])


def featured_cap(listing_limit: int | None) -> int | None:
    """floor(listing_limit * 0.25), or None when the limit is unlimited."""
    if listing_limit is None:
        return None
    return listing_limit // FEATURED_SHARE_DENOMINATOR
