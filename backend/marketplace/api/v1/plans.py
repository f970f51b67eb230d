"""Plan catalogue."""

from fastapi import APIRouter

from marketplace.billing.plans import PLANS
from marketplace.schemas.subscription import PlanResponse, PlansListResponse

router = APIRouter(prefix="/api/v1/plans", tags=["plans"])


@router.get("", response_model=PlansListResponse)
async def list_plans() -> PlansListResponse:
    """List available plans (public — no auth required)."""
    return PlansListResponse(
        plans=[
            PlanResponse(
                name=p.name,
                display_name=p.display_name,
                default_listing_limit=p.default_listing_limit,
                allows_featured=p.allows_featured,
                allows_premium=p.allows_premium,
                reserves_featured_slots=p.reserves_featured_slots,
            )
            for p in PLANS.values()
        ]
    )
