"""Subscription API routes — ledger management and the featured set."""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_current_active_user, get_db, require_admin
from marketplace.billing import ledger
from marketplace.config import settings
from marketplace.errors import NotFoundError
from marketplace.models.subscription import Subscription
from marketplace.models.user import User
from marketplace.schemas.subscription import (
    FeaturePropertyRequest,
    SubscriptionCreate,
    SubscriptionDetailResponse,
    SubscriptionListResponse,
    SubscriptionResponse,
    SubscriptionUpdate,
)
from marketplace.services import subscription_service

router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])


async def _detail(db: AsyncSession, subscription: Subscription) -> SubscriptionDetailResponse:
    response = SubscriptionDetailResponse.model_validate(subscription)
    response.featured_property_ids = await ledger.featured_property_ids(db, subscription.id)
    return response


@router.post(
    "",
    response_model=SubscriptionDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a subscription for a user",
)
async def create_subscription(
    body: SubscriptionCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> SubscriptionDetailResponse:
    subscription = await subscription_service.create_subscription(
        db,
        body.user_id,
        body.plan,
        status=body.status,
        expiration_date=body.expiration_date,
        **body.resolved_listing_limit(),
    )
    return await _detail(db, subscription)


@router.get("", response_model=SubscriptionListResponse, summary="List subscriptions")
async def list_subscriptions(
    status_filter: str | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> SubscriptionListResponse:
    items, total = await subscription_service.list_subscriptions(db, status_filter, skip, limit)
    return SubscriptionListResponse(
        items=[SubscriptionResponse.model_validate(s) for s in items],
        total=total,
    )


@router.get("/me", response_model=SubscriptionDetailResponse, summary="Current user's subscription")
async def my_subscription(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> SubscriptionDetailResponse:
    subscription = await subscription_service.get_subscription_for_user(db, current_user.id)
    if subscription is None:
        raise NotFoundError("Subscription", current_user.id)
    return await _detail(db, subscription)


@router.get("/{subscription_id}", response_model=SubscriptionDetailResponse)
async def get_subscription(
    subscription_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> SubscriptionDetailResponse:
    subscription = await subscription_service.get_subscription(db, subscription_id)
    subscription_service.ensure_can_access(current_user, subscription)
    return await _detail(db, subscription)


@router.put("/{subscription_id}", response_model=SubscriptionDetailResponse)
async def update_subscription(
    subscription_id: uuid.UUID,
    body: SubscriptionUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> SubscriptionDetailResponse:
    """Adjust plan, limit, status or expiration. A limit below current usage is refused."""
    subscription = await subscription_service.update_subscription(
        db,
        subscription_id,
        plan=body.plan,
        status=body.status,
        expiration_date=body.expiration_date,
        **body.resolved_listing_limit(),
    )
    return await _detail(db, subscription)


@router.post("/{subscription_id}/feature-property", response_model=SubscriptionDetailResponse)
async def feature_property(
    subscription_id: uuid.UUID,
    body: FeaturePropertyRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> SubscriptionDetailResponse:
    subscription = await subscription_service.feature_property(db, current_user, subscription_id, body.property_id)
    return await _detail(db, subscription)


@router.delete(
    "/{subscription_id}/feature-property/{property_id}",
    response_model=SubscriptionDetailResponse,
)
async def unfeature_property(
    subscription_id: uuid.UUID,
    property_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> SubscriptionDetailResponse:
    subscription = await subscription_service.unfeature_property(db, current_user, subscription_id, property_id)
    return await _detail(db, subscription)
