"""Admin API routes — listing review queue, registration decisions, ledger maintenance."""

import uuid
from dataclasses import asdict

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_db, get_notifier, require_admin
from marketplace.config import settings
from marketplace.listings import state_machine
from marketplace.models.user import User
from marketplace.schemas.property import PropertyListResponse, PropertyPublic, RejectRequest
from marketplace.schemas.registration import (
    RegistrationApprove,
    RegistrationListResponse,
    RegistrationReject,
    RegistrationResponse,
)
from marketplace.services import listing_service, maintenance, registration_service
from marketplace.services.notifications import Notifier

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


class ReconcileResponse(BaseModel):
    stale_reservations_released: int
    orphaned_slots_released: int
    ledgers_corrected: list[str]
    listings_expired: int
    subscriptions_expired: int


# ---------------------------------------------------------------------------
# Listing review
# ---------------------------------------------------------------------------


@router.get("/properties", response_model=PropertyListResponse, summary="Review queue")
async def review_queue(
    status_filter: str = Query(state_machine.PENDING, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> PropertyListResponse:
    """Listings in the given status (``pending`` by default)."""
    items, total = await listing_service.list_visible_properties(
        db, admin, status=status_filter, skip=skip, limit=limit
    )
    return PropertyListResponse(items=items, total=total, skip=skip, limit=limit)


@router.post("/properties/{property_id}/approve", response_model=PropertyPublic)
async def approve_property(
    property_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
) -> PropertyPublic:
    prop = await listing_service.approve_property(db, property_id, notifier)
    background_tasks.add_task(notifier.dispatch)
    return await listing_service.project(db, prop, admin)


@router.post("/properties/{property_id}/reject", response_model=PropertyPublic)
async def reject_property(
    property_id: uuid.UUID,
    body: RejectRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
) -> PropertyPublic:
    prop = await listing_service.reject_property(db, property_id, body.reason, notifier)
    background_tasks.add_task(notifier.dispatch)
    return await listing_service.project(db, prop, admin)


# ---------------------------------------------------------------------------
# Ledger maintenance
# ---------------------------------------------------------------------------


@router.post("/ledgers/reconcile", response_model=ReconcileResponse)
async def reconcile(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> ReconcileResponse:
    """Run the expiry sweeps and a reconciliation pass now."""
    subscriptions_expired = await maintenance.expire_subscriptions(db)
    listings_expired = await maintenance.expire_listings(db)
    report = await maintenance.reconcile_ledgers(db)
    return ReconcileResponse(
        **asdict(report),
        listings_expired=listings_expired,
        subscriptions_expired=subscriptions_expired,
    )


# ---------------------------------------------------------------------------
# Registration requests
# ---------------------------------------------------------------------------


@router.get("/registration-requests", response_model=RegistrationListResponse)
async def list_registration_requests(
    status_filter: str | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> RegistrationListResponse:
    items, total = await registration_service.list_requests(db, status_filter, skip, limit)
    return RegistrationListResponse(
        items=[RegistrationResponse.model_validate(r) for r in items],
        total=total,
    )


@router.post("/registration-requests/{request_id}/approve", response_model=RegistrationResponse)
async def approve_registration(
    request_id: uuid.UUID,
    body: RegistrationApprove,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
) -> RegistrationResponse:
    """Grant the requested role; with ``plan`` set, also open the user's subscription."""
    request = await registration_service.approve_request(db, request_id, body, notifier)
    background_tasks.add_task(notifier.dispatch)
    return RegistrationResponse.model_validate(request)


@router.post("/registration-requests/{request_id}/reject", response_model=RegistrationResponse)
async def reject_registration(
    request_id: uuid.UUID,
    body: RegistrationReject,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
) -> RegistrationResponse:
    request = await registration_service.reject_request(db, request_id, body.reason, notifier)
    background_tasks.add_task(notifier.dispatch)
    return RegistrationResponse.model_validate(request)
