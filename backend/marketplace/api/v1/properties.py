"""Properties API routes — listing lifecycle, reads through the visibility gate, images."""

import uuid
from decimal import Decimal

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import (
    get_current_active_user,
    get_db,
    get_media_store,
    get_notifier,
    get_optional_user,
)
from marketplace.config import settings
from marketplace.errors import DependencyFailure
from marketplace.models.user import User
from marketplace.schemas.auth import MessageResponse
from marketplace.schemas.property import (
    MediaSignatureResponse,
    PropertyCreate,
    PropertyListResponse,
    PropertyPublic,
    PropertyUpdate,
)
from marketplace.services import listing_service
from marketplace.services.notifications import Notifier

router = APIRouter(prefix="/api/v1/properties", tags=["properties"])


@router.post(
    "",
    response_model=PropertyPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new listing",
)
async def create_property(
    body: PropertyCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    notifier: Notifier = Depends(get_notifier),
) -> PropertyPublic:
    """Create a listing owned by the authenticated user. It always starts ``pending``."""
    prop = await listing_service.create_property(db, current_user, body, notifier)
    background_tasks.add_task(notifier.dispatch)
    return await listing_service.project(db, prop, current_user)


@router.get(
    "",
    response_model=PropertyListResponse,
    summary="List listings visible to the caller",
)
async def list_properties(
    category: str | None = Query(None),
    property_type: str | None = Query(None),
    city: str | None = Query(None),
    min_price: Decimal | None = Query(None, ge=0),
    max_price: Decimal | None = Query(None, ge=0),
    featured: bool | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    mine: bool = Query(False, description="Only the caller's own listings"),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
) -> PropertyListResponse:
    """Anonymous callers see on-market listings only; owners also see their own, admins see all."""
    items, total = await listing_service.list_visible_properties(
        db,
        current_user,
        category=category,
        property_type=property_type,
        city=city,
        min_price=min_price,
        max_price=max_price,
        is_featured=featured,
        status=status_filter,
        owner_id=current_user.id if (mine and current_user is not None) else None,
        skip=skip,
        limit=limit,
    )
    return PropertyListResponse(items=items, total=total, skip=skip, limit=limit)


@router.get(
    "/media/signature",
    response_model=MediaSignatureResponse,
    summary="Signed parameters for a direct image upload",
)
async def media_signature(
    current_user: User = Depends(get_current_active_user),
    media_store=Depends(get_media_store),
) -> MediaSignatureResponse:
    if media_store is None:
        raise DependencyFailure("Media storage is not configured")
    return MediaSignatureResponse(**media_store.upload_signature())


@router.get(
    "/{property_id}",
    response_model=PropertyPublic,
    summary="Get a listing by ID",
)
async def get_property(
    property_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
) -> PropertyPublic:
    """404 for missing listings and for off-market listings the caller does not own."""
    return await listing_service.get_visible_property(db, current_user, property_id)


@router.put(
    "/{property_id}",
    response_model=PropertyPublic,
    summary="Update a listing",
)
async def update_property(
    property_id: uuid.UUID,
    body: PropertyUpdate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    notifier: Notifier = Depends(get_notifier),
) -> PropertyPublic:
    """Partially update a listing. Owners asking for ``active`` send it back to review."""
    prop = await listing_service.update_property(db, current_user, property_id, body, notifier)
    background_tasks.add_task(notifier.dispatch)
    return await listing_service.project(db, prop, current_user)


@router.delete(
    "/{property_id}",
    response_model=MessageResponse,
    summary="Delete a listing",
)
async def delete_property(
    property_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    media_store=Depends(get_media_store),
) -> MessageResponse:
    """Delete a listing, its images, and give its quota back."""
    await listing_service.delete_property(db, current_user, property_id, media_store)
    return MessageResponse(message="Property deleted")


@router.post(
    "/{property_id}/images",
    response_model=PropertyPublic,
    summary="Upload images to a listing",
)
async def upload_images(
    property_id: uuid.UUID,
    files: list[UploadFile] = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    media_store=Depends(get_media_store),
) -> PropertyPublic:
    payload = [(f.filename or "upload", await f.read(), f.content_type) for f in files]
    prop = await listing_service.add_images(db, current_user, property_id, payload, media_store)
    return await listing_service.project(db, prop, current_user)


@router.delete(
    "/{property_id}/images/{public_id:path}",
    response_model=PropertyPublic,
    summary="Remove an image from a listing",
)
async def delete_image(
    property_id: uuid.UUID,
    public_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    media_store=Depends(get_media_store),
) -> PropertyPublic:
    prop = await listing_service.remove_image(db, current_user, property_id, public_id, media_store)
    return await listing_service.project(db, prop, current_user)
