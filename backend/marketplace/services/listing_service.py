"""Listing service — create, update, delete and review of property listings.

``create_property`` works as a small saga inside the request transaction:
ledger slots and gold cards are taken first, the listing is written, and the
journal rows are bound to it. Each step that takes something registers an
undo step; if anything after the first reservation fails, the undo steps run
newest-first before the error propagates.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.billing import ledger
from marketplace.billing.plans import get_plan
from marketplace.config import settings
from marketplace.errors import (
    AgencyInactiveError,
    AgencyQuotaExceededError,
    ConflictError,
    DependencyFailure,
    NotFoundError,
    QuotaExceededError,
    SubscriptionInactiveError,
    SubscriptionRequiredError,
    ValidationError,
)
from marketplace.listings import state_machine, visibility
from marketplace.listings.policies import (
    LedgerCharge,
    check_feature_eligibility,
    ensure_can_modify,
    resolve_create,
)
from marketplace.models.agent import Agent
from marketplace.models.property import Property
from marketplace.models.subscription import ListingSlot, Subscription
from marketplace.models.user import User
from marketplace.schemas.property import PropertyCreate, PropertyPublic, PropertyUpdate
from marketplace.services import notifications
from marketplace.services.media import delete_quietly
from marketplace.services.notifications import Notifier

logger = logging.getLogger(__name__)

_NOT_NULL_FIELDS = (
    "title",
    "description",
    "city",
    "country",
    "price",
    "currency",
    "category",
    "property_type",
    "size",
    "bedrooms",
    "bathrooms",
    "amenities",
    "is_featured",
    "is_premium",
    "is_gold_card",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Compensation:
    """Undo steps for a multi-step write, run newest-first on failure."""

    def __init__(self) -> None:
        self._steps: list[tuple[str, Callable[[], Awaitable[object]]]] = []

    def add(self, description: str, step: Callable[[], Awaitable[object]]) -> None:
        self._steps.append((description, step))

    async def run(self, cause: BaseException) -> None:
        if isinstance(cause, SQLAlchemyError):
            # The request transaction is rolled back as a whole
            logger.error("Listing write failed in the database, rolling back %d reservation(s)", len(self._steps))
            return

        for description, step in reversed(self._steps):
            try:
                await step()
            except Exception:
                logger.critical(
                    "Compensation step '%s' failed after %s; ledger needs reconciliation",
                    description,
                    type(cause).__name__,
                    exc_info=True,
                )


def normalise_images(images: list[dict]) -> list[dict]:
    """Exactly one main image when any exist: the first flagged one, else the first."""
    images = [dict(image) for image in images]
    main_index = next((i for i, image in enumerate(images) if image.get("is_main")), 0)
    for i, image in enumerate(images):
        image["is_main"] = i == main_index
    return images


async def get_property_or_404(db: AsyncSession, property_id: uuid.UUID) -> Property:
    prop = await db.get(Property, property_id)
    if prop is None:
        raise NotFoundError("Property", property_id)
    return prop


async def _agent_user_ids(db: AsyncSession, agent_ids: set[uuid.UUID]) -> dict[uuid.UUID, uuid.UUID]:
    if not agent_ids:
        return {}
    result = await db.execute(select(Agent.id, Agent.user_id).where(Agent.id.in_(agent_ids)))
    return {agent_id: user_id for agent_id, user_id in result.all()}


async def project(db: AsyncSession, prop: Property, user: User | None) -> PropertyPublic:
    """Redact one listing for ``user``."""
    agent_users = await _agent_user_ids(db, {prop.agent_id} if prop.agent_id else set())
    viewer = visibility.viewer_for(user, prop, agent_users.get(prop.agent_id))
    return visibility.redact(prop, viewer)


async def _charge(db: AsyncSession, charge: LedgerCharge) -> ListingSlot | None:
    try:
        return await ledger.reserve_slot(db, charge.subscription.id)
    except QuotaExceededError as exc:
        if not charge.blocking:
            logger.info("Personal ledger %s full, not charged", charge.subscription.id)
            return None
        if charge.scope == "agency":
            raise AgencyQuotaExceededError(exc.limit) from exc
        raise
    except SubscriptionInactiveError:
        if not charge.blocking:
            logger.info("Personal ledger %s inactive, not charged", charge.subscription.id)
            return None
        if charge.scope == "agency":
            raise AgencyInactiveError() from None
        raise


def _uses_featured_slots(subscription: Subscription | None) -> bool:
    return subscription is not None and get_plan(subscription.plan).reserves_featured_slots


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def create_property(
    db: AsyncSession,
    actor: User,
    payload: PropertyCreate,
    notifier: Notifier,
) -> Property:
    """Create a listing in ``pending``, charging the resolved ledgers."""
    ctx = await resolve_create(
        db,
        actor,
        requested_agent_id=payload.agent_id,
        is_featured=payload.is_featured,
        is_premium=payload.is_premium,
    )
    if payload.status and payload.status != state_machine.PENDING:
        logger.info("Ignoring requested status %r on create by %s", payload.status, actor.id)

    undo = Compensation()
    slots: list[ListingSlot] = []
    try:
        for charge in ctx.charges:
            slot = await _charge(db, charge)
            if slot is not None:
                slots.append(slot)
                undo.add(f"release slot {slot.id}", lambda slot_id=slot.id: ledger.release_reservation(db, slot_id))

        if payload.is_gold_card:
            await ledger.consume_gold_card(db, actor.id)
            undo.add("return gold card", lambda: ledger.return_gold_card(db, actor.id))

        contact = payload.contact_details
        prop = Property(
            owner_id=actor.id,
            agent_id=ctx.agent.id if ctx.agent else None,
            agency_id=ctx.agency.id if ctx.agency else None,
            subscription_id=ctx.primary_ledger.id if ctx.primary_ledger else None,
            title=payload.title,
            description=payload.description,
            street=payload.street,
            city=payload.city,
            region=payload.region,
            country=payload.country,
            latitude=payload.latitude,
            longitude=payload.longitude,
            price=payload.price,
            currency=payload.currency,
            category=payload.category,
            property_type=payload.property_type,
            size=payload.size,
            bedrooms=payload.bedrooms,
            bathrooms=payload.bathrooms,
            amenities=payload.amenities,
            images=normalise_images([image.model_dump() for image in payload.images]),
            status=state_machine.initial_status(),
            expires_at=payload.expires_at,
            is_featured=payload.is_featured,
            is_premium=payload.is_premium,
            is_gold_card=payload.is_gold_card,
            contact_phone=contact.phone,
            contact_email=contact.email,
            contact_is_restricted=contact.is_restricted,
        )
        db.add(prop)
        await db.flush()
        undo.add(f"delete property {prop.id}", lambda: _discard(db, prop))

        if payload.is_featured and _uses_featured_slots(ctx.primary_ledger):
            await ledger.reserve_featured_slot(db, ctx.primary_ledger.id, prop.id)
            undo.add(
                "release featured slot",
                lambda: ledger.release_featured_slot(db, ctx.primary_ledger.id, prop.id),
            )

        for slot in slots:
            await ledger.commit_slot(db, slot, prop.id)
    except Exception as exc:
        await undo.run(exc)
        raise

    await db.refresh(prop)
    logger.info(
        "Property %s created by %s (%s) on %d ledger(s)",
        prop.id,
        actor.id,
        actor.role,
        len(slots),
    )
    await notifier.emit_to_admins(
        db,
        notifications.PROPERTY_PENDING_REVIEW,
        f"New property pending review: {prop.title}",
    )
    return prop


async def _discard(db: AsyncSession, prop: Property) -> None:
    await db.delete(prop)
    await db.flush()


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


async def update_property(
    db: AsyncSession,
    actor: User,
    property_id: uuid.UUID,
    patch: PropertyUpdate,
    notifier: Notifier,
) -> Property:
    """Apply a partial update, routing ``status`` through the state machine."""
    prop = await get_property_or_404(db, property_id)
    ensure_can_modify(actor, prop, "update")

    fields = patch.model_dump(exclude_unset=True)

    change = None
    requested_status = fields.pop("status", None)
    if requested_status is not None:
        if actor.is_admin:
            change = state_machine.admin_transition(prop.status, requested_status)
        else:
            change = state_machine.owner_transition(prop.status, requested_status)

    turning_featured_on = fields.get("is_featured") is True and not prop.is_featured
    turning_featured_off = fields.get("is_featured") is False and prop.is_featured
    turning_premium_on = fields.get("is_premium") is True and not prop.is_premium
    turning_gold_on = fields.get("is_gold_card") is True and not prop.is_gold_card
    turning_gold_off = fields.get("is_gold_card") is False and prop.is_gold_card

    subscription = await db.get(Subscription, prop.subscription_id) if prop.subscription_id else None
    if (turning_featured_on or turning_premium_on) and not actor.is_admin:
        if subscription is None:
            raise SubscriptionRequiredError()
        check_feature_eligibility(subscription, is_featured=turning_featured_on, is_premium=turning_premium_on)

    if turning_featured_on:
        status_after = change.status if change is not None else prop.status
        if status_after not in state_machine.FEATURABLE_STATUSES:
            raise ConflictError(f"A {status_after} listing cannot be featured")

    # Coordinates are a pair once merged with what the listing already has
    latitude = fields.get("latitude", prop.latitude)
    longitude = fields.get("longitude", prop.longitude)
    if (latitude is None) != (longitude is None):
        raise ValidationError("latitude and longitude must be provided together", field="latitude")

    undo = Compensation()
    try:
        if turning_gold_on:
            await ledger.consume_gold_card(db, prop.owner_id)
            undo.add("return gold card", lambda: ledger.return_gold_card(db, prop.owner_id))

        if turning_featured_on and _uses_featured_slots(subscription):
            await ledger.reserve_featured_slot(db, subscription.id, prop.id)
            undo.add("release featured slot", lambda: ledger.release_featured_slot(db, subscription.id, prop.id))
    except Exception as exc:
        await undo.run(exc)
        raise

    if turning_featured_off:
        await ledger.release_property_featured_slot(db, prop.id)
    if turning_gold_off:
        await ledger.return_gold_card(db, prop.owner_id)

    contact = fields.pop("contact_details", None)
    if contact is not None:
        prop.contact_phone = contact.get("phone")
        prop.contact_email = contact.get("email")
        prop.contact_is_restricted = contact.get("is_restricted", False)

    images = fields.pop("images", None)
    if images is not None:
        prop.images = normalise_images(images)

    for key, value in fields.items():
        if value is None and key in _NOT_NULL_FIELDS:
            raise ValidationError(f"{key} cannot be null", field=key)
        setattr(prop, key, value)

    if change is not None and change.changed:
        prop.status = change.status
        if change.status == state_machine.APPROVED:
            prop.rejection_reason = None
        logger.info("Property %s: %s -> %s (%s)", prop.id, change.previous, change.status, change.transition.value)

    await db.flush()
    await db.refresh(prop)

    if change is not None and change.needs_review:
        await notifier.emit_to_admins(
            db,
            notifications.PROPERTY_PENDING_REVIEW,
            f"New property pending review: {prop.title}",
        )
    return prop


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


async def delete_property(db: AsyncSession, actor: User, property_id: uuid.UUID, media_store=None) -> None:
    """Delete a listing and give back everything it held."""
    prop = await get_property_or_404(db, property_id)
    ensure_can_modify(actor, prop, "delete")

    public_ids = [image["public_id"] for image in prop.images or [] if image.get("public_id")]
    if public_ids:
        if media_store is None:
            logger.warning("Media store not configured; %d image(s) of %s left in place", len(public_ids), prop.id)
        else:
            await delete_quietly(media_store, public_ids)

    released = await ledger.release_property_slots(db, prop.id)
    await ledger.release_property_featured_slot(db, prop.id)
    if prop.is_gold_card:
        await ledger.return_gold_card(db, prop.owner_id)

    await db.delete(prop)
    await db.flush()
    logger.info("Property %s deleted by %s, %d slot(s) released", property_id, actor.id, released)


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


async def approve_property(db: AsyncSession, property_id: uuid.UUID, notifier: Notifier) -> Property:
    prop = await get_property_or_404(db, property_id)
    change = state_machine.approve(prop.status)
    prop.status = change.status
    prop.rejection_reason = None
    await db.flush()
    await db.refresh(prop)

    logger.info("Property %s approved (was %s)", prop.id, change.previous)
    notifier.emit(prop.owner_id, notifications.PROPERTY_APPROVED, f"Your property '{prop.title}' has been approved")
    await notifier.emit_to_admins(db, notifications.PROPERTY_APPROVED, f"Property approved: {prop.title}")
    return prop


async def reject_property(db: AsyncSession, property_id: uuid.UUID, reason: str, notifier: Notifier) -> Property:
    prop = await get_property_or_404(db, property_id)
    change = state_machine.reject(prop.status, reason)
    prop.status = change.status
    prop.rejection_reason = reason.strip()
    await db.flush()
    await db.refresh(prop)

    logger.info("Property %s rejected (was %s)", prop.id, change.previous)
    notifier.emit(
        prop.owner_id,
        notifications.PROPERTY_REJECTED,
        f"Your property '{prop.title}' has been rejected: {prop.rejection_reason}",
    )
    return prop


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


async def add_images(
    db: AsyncSession,
    actor: User,
    property_id: uuid.UUID,
    files: list[tuple[str, bytes, str | None]],
    media_store,
) -> Property:
    """Upload ``(filename, content, content_type)`` files and append them to the listing."""
    prop = await get_property_or_404(db, property_id)
    ensure_can_modify(actor, prop, "update")

    if not files:
        raise ValidationError("Please upload at least one file", field="files")
    existing = list(prop.images or [])
    if len(existing) + len(files) > settings.max_images_per_property:
        raise ValidationError(
            f"A property can have at most {settings.max_images_per_property} images",
            field="files",
        )
    if media_store is None:
        raise DependencyFailure("Media storage is not configured")

    uploaded = []
    try:
        for filename, content, content_type in files:
            stored = await media_store.upload(content, filename, content_type)
            uploaded.append(stored)
    except DependencyFailure:
        await delete_quietly(media_store, [stored.public_id for stored in uploaded])
        raise

    existing.extend(
        {"url": stored.url, "public_id": stored.public_id, "caption": None, "is_main": False}
        for stored in uploaded
    )
    prop.images = normalise_images(existing)
    await db.flush()
    await db.refresh(prop)
    return prop


async def remove_image(
    db: AsyncSession,
    actor: User,
    property_id: uuid.UUID,
    public_id: str,
    media_store,
) -> Property:
    prop = await get_property_or_404(db, property_id)
    ensure_can_modify(actor, prop, "update")

    images = list(prop.images or [])
    remaining = [image for image in images if image.get("public_id") != public_id]
    if len(remaining) == len(images):
        raise NotFoundError("Image", public_id)

    if media_store is not None:
        await delete_quietly(media_store, [public_id])
    prop.images = normalise_images(remaining)
    await db.flush()
    await db.refresh(prop)
    return prop


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_visible_property(db: AsyncSession, user: User | None, property_id: uuid.UUID) -> PropertyPublic:
    prop = await get_property_or_404(db, property_id)
    agent_users = await _agent_user_ids(db, {prop.agent_id} if prop.agent_id else set())
    viewer = visibility.viewer_for(user, prop, agent_users.get(prop.agent_id))
    visibility.ensure_visible(prop, viewer)
    return visibility.redact(prop, viewer)


async def list_visible_properties(
    db: AsyncSession,
    user: User | None,
    *,
    category: str | None = None,
    property_type: str | None = None,
    city: str | None = None,
    min_price=None,
    max_price=None,
    is_featured: bool | None = None,
    status: str | None = None,
    owner_id: uuid.UUID | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[PropertyPublic], int]:
    """Listings ``user`` may see, premium first, then newest."""
    filters = []
    visible = visibility.visibility_filter(user)
    if visible is not None:
        filters.append(visible)
    if category is not None:
        filters.append(Property.category == category)
    if property_type is not None:
        filters.append(Property.property_type == property_type)
    if city is not None:
        filters.append(func.lower(Property.city) == city.lower())
    if min_price is not None:
        filters.append(Property.price >= min_price)
    if max_price is not None:
        filters.append(Property.price <= max_price)
    if is_featured is not None:
        filters.append(Property.is_featured.is_(is_featured))
    if status is not None:
        filters.append(Property.status == status)
    if owner_id is not None:
        filters.append(Property.owner_id == owner_id)

    total = (await db.execute(select(func.count()).select_from(Property).where(*filters))).scalar_one()
    result = await db.execute(
        select(Property)
        .where(*filters)
        .order_by(Property.is_premium.desc(), Property.created_at.desc(), Property.id)
        .offset(skip)
        .limit(limit)
    )
    props = list(result.scalars().all())

    agent_users = await _agent_user_ids(db, {p.agent_id for p in props if p.agent_id})
    items = [
        visibility.redact(p, visibility.viewer_for(user, p, agent_users.get(p.agent_id)))
        for p in props
    ]
    return items, total
