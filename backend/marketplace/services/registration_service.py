"""Registration requests — applications to become an agent, agency or promoter."""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import utcnow
from marketplace.errors import ConflictError, NotFoundError, ValidationError
from marketplace.models.agency import Agency
from marketplace.models.agent import Agent
from marketplace.models.promoter import Promoter
from marketplace.models.registration_request import RegistrationRequest
from marketplace.models.user import User
from marketplace.schemas.registration import RegistrationApprove, RegistrationCreate
from marketplace.services import notifications, subscription_service
from marketplace.services.notifications import Notifier

logger = logging.getLogger(__name__)


async def submit_request(
    db: AsyncSession,
    user: User,
    payload: RegistrationCreate,
    notifier: Notifier,
) -> RegistrationRequest:
    if user.is_admin:
        raise ValidationError("Administrators cannot apply for a role")

    pending = await db.execute(
        select(RegistrationRequest.id).where(
            RegistrationRequest.user_id == user.id,
            RegistrationRequest.status == "pending",
        )
    )
    if pending.first() is not None:
        raise ConflictError("You already have a pending registration request")

    if payload.requested_role in ("agency", "promoter") and not payload.company_name:
        raise ValidationError("company_name is required for agencies and promoters", field="company_name")
    if payload.agency_id is not None:
        if payload.requested_role != "agent":
            raise ValidationError("Only agents can join an agency", field="agency_id")
        if await db.get(Agency, payload.agency_id) is None:
            raise NotFoundError("Agency", payload.agency_id)

    request = RegistrationRequest(user_id=user.id, **payload.model_dump())
    db.add(request)
    await db.flush()
    await db.refresh(request)

    logger.info("User %s applied to become %s", user.id, payload.requested_role)
    await notifier.emit_to_admins(
        db,
        notifications.REGISTRATION_SUBMITTED,
        f"New {payload.requested_role} registration request from {payload.first_name} {payload.last_name}",
    )
    return request


async def list_requests(
    db: AsyncSession,
    status: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[RegistrationRequest], int]:
    filters = [RegistrationRequest.status == status] if status else []
    total = (
        await db.execute(select(func.count()).select_from(RegistrationRequest).where(*filters))
    ).scalar_one()
    result = await db.execute(
        select(RegistrationRequest)
        .where(*filters)
        .order_by(RegistrationRequest.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def _get_pending(db: AsyncSession, request_id: uuid.UUID) -> RegistrationRequest:
    request = await db.get(RegistrationRequest, request_id)
    if request is None:
        raise NotFoundError("Registration request", request_id)
    if request.status != "pending":
        raise ConflictError(f"Registration request has already been {request.status}")
    return request


async def _promote_profile(db: AsyncSession, request: RegistrationRequest) -> None:
    """Create the role profile, or mark an existing one approved."""
    display_name = f"{request.first_name} {request.last_name}"

    if request.requested_role == "agent":
        agent = (await db.execute(select(Agent).where(Agent.user_id == request.user_id))).scalar_one_or_none()
        if agent is None:
            agent = Agent(user_id=request.user_id)
            db.add(agent)
        agent.approval_status = "approved"
        if request.agency_id is not None:
            agent.agency_id = request.agency_id

    elif request.requested_role == "agency":
        agency = (await db.execute(select(Agency).where(Agency.user_id == request.user_id))).scalar_one_or_none()
        if agency is None:
            name = request.company_name or display_name
            taken = await db.execute(select(Agency.id).where(Agency.name == name))
            if taken.first() is not None:
                raise ConflictError(f"An agency named '{name}' already exists")
            agency = Agency(user_id=request.user_id, name=name)
            db.add(agency)
        agency.approval_status = "approved"

    else:
        promoter = (
            await db.execute(select(Promoter).where(Promoter.user_id == request.user_id))
        ).scalar_one_or_none()
        if promoter is None:
            promoter = Promoter(user_id=request.user_id, company_name=request.company_name or display_name)
            db.add(promoter)
        promoter.approval_status = "approved"


async def approve_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    decision: RegistrationApprove,
    notifier: Notifier,
) -> RegistrationRequest:
    """Grant the requested role and, when a plan is given, open or adjust the user's ledger."""
    request = await _get_pending(db, request_id)
    user = await db.get(User, request.user_id)
    if user is None:
        raise NotFoundError("User", request.user_id)

    await _promote_profile(db, request)

    user.role = request.requested_role
    user.approval_status = "approved"
    if decision.gold_cards:
        user.gold_cards = (user.gold_cards or 0) + decision.gold_cards

    if decision.plan is not None:
        limit = decision.resolved_listing_limit()
        existing = await subscription_service.get_subscription_for_user(db, user.id)
        if existing is None:
            await subscription_service.create_subscription(
                db,
                user.id,
                decision.plan,
                expiration_date=decision.expiration_date,
                **limit,
            )
        else:
            await subscription_service.update_subscription(
                db,
                existing.id,
                plan=decision.plan,
                status="active",
                expiration_date=decision.expiration_date,
                **limit,
            )

    request.status = "approved"
    request.rejection_reason = None
    request.reviewed_at = utcnow()
    await db.flush()
    await db.refresh(request)

    logger.info("Approved %s registration for user %s", request.requested_role, user.id)
    notifier.emit(
        user.id,
        notifications.REGISTRATION_APPROVED,
        f"Your {request.requested_role} registration has been approved",
    )
    return request


async def reject_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    reason: str,
    notifier: Notifier,
) -> RegistrationRequest:
    if not reason or not reason.strip():
        raise ValidationError("A rejection reason is required", field="reason")
    request = await _get_pending(db, request_id)

    user = await db.get(User, request.user_id)
    if user is not None and user.role == "individual":
        user.approval_status = "rejected"

    request.status = "rejected"
    request.rejection_reason = reason.strip()
    request.reviewed_at = utcnow()
    await db.flush()
    await db.refresh(request)

    logger.info("Rejected %s registration for user %s", request.requested_role, request.user_id)
    notifier.emit(
        request.user_id,
        notifications.REGISTRATION_REJECTED,
        f"Your {request.requested_role} registration was rejected: {request.rejection_reason}",
    )
    return request
