"""Authorization policies for listing operations.

Creating a listing runs a chain of small policy objects over a shared
``CreateContext``. Each policy looks at the actor, may attach an agent or
agency to the new listing, and decides which subscription ledgers pay for it.
The orchestrator only sees the finished context.
"""

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.billing.plans import get_plan
from marketplace.database import utcnow
from marketplace.errors import (
    AgencyInactiveError,
    AgencyProfileMissingError,
    AgencyQuotaExceededError,
    AgentProfileMissingError,
    AuthorizationError,
    PlanIneligibleError,
    SubscriptionRequiredError,
    ValidationError,
)
from marketplace.models.agency import Agency
from marketplace.models.agent import Agent
from marketplace.models.property import Property
from marketplace.models.subscription import Subscription
from marketplace.models.user import User

logger = logging.getLogger(__name__)

CREATOR_ROLES = ("individual", "agent", "agency", "promoter", "admin")


@dataclass
class LedgerCharge:
    """One ledger a new listing is charged against.

    ``scope`` is ``"own"`` for the actor's subscription and ``"agency"`` for
    the parent agency's. A charge that is not ``blocking`` is taken when the
    ledger has room and skipped otherwise.
    """

    subscription: Subscription
    scope: str = "own"
    blocking: bool = True


@dataclass
class CreateContext:
    actor: User
    requested_agent_id: uuid.UUID | None = None
    is_featured: bool = False
    is_premium: bool = False
    agent: Agent | None = None
    agency: Agency | None = None
    charges: list[LedgerCharge] = field(default_factory=list)

    @property
    def metered(self) -> bool:
        return not self.actor.is_admin

    @property
    def primary_ledger(self) -> Subscription | None:
        """The ledger that gates plan features and holds any featured slot."""
        for charge in self.charges:
            if charge.blocking:
                return charge.subscription
        return None


def subscription_is_live(subscription: Subscription | None) -> bool:
    if subscription is None or subscription.status != "active":
        return False
    return subscription.expiration_date is None or subscription.expiration_date > utcnow()


async def get_subscription_for_user(db: AsyncSession, user_id: uuid.UUID) -> Subscription | None:
    result = await db.execute(
        select(Subscription).where(Subscription.user_id == user_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_agent_for_user(db: AsyncSession, user_id: uuid.UUID) -> Agent | None:
    result = await db.execute(select(Agent).where(Agent.user_id == user_id))
    return result.scalar_one_or_none()


async def get_agency_for_user(db: AsyncSession, user_id: uuid.UUID) -> Agency | None:
    result = await db.execute(select(Agency).where(Agency.user_id == user_id))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Create chain
# ---------------------------------------------------------------------------


class CreatorRolePolicy:
    async def apply(self, db: AsyncSession, ctx: CreateContext) -> None:
        if ctx.actor.role not in CREATOR_ROLES:
            raise AuthorizationError(f"User role '{ctx.actor.role}' is not authorized to create properties")


class AgentPolicy:
    """Agents list under their profile; a linked agency's ledger must have room."""

    async def apply(self, db: AsyncSession, ctx: CreateContext) -> None:
        if ctx.actor.role != "agent":
            return

        agent = await get_agent_for_user(db, ctx.actor.id)
        if agent is None:
            raise AgentProfileMissingError()
        ctx.agent = agent

        if agent.agency_id is None:
            return

        agency = await db.get(Agency, agent.agency_id)
        ctx.agency = agency
        agency_ledger = await get_subscription_for_user(db, agency.user_id) if agency else None
        if not subscription_is_live(agency_ledger):
            raise AgencyInactiveError()
        if agency_ledger.listing_limit is not None and agency_ledger.listings_used >= agency_ledger.listing_limit:
            raise AgencyQuotaExceededError(agency_ledger.listing_limit)

        ctx.charges.append(LedgerCharge(agency_ledger, scope="agency"))

        # Only the agency's quota blocks; the personal ledger just keeps count
        own = await get_subscription_for_user(db, ctx.actor.id)
        if own is not None:
            ctx.charges.append(LedgerCharge(own, scope="own", blocking=False))


class AgencyPolicy:
    """Agencies list under their profile and hand the listing to one of their agents."""

    async def apply(self, db: AsyncSession, ctx: CreateContext) -> None:
        if ctx.actor.role != "agency":
            return

        agency = await get_agency_for_user(db, ctx.actor.id)
        if agency is None:
            raise AgencyProfileMissingError()
        ctx.agency = agency

        if ctx.requested_agent_id is not None:
            agent = await db.get(Agent, ctx.requested_agent_id)
            if agent is None or agent.agency_id != agency.id:
                raise ValidationError("Agent does not belong to this agency", field="agent_id")
            ctx.agent = agent
            return

        result = await db.execute(
            select(Agent)
            .where(Agent.agency_id == agency.id, Agent.approval_status == "approved")
            .order_by(Agent.created_at, Agent.id)
            .limit(1)
        )
        ctx.agent = result.scalar_one_or_none()


class PromoterAgentShim:
    """Promoters that also hold an agent profile list through it.

    Kept for accounts created before promoters became a separate role. The
    agency is attached for display only and never charged.
    """

    async def apply(self, db: AsyncSession, ctx: CreateContext) -> None:
        if ctx.actor.role != "promoter":
            return

        agent = await get_agent_for_user(db, ctx.actor.id)
        if agent is None:
            return
        ctx.agent = agent
        if agent.agency_id is not None:
            ctx.agency = await db.get(Agency, agent.agency_id)
        logger.info("Promoter %s listing through legacy agent profile %s", ctx.actor.id, agent.id)


class OwnLedgerPolicy:
    """Everyone not already charged to an agency pays from their own subscription."""

    async def apply(self, db: AsyncSession, ctx: CreateContext) -> None:
        if not ctx.metered or ctx.primary_ledger is not None:
            return

        own = await get_subscription_for_user(db, ctx.actor.id)
        if own is None:
            raise SubscriptionRequiredError()
        ctx.charges.insert(0, LedgerCharge(own, scope="own"))


class FeatureEligibilityPolicy:
    async def apply(self, db: AsyncSession, ctx: CreateContext) -> None:
        if not ctx.metered:
            return
        check_feature_eligibility(ctx.primary_ledger, is_featured=ctx.is_featured, is_premium=ctx.is_premium)


def check_feature_eligibility(
    subscription: Subscription | None,
    *,
    is_featured: bool = False,
    is_premium: bool = False,
) -> None:
    """Reject featured/premium flags the ledger's plan does not include."""
    if not (is_featured or is_premium):
        return
    if subscription is None:
        raise SubscriptionRequiredError()

    plan = get_plan(subscription.plan)
    if is_featured and not plan.allows_featured:
        raise PlanIneligibleError(
            f"Featured listings require an Elite or Platinum plan (current: {plan.display_name})"
        )
    if is_premium and not plan.allows_premium:
        raise PlanIneligibleError(f"Premium listings are not available on the {plan.display_name} plan")


CREATE_POLICIES = (
    CreatorRolePolicy(),
    AgentPolicy(),
    AgencyPolicy(),
    PromoterAgentShim(),
    OwnLedgerPolicy(),
    FeatureEligibilityPolicy(),
)


async def resolve_create(
    db: AsyncSession,
    actor: User,
    *,
    requested_agent_id: uuid.UUID | None = None,
    is_featured: bool = False,
    is_premium: bool = False,
    policies=CREATE_POLICIES,
) -> CreateContext:
    """Run the create chain. Raises on the first policy that denies."""
    ctx = CreateContext(
        actor=actor,
        requested_agent_id=requested_agent_id,
        is_featured=is_featured,
        is_premium=is_premium,
    )
    for policy in policies:
        await policy.apply(db, ctx)
    return ctx


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------


def can_modify(actor: User, prop: Property) -> bool:
    return actor.is_admin or prop.owner_id == actor.id


def ensure_can_modify(actor: User, prop: Property, action: str = "update") -> None:
    if not can_modify(actor, prop):
        raise AuthorizationError(f"User {actor.id} is not authorized to {action} this property")
