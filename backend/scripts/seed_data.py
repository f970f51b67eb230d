"""Seed the database with a demo admin, an agency with one agent, and an individual seller.

Listings are created through the listing service, so each one is charged
against its ledger exactly as an API request would be, and then approved.

Run inside Docker:
    docker compose exec backend python -m scripts.seed_data
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from marketplace.auth.security import hash_password
from marketplace.database import async_session_factory
from marketplace.models.agency import Agency
from marketplace.models.agent import Agent
from marketplace.models.user import User
from marketplace.schemas.property import PropertyCreate
from marketplace.services import listing_service, subscription_service
from marketplace.services.notifications import Notifier

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

DEMO_PASSWORD = "demo1234"

USERS = {
    "admin": {"email": "admin@estate.demo", "name": "Site Admin", "role": "admin"},
    "agency": {"email": "agency@estate.demo", "name": "Coastal Homes", "role": "agency"},
    "agent": {"email": "agent@estate.demo", "name": "Maya Ramdin", "role": "agent"},
    "seller": {"email": "seller@estate.demo", "name": "Olivier Lenoir", "role": "individual"},
}

LISTINGS = {
    "agent": [
        {
            "title": "Beachfront villa in Grand Baie",
            "description": "Four-bedroom villa with private pool, direct beach access and a staff cottage.",
            "city": "Grand Baie",
            "price": Decimal("1250000.00"),
            "currency": "USD",
            "category": "for-sale",
            "property_type": "Villa",
            "size": Decimal("420"),
            "bedrooms": 4,
            "bathrooms": 4,
            "amenities": ["pool", "garden", "sea_view", "parking"],
            "contact_details": {"phone": "+230 5555 0101", "email": "agent@estate.demo", "is_restricted": True},
        },
        {
            "title": "Two-bedroom apartment, Tamarin",
            "description": "Top-floor apartment with mountain views in a secure residence.",
            "city": "Tamarin",
            "price": Decimal("45000.00"),
            "currency": "MUR",
            "category": "for-rent",
            "property_type": "Apartment",
            "size": Decimal("95"),
            "bedrooms": 2,
            "bathrooms": 2,
            "amenities": ["air_conditioning", "parking"],
            "is_premium": True,
        },
    ],
    "seller": [
        {
            "title": "Residential plot near Moka",
            "description": "Flat 1,200 m2 plot with road access, water and electricity connections.",
            "city": "Moka",
            "price": Decimal("6500000.00"),
            "currency": "MUR",
            "category": "land",
            "property_type": "Land",
            "size": Decimal("1200"),
            "contact_details": {"phone": "+230 5555 0202", "is_restricted": False},
        },
    ],
}


class _PrintSink:
    async def notify(self, user_id, type, message) -> None:
        print(f"   🔔 {type}: {message}")


# ---------------------------------------------------------------------------
# Main seed function
# ---------------------------------------------------------------------------


async def seed() -> None:
    """Populate the database with demo accounts, ledgers and listings.

    Idempotent: existing demo users are deleted (their listings, profiles and
    ledgers cascade) before re-seeding.
    """
    notifier = Notifier(_PrintSink())

    async with async_session_factory() as session:
        emails = [u["email"] for u in USERS.values()]
        existing = await session.execute(select(User.id).where(User.email.in_(emails)))
        existing_ids = list(existing.scalars().all())
        if existing_ids:
            print(f"⚠️  {len(existing_ids)} demo user(s) already exist. Deleting and re-seeding...")
            await session.execute(delete(User).where(User.id.in_(existing_ids)))
            await session.flush()

        # ------------------------------------------------------------------
        # 1. Users
        # ------------------------------------------------------------------
        users: dict[str, User] = {}
        for key, data in USERS.items():
            user = User(
                email=data["email"],
                hashed_password=hash_password(DEMO_PASSWORD),
                name=data["name"],
                role=data["role"],
                approval_status="approved",
                gold_cards=1 if key == "agent" else 0,
            )
            session.add(user)
            users[key] = user
        await session.flush()

        # ------------------------------------------------------------------
        # 2. Agency and agent profiles
        # ------------------------------------------------------------------
        agency = Agency(user_id=users["agency"].id, name=USERS["agency"]["name"], approval_status="approved")
        session.add(agency)
        await session.flush()
        session.add(Agent(user_id=users["agent"].id, agency_id=agency.id, approval_status="approved"))
        await session.flush()

        # ------------------------------------------------------------------
        # 3. Subscriptions
        # ------------------------------------------------------------------
        await subscription_service.create_subscription(session, users["agency"].id, "platinum", listing_limit=20)
        await subscription_service.create_subscription(session, users["agent"].id, "elite")
        await subscription_service.create_subscription(session, users["seller"].id, "basic")
        print("✅ Created 3 subscriptions (platinum agency, elite agent, basic seller)")

        # ------------------------------------------------------------------
        # 4. Listings, charged and approved
        # ------------------------------------------------------------------
        count = 0
        for key, listings in LISTINGS.items():
            for data in listings:
                prop = await listing_service.create_property(session, users[key], PropertyCreate(**data), notifier)
                await listing_service.approve_property(session, prop.id, notifier)
                count += 1
                print(f"   🏠 {prop.title} — {prop.city} ({prop.currency} {prop.price})")

        await session.commit()

    await notifier.dispatch()

    print()
    print("=" * 60)
    print("📊 Seed Summary")
    print("=" * 60)
    for data in USERS.values():
        print(f"   {data['role']:<11} {data['email']} / {DEMO_PASSWORD}")
    print(f"   Listings:   {count} (approved)")
    print("=" * 60)
    print("🎉 Done! You can now log in at /api/v1/auth/login")


if __name__ == "__main__":
    asyncio.run(seed())
