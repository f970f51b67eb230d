"""Expire overdue subscriptions and listings, then reconcile ledger counters.

Meant to run on a schedule (cron, or a one-off container):
    docker compose exec backend python -m scripts.reconcile_ledgers
    docker compose exec backend python -m scripts.reconcile_ledgers --grace-minutes 5
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from marketplace.database import async_session_factory, engine
from marketplace.services import maintenance

logger = logging.getLogger("scripts.reconcile_ledgers")


async def run(grace_minutes: int | None) -> maintenance.ReconcileReport:
    async with async_session_factory() as session:
        try:
            await maintenance.expire_subscriptions(session)
            await maintenance.expire_listings(session)
            report = await maintenance.reconcile_ledgers(session, grace_minutes)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    await engine.dispose()
    return report


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--grace-minutes",
        type=int,
        default=None,
        help="Release reservations older than this (default: SLOT_RESERVATION_GRACE_MINUTES)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    report = asyncio.run(run(args.grace_minutes))
    logger.info(
        "stale=%d orphaned=%d corrected=%s",
        report.stale_reservations_released,
        report.orphaned_slots_released,
        report.ledgers_corrected or "none",
    )


if __name__ == "__main__":
    main()
