"""
Géocode les établissements approuvés sans coordonnées.

    python scripts/fix_coordinates.py [--dry-run]
"""
import argparse
import asyncio
import logging

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from envie2sortir.db.session import AsyncSessionLocal, engine
import envie2sortir.db.base  # noqa: F401
from envie2sortir.establishments.models import Establishment, STATUS_APPROVED
from envie2sortir.geo.services import geocode_with_retry

logger = logging.getLogger("fix_coordinates")


def full_address(establishment: Establishment) -> str:
    parts = [establishment.address, establishment.postal_code, establishment.city]
    return ", ".join(part for part in parts if part)


async def fix_coordinates(db: AsyncSession, dry_run: bool = False) -> dict:
    result = await db.execute(
        select(Establishment).where(
            Establishment.status == STATUS_APPROVED,
            or_(Establishment.latitude.is_(None), Establishment.longitude.is_(None)),
        )
    )
    establishments = result.scalars().all()
    stats = {"checked": len(establishments), "fixed": 0, "failed": 0}

    for establishment in establishments:
        address = full_address(establishment)
        coordinates = await run_in_threadpool(geocode_with_retry, address)
        if not coordinates:
            stats["failed"] += 1
            logger.warning(f"❌ {establishment.name} : adresse introuvable ({address})")
            continue

        latitude, longitude = coordinates
        logger.info(f"✅ {establishment.name} : {latitude}, {longitude}")
        if not dry_run:
            establishment.latitude = latitude
            establishment.longitude = longitude
        stats["fixed"] += 1

    if dry_run:
        await db.rollback()
    else:
        await db.commit()
    return stats


async def main(dry_run: bool):
    async with AsyncSessionLocal() as db:
        stats = await fix_coordinates(db, dry_run=dry_run)
    await engine.dispose()
    mode = " (simulation)" if dry_run else ""
    logger.info(f"📍 {stats['fixed']}/{stats['checked']} établissement(s) géocodé(s){mode}, {stats['failed']} échec(s)")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--dry-run", action="store_true", help="N'enregistre rien en base")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main(args.dry_run))
