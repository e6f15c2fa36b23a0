"""
Régénère les tags (etablissement_tags) à partir des activités et des envies.

    python scripts/seed_tags.py [--establishment ID]
"""
import argparse
import asyncio
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from envie2sortir.db.session import AsyncSessionLocal, engine
import envie2sortir.db.base  # noqa: F401
from envie2sortir.enrichment.services import build_establishment_tags
from envie2sortir.establishments.models import Establishment
from envie2sortir.establishments.services import EstablishmentService

logger = logging.getLogger("seed_tags")


async def seed_tags(db: AsyncSession, establishment_id: Optional[int] = None) -> int:
    """Retourne le nombre total de tags écrits."""
    query = select(Establishment).order_by(Establishment.id)
    if establishment_id is not None:
        query = query.where(Establishment.id == establishment_id)
    establishments = (await db.execute(query)).scalars().all()

    service = EstablishmentService(db)
    total = 0
    for establishment in establishments:
        tags = build_establishment_tags(
            activities=establishment.activities,
            envie_tags=establishment.envie_tags,
        )
        await service.replace_tags(establishment, tags)
        total += len(tags)
        logger.info(f"🏷️ {establishment.name} : {len(tags)} tag(s)")

    await db.commit()
    return total


async def main(establishment_id: Optional[int]):
    async with AsyncSessionLocal() as db:
        total = await seed_tags(db, establishment_id)
    await engine.dispose()
    logger.info(f"✅ {total} tag(s) générés")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--establishment", type=int, default=None, help="ID d'un seul établissement")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main(args.establishment))
