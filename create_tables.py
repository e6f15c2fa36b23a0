import asyncio
import logging

from envie2sortir.db.session import Base, engine

# IMPORTER TOUS LES MODULES DE MODÈLES pour enregistrer toutes les tables dans metadata
import envie2sortir.db.base  # noqa: F401

logger = logging.getLogger(__name__)


async def create_all():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"✅ {len(Base.metadata.tables)} tables créées")
    await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(create_all())
