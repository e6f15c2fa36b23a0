"""
Liste les emails présents à la fois dans users et professionals.

    python scripts/check_duplicate_accounts.py
"""
import asyncio
import logging
from typing import List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from envie2sortir.auth.models import User
from envie2sortir.db.session import AsyncSessionLocal, engine
import envie2sortir.db.base  # noqa: F401
from envie2sortir.professionals.models import Professional

logger = logging.getLogger("check_duplicate_accounts")


async def find_duplicate_accounts(db: AsyncSession) -> List[dict]:
    result = await db.execute(
        select(User, Professional)
        .join(Professional, func.lower(Professional.email) == func.lower(User.email))
        .order_by(User.email)
    )
    return [
        {
            "email": user.email,
            "user_id": user.id,
            "user_role": user.role,
            "has_user_password": bool(user.hashed_password),
            "professional_id": professional.id,
            "siret": professional.siret,
        }
        for user, professional in result.all()
    ]


async def main():
    async with AsyncSessionLocal() as db:
        duplicates = await find_duplicate_accounts(db)
    await engine.dispose()

    if not duplicates:
        logger.info("✅ Aucun doublon entre utilisateurs et professionnels")
        return
    logger.warning(f"⚠️ {len(duplicates)} email(s) en double :")
    for item in duplicates:
        logger.warning(
            f"  {item['email']} → user #{item['user_id']} ({item['user_role']}), "
            f"pro #{item['professional_id']} (SIRET {item['siret']})"
        )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
