"""
Réinitialise le mot de passe d'un compte.

    python scripts/reset_password.py --email x@y.fr --password secret123 --type professional
"""
import argparse
import asyncio
import logging
import sys

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from envie2sortir.auth.models import User
from envie2sortir.auth.password import hash_password
from envie2sortir.auth.schemas import MIN_PASSWORD_LENGTH
from envie2sortir.db.session import AsyncSessionLocal, engine
import envie2sortir.db.base  # noqa: F401
from envie2sortir.professionals.models import Professional

logger = logging.getLogger("reset_password")

ACCOUNT_TYPES = ("user", "professional")


async def reset_password(db: AsyncSession, email: str, new_password: str, account_type: str = "user") -> bool:
    """Retourne False si le compte n'existe pas."""
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères")

    model = Professional if account_type == "professional" else User
    result = await db.execute(select(model).where(model.email == email.lower()))
    account = result.scalars().first()
    if not account:
        return False

    hashed = hash_password(new_password)
    if account_type == "professional":
        account.password_hash = hashed
    else:
        account.hashed_password = hashed
    await db.commit()
    return True


async def main(email: str, new_password: str, account_type: str) -> int:
    async with AsyncSessionLocal() as db:
        found = await reset_password(db, email, new_password, account_type)
    await engine.dispose()
    if not found:
        logger.error(f"❌ Aucun compte {account_type} pour {email}")
        return 1
    logger.info(f"🔑 Mot de passe réinitialisé pour {email} ({account_type})")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--type", dest="account_type", choices=ACCOUNT_TYPES, default="user")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    sys.exit(asyncio.run(main(args.email, args.password, args.account_type)))
