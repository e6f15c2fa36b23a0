import csv
import io
import logging
from datetime import datetime
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from envie2sortir.auth.models import User
from envie2sortir.utils.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

# 3 tentatives par minute et par IP
subscribe_limiter = RateLimiter(max_requests=3, window_seconds=60)


class SubscriberNotFoundError(Exception):
    pass


class SubscriptionConflictError(Exception):
    pass


async def _find_user(db: AsyncSession, email: str):
    result = await db.execute(select(User).where(User.email == email))
    return result.scalars().first()


async def subscribe(db: AsyncSession, email: str, client_ip: str) -> str:
    """Inscrit l'email (ou réactive le compte existant). Retourne le message à afficher."""
    user = await _find_user(db, email)
    if user:
        if user.newsletter_opt_in:
            raise SubscriptionConflictError("Cette adresse email est déjà inscrite à notre newsletter.")
        user.newsletter_opt_in = True
        await db.commit()
        logger.info(f"📰 Newsletter réactivée pour l'utilisateur {user.id}")
        return "Votre inscription à la newsletter a été réactivée !"

    user = User(
        email=email,
        newsletter_opt_in=True,
        is_verified=False,
        role="user",
        first_name=email.split("@")[0],
        preferences={
            "newsletterConsent": True,
            "consentDate": datetime.utcnow().isoformat(),
            "ipAddress": client_ip,
        },
    )
    db.add(user)
    await db.commit()
    logger.info(f"📰 Nouvel abonné newsletter : user {user.id}")
    return "Inscription réussie ! Vérifiez votre boîte email pour confirmer votre inscription."


async def unsubscribe(db: AsyncSession, email: str):
    user = await _find_user(db, email)
    if not user:
        raise SubscriberNotFoundError("Adresse email non trouvée dans notre base de données")
    if not user.newsletter_opt_in:
        raise SubscriptionConflictError("Vous êtes déjà désabonné de notre newsletter")
    user.newsletter_opt_in = False
    await db.commit()
    logger.info(f"📭 Désinscription newsletter : user {user.id}")


async def list_subscribers(db: AsyncSession) -> List[User]:
    result = await db.execute(
        select(User).where(User.newsletter_opt_in.is_(True)).order_by(User.created_at.desc())
    )
    return result.scalars().all()


def subscribers_to_csv(subscribers: List[User]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["email", "prenom", "nom", "verifie", "inscrit_le"])
    for user in subscribers:
        writer.writerow([
            user.email,
            user.first_name or "",
            user.last_name or "",
            "oui" if user.is_verified else "non",
            user.created_at.strftime("%Y-%m-%d %H:%M") if user.created_at else "",
        ])
    return buffer.getvalue()
