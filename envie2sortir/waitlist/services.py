import logging
import math
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from envie2sortir.auth.password import hash_password
from envie2sortir.config import settings
from envie2sortir.establishments.models import Establishment, STATUS_PENDING
from envie2sortir.establishments.services import unique_slug
from envie2sortir.professionals.models import Professional, SubscriptionLog, SUBSCRIPTION_WAITLIST_BETA
from envie2sortir.professionals.services import email_exists, siret_exists
from envie2sortir.waitlist.schemas import WaitlistJoinRequest

logger = logging.getLogger(__name__)


class WaitlistError(Exception):
    pass


def is_launch_active(now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    return now >= settings.LAUNCH_DATE


def days_until_launch(now: Optional[datetime] = None) -> int:
    now = now or datetime.utcnow()
    remaining = (settings.LAUNCH_DATE - now).total_seconds()
    return max(0, math.ceil(remaining / 86400))


def format_time_until_launch(now: Optional[datetime] = None) -> str:
    days = days_until_launch(now)
    if days == 0:
        return "Le lancement est imminent !"
    if days == 1:
        return "Plus qu'un jour avant le lancement !"
    return f"Plus que {days} jours avant le lancement !"


async def join_waitlist(db: AsyncSession, data: WaitlistJoinRequest) -> Professional:
    if is_launch_active():
        raise WaitlistError("Le lancement a déjà eu lieu, inscrivez-vous directement")

    email = data.email.lower()
    if await email_exists(db, email):
        raise WaitlistError("Cet email est déjà utilisé")
    if await siret_exists(db, data.siret):
        raise WaitlistError("Ce SIRET est déjà enregistré")

    try:
        professional = Professional(
            siret=data.siret,
            first_name=data.first_name,
            last_name=data.last_name,
            email=email,
            phone=data.phone,
            company_name=data.company_name,
            legal_status=data.legal_status,
            subscription_plan=SUBSCRIPTION_WAITLIST_BETA,
            password_hash=hash_password(data.password),
            siret_verified=False,
        )
        db.add(professional)
        await db.flush()

        db.add(Establishment(
            name=data.establishment_name,
            slug=await unique_slug(db, data.establishment_name),
            description=f"Établissement en attente de lancement - {data.establishment_name}",
            address="",
            owner_id=professional.id,
            status=STATUS_PENDING,
            subscription=SUBSCRIPTION_WAITLIST_BETA,
        ))
        db.add(SubscriptionLog(
            professional_id=professional.id,
            old_status=None,
            new_status=SUBSCRIPTION_WAITLIST_BETA,
            reason="waitlist_join",
        ))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"✅ [Waitlist] Professionnel {professional.id} inscrit ({email})")
    return professional
