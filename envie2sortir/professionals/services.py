import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from envie2sortir.auth.models import User
from envie2sortir.auth.password import hash_password
from envie2sortir.enrichment.services import build_establishment_tags
from envie2sortir.establishments.models import Establishment, EstablishmentTag, STATUS_PENDING
from envie2sortir.establishments.services import unique_slug
from envie2sortir.geo.services import geocode_with_retry
from envie2sortir.learning.keywords import extract_keywords
from envie2sortir.learning.services import LearningService
from envie2sortir.professionals.models import (
    Professional, SubscriptionLog, SUBSCRIPTION_FREE, SUBSCRIPTION_PREMIUM
)
from envie2sortir.professionals.schemas import ProfessionalRegistration, REQUIRED_REGISTRATION_FIELDS
from envie2sortir.siret.insee import clean_siret, validate_siret_format
from envie2sortir.utils.text import parse_address

logger = logging.getLogger(__name__)


class RegistrationError(Exception):
    """Erreur de validation renvoyée en 400."""


async def siret_exists(db: AsyncSession, siret: str) -> bool:
    result = await db.execute(select(Professional.id).where(Professional.siret == siret))
    return result.first() is not None


async def email_exists(db: AsyncSession, email: str) -> bool:
    """Email déjà pris par un professionnel ou un utilisateur."""
    lowered = email.lower()
    pro = await db.execute(select(Professional.id).where(Professional.email == lowered))
    if pro.first() is not None:
        return True
    user = await db.execute(select(User.id).where(User.email == lowered, User.hashed_password.is_not(None)))
    return user.first() is not None


async def register_professional(db: AsyncSession, data: ProfessionalRegistration) -> dict:
    missing = [field for field in REQUIRED_REGISTRATION_FIELDS if not getattr(data, field)]
    if missing:
        raise RegistrationError(f"Champs requis manquants: {', '.join(missing)}")

    siret = clean_siret(data.siret)
    if not validate_siret_format(siret):
        raise RegistrationError("Format SIRET invalide")
    if len(data.password) < 8:
        raise RegistrationError("Le mot de passe doit contenir au moins 8 caractères")

    email = data.email.strip().lower()
    if await siret_exists(db, siret):
        raise RegistrationError("Ce SIRET est déjà enregistré")
    # Un compte utilisateur avec mot de passe masquerait le pro à la connexion
    if await email_exists(db, email):
        raise RegistrationError("Cet email est déjà utilisé")

    _, postal_code, city = parse_address(data.address)

    latitude, longitude = data.latitude, data.longitude
    if latitude is None or longitude is None:
        coordinates = await run_in_threadpool(geocode_with_retry, data.address)
        if coordinates:
            latitude, longitude = coordinates
        else:
            logger.warning(f"⚠️ Coordonnées introuvables pour '{data.address}'")

    subscription = SUBSCRIPTION_PREMIUM if data.subscription_plan.lower() == "premium" else SUBSCRIPTION_FREE

    try:
        professional = Professional(
            siret=siret,
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            email=email,
            password_hash=hash_password(data.password),
            phone=data.phone,
            company_name=data.company_name or data.establishment_name,
            legal_status=data.legal_status,
            subscription_plan=subscription,
        )
        db.add(professional)
        await db.flush()

        establishment = Establishment(
            name=data.establishment_name.strip(),
            slug=await unique_slug(db, data.establishment_name),
            description=data.description,
            address=data.address.strip(),
            city=city,
            postal_code=postal_code,
            latitude=latitude,
            longitude=longitude,
            activities=data.activities,
            services=data.services,
            ambiance=data.ambiance,
            payment_methods=data.payment_methods,
            horaires_ouverture=data.horaires_ouverture,
            envie_tags=data.envie_tags,
            website=data.website,
            instagram=data.instagram,
            facebook=data.facebook,
            price_min=data.price_min,
            price_max=data.price_max,
            status=STATUS_PENDING,
            subscription=subscription,
            owner_id=professional.id,
        )
        db.add(establishment)
        await db.flush()

        for item in build_establishment_tags(data.activities, data.tags, data.envie_tags):
            db.add(EstablishmentTag(establishment_id=establishment.id, **item))

        db.add(SubscriptionLog(
            professional_id=professional.id,
            old_status=None,
            new_status=subscription,
            reason="registration",
        ))

        await LearningService(db).save_pattern(
            name=establishment.name,
            detected_type=data.activities[0] if data.activities else "other",
            keywords=extract_keywords(f"{establishment.name} {data.description or ''}"),
            confidence=1.0 if data.activities else 0.0,
            commit=False,
        )

        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"⚠️ Contrainte d'unicité violée à l'inscription : {e.orig}")
        raise RegistrationError("SIRET ou email déjà utilisé")
    except Exception:
        await db.rollback()
        raise

    logger.info(f"✅ Professionnel {professional.id} inscrit avec l'établissement '{establishment.slug}'")
    return {
        "success": True,
        "professional_id": professional.id,
        "establishment_id": establishment.id,
        "slug": establishment.slug,
        "subscription": subscription,
    }


async def find_professional_by_siret(db: AsyncSession, siret: str) -> Optional[Professional]:
    result = await db.execute(select(Professional).where(Professional.siret == clean_siret(siret)))
    return result.scalars().first()
