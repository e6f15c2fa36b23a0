"""Modification des informations d'un compte professionnel.

Les champs d'identité (prénom, nom, téléphone) sont appliqués tout de suite ;
l'email, le SIRET et la raison sociale passent par une demande validée par un
administrateur. Un changement d'email doit en plus être confirmé par lien.
"""
import logging
import re
import secrets
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from envie2sortir.config import settings
from envie2sortir.establishments.models import Establishment
from envie2sortir.newsletter.schemas import normalize_email
from envie2sortir.professionals.models import (
    Professional, ProfessionalUpdateRequest, UPDATE_APPROVED, UPDATE_PENDING, UPDATE_REJECTED
)
from envie2sortir.professionals.services import email_exists, siret_exists
from envie2sortir.utils.email import send_email_async
from envie2sortir.waitlist.schemas import PHONE_RE

logger = logging.getLogger(__name__)

# champ de l'API -> colonne du Professional
DIRECT_FIELDS = {"firstName": "first_name", "lastName": "last_name", "phone": "phone"}
REVIEWED_FIELDS = {"email": "email", "siret": "siret", "companyName": "company_name"}

SIRET_RE = re.compile(r"^\d{14}$")
REVIEW_ACTIONS = ("approve", "reject")


class UpdateRequestError(Exception):
    """Erreur de validation renvoyée en 400."""


class UpdateRequestNotFound(Exception):
    pass


def _normalized_value(field_name: str, value: str) -> str:
    if field_name == "email":
        try:
            return normalize_email(value)
        except ValueError:
            raise UpdateRequestError("Adresse email invalide")
    if field_name == "siret":
        value = value.replace(" ", "")
        if not SIRET_RE.match(value):
            raise UpdateRequestError("Le SIRET doit contenir 14 chiffres")
    elif field_name == "phone":
        value = value.replace(" ", "")
        if not PHONE_RE.match(value):
            raise UpdateRequestError("Numéro de téléphone mobile invalide (06 ou 07)")
    return value


async def _check_available(db: AsyncSession, field_name: str, value: str):
    if field_name == "email" and await email_exists(db, value):
        raise UpdateRequestError("Cet email est déjà utilisé")
    if field_name == "siret" and await siret_exists(db, value):
        raise UpdateRequestError("Ce SIRET est déjà utilisé")


async def request_update(db: AsyncSession, professional: Professional, field_name: Optional[str],
                         new_value: Optional[str], sms_verified: bool) -> dict:
    if not field_name or new_value is None:
        raise UpdateRequestError("Paramètres requis: fieldName, newValue")
    if not sms_verified:
        raise UpdateRequestError("Vérification SMS requise")
    if field_name not in DIRECT_FIELDS and field_name not in REVIEWED_FIELDS:
        raise UpdateRequestError("Champ invalide")

    value = new_value.strip()
    if not value:
        raise UpdateRequestError("La nouvelle valeur est requise")

    column = DIRECT_FIELDS.get(field_name) or REVIEWED_FIELDS[field_name]
    old_value = getattr(professional, column)
    value = _normalized_value(field_name, value)
    if value == old_value:
        raise UpdateRequestError("La nouvelle valeur est identique à l'actuelle")
    await _check_available(db, field_name, value)

    if field_name in DIRECT_FIELDS:
        setattr(professional, column, value)
        await db.commit()
        logger.info(f"✏️ Professionnel {professional.id} : {field_name} modifié")
        return {"success": True, "requiresAdminApproval": False, "message": "Modification enregistrée"}

    result = await db.execute(
        select(ProfessionalUpdateRequest.id).where(
            ProfessionalUpdateRequest.professional_id == professional.id,
            ProfessionalUpdateRequest.field_name == field_name,
            ProfessionalUpdateRequest.status == UPDATE_PENDING,
        )
    )
    if result.first() is not None:
        raise UpdateRequestError("Une demande de modification est déjà en attente pour ce champ")

    update_request = ProfessionalUpdateRequest(
        professional_id=professional.id,
        field_name=field_name,
        old_value=old_value,
        new_value=value,
        sms_verified=True,
    )
    if field_name == "email":
        update_request.email_verification_token = secrets.token_urlsafe(32)
    db.add(update_request)
    await db.commit()
    await db.refresh(update_request)
    logger.info(f"📝 Demande {update_request.id} ({field_name}) créée par le professionnel {professional.id}")

    if field_name == "email":
        link = f"{settings.SITE_URL.rstrip('/')}/api/professional/verify-email?token={update_request.email_verification_token}"
        body = (
            "Vous avez demandé à changer l'email de votre compte Envie2Sortir.\n"
            f"Confirmez cette adresse en ouvrant ce lien : {link}"
        )
        try:
            await send_email_async("Confirmez votre nouvel email", value, body)
        except Exception as e:
            # la demande reste valable, le lien pourra être renvoyé
            logger.error(f"❌ Email de vérification non envoyé à {value} : {e}")

    return {
        "success": True,
        "requiresAdminApproval": True,
        "requestId": update_request.id,
        "message": "Demande de modification envoyée, en attente de validation",
    }


async def verify_email_token(db: AsyncSession, token: str) -> ProfessionalUpdateRequest:
    result = await db.execute(
        select(ProfessionalUpdateRequest).where(ProfessionalUpdateRequest.email_verification_token == token)
    )
    update_request = result.scalars().first()
    if not update_request:
        raise UpdateRequestNotFound("Lien de vérification invalide")
    update_request.is_email_verified = True
    await db.commit()
    logger.info(f"✅ Email de la demande {update_request.id} vérifié")
    return update_request


async def list_requests(db: AsyncSession, status: Optional[str] = UPDATE_PENDING) -> List[ProfessionalUpdateRequest]:
    query = (
        select(ProfessionalUpdateRequest)
        .options(selectinload(ProfessionalUpdateRequest.professional))
        .order_by(ProfessionalUpdateRequest.requested_at.desc())
    )
    if status:
        query = query.where(ProfessionalUpdateRequest.status == status)
    return (await db.execute(query)).scalars().all()


async def review_request(db: AsyncSession, admin, request_id: Optional[int], action: Optional[str],
                         rejection_reason: Optional[str] = None) -> ProfessionalUpdateRequest:
    if not request_id or not action:
        raise UpdateRequestError("Paramètres requis: requestId, action")
    if action not in REVIEW_ACTIONS:
        raise UpdateRequestError("Action invalide")
    reason = (rejection_reason or "").strip()
    if action == "reject" and not reason:
        raise UpdateRequestError("La raison du rejet est requise")

    update_request = await db.get(ProfessionalUpdateRequest, request_id)
    if not update_request:
        raise UpdateRequestNotFound("Demande non trouvée")
    if update_request.status != UPDATE_PENDING:
        raise UpdateRequestError("Cette demande a déjà été traitée")

    if action == "approve":
        if update_request.field_name == "email" and not update_request.is_email_verified:
            raise UpdateRequestError("Le nouvel email doit être vérifié avant approbation")

        await _check_available(db, update_request.field_name, update_request.new_value)
        professional = await db.get(Professional, update_request.professional_id)
        setattr(professional, REVIEWED_FIELDS[update_request.field_name], update_request.new_value)
        if update_request.field_name == "companyName":
            result = await db.execute(
                select(Establishment)
                .where(Establishment.owner_id == professional.id)
                .order_by(Establishment.created_at)
            )
            establishment = result.scalars().first()
            if establishment:
                establishment.name = update_request.new_value
        update_request.status = UPDATE_APPROVED
    else:
        update_request.status = UPDATE_REJECTED
        update_request.rejection_reason = reason

    update_request.reviewed_at = datetime.utcnow()
    update_request.reviewed_by = admin.id
    await db.commit()

    result = await db.execute(
        select(ProfessionalUpdateRequest)
        .options(selectinload(ProfessionalUpdateRequest.professional))
        .where(ProfessionalUpdateRequest.id == request_id)
        .execution_options(populate_existing=True)
    )
    update_request = result.scalars().one()
    logger.info(f"🛡️ Demande {update_request.id} {update_request.status} par l'admin {admin.id}")
    return update_request
