from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import traceback

import requests

from envie2sortir.auth.permissions import require_professional
from envie2sortir.db.session import get_db
from envie2sortir.professionals import update_requests
from envie2sortir.professionals.schemas import ProfessionalRegistration, SiretVerificationRequest, UpdateRequestCreate
from envie2sortir.professionals.services import (
    register_professional, RegistrationError, find_professional_by_siret
)
from envie2sortir.siret.insee import insee_client, validate_siret_format, clean_siret, InseeError

logger = logging.getLogger(__name__)
router = APIRouter(tags=["professionals"])


@router.post("/api/professional-registration", status_code=status.HTTP_201_CREATED)
async def professional_registration(data: ProfessionalRegistration, db: AsyncSession = Depends(get_db)):
    try:
        return await register_professional(db, data)
    except RegistrationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de l'inscription")


@router.post("/api/professionals/verify-siret")
async def verify_siret(data: SiretVerificationRequest, db: AsyncSession = Depends(get_db)):
    siret = clean_siret(data.siret)
    if not validate_siret_format(siret):
        raise HTTPException(status_code=400, detail="Format SIRET invalide (14 chiffres requis)")

    try:
        info = await run_in_threadpool(insee_client.get_establishment, siret)
    except (InseeError, requests.RequestException) as e:
        logger.error(f"❌ Vérification SIRET {siret} impossible : {e}")
        raise HTTPException(status_code=503, detail="Service de vérification SIRET indisponible")
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur interne")

    if info is None:
        raise HTTPException(status_code=404, detail="SIRET introuvable")

    already_registered = await find_professional_by_siret(db, siret) is not None
    return {"valid": True, "data": info, "alreadyRegistered": already_registered}


@router.post("/api/professional/request-update")
async def request_update(
    data: UpdateRequestCreate,
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await update_requests.request_update(
            db, current_user, data.field_name, data.new_value, data.sms_verified
        )
    except update_requests.UpdateRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la demande de modification")


@router.get("/api/professional/verify-email")
async def verify_email(token: str = Query(..., min_length=1), db: AsyncSession = Depends(get_db)):
    try:
        await update_requests.verify_email_token(db, token)
    except update_requests.UpdateRequestNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "message": "Email vérifié, la demande sera examinée par un administrateur"}
