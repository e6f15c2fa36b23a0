from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import traceback

from envie2sortir.config import settings
from envie2sortir.db.session import get_db
from envie2sortir.utils.validation import first_error_message
from envie2sortir.waitlist.schemas import WaitlistJoinRequest
from envie2sortir.waitlist.services import (
    join_waitlist, WaitlistError, is_launch_active, days_until_launch, format_time_until_launch
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/professionals/waitlist", tags=["waitlist"])


@router.post("/join", status_code=status.HTTP_201_CREATED)
async def join(payload: dict = Body(...), db: AsyncSession = Depends(get_db)):
    try:
        data = WaitlistJoinRequest.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=first_error_message(e))

    try:
        professional = await join_waitlist(db, data)
    except WaitlistError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de l'inscription à la waitlist")

    return {
        "success": True,
        "message": (
            "Inscription réussie ! Vous bénéficiez du premium gratuitement jusqu'au lancement. "
            f"{format_time_until_launch()}"
        ),
        "professionalId": professional.id,
    }


@router.get("/status")
async def waitlist_status():
    return {
        "launchDate": settings.LAUNCH_DATE.isoformat(),
        "isLaunchActive": is_launch_active(),
        "daysUntilLaunch": days_until_launch(),
    }
