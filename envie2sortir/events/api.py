from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging
import traceback

from envie2sortir.auth.dependencies import get_current_user_optional
from envie2sortir.auth.permissions import require_professional, require_user
from envie2sortir.db.session import get_db
from envie2sortir.events.schemas import EngageRequest, EventPayload, EventResponse, UpcomingEventsResponse
from envie2sortir.events.services import (
    EventService, EventNotFoundError, EventValidationError, PremiumRequiredError
)

logger = logging.getLogger(__name__)
dashboard_router = APIRouter(prefix="/api/dashboard/events", tags=["events"])
router = APIRouter(prefix="/api/events", tags=["events"])


# ===============================
# DASHBOARD PROFESSIONNEL
# ===============================
@dashboard_router.get("")
async def list_my_events(current_user=Depends(require_professional), db: AsyncSession = Depends(get_db)):
    try:
        events = await EventService(db).list_for_owner(current_user)
        return {"events": [EventResponse.model_validate(e) for e in events]}
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PremiumRequiredError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur serveur")


@dashboard_router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(
    data: EventPayload,
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    try:
        event = await EventService(db).create_event(data, current_user)
        return {
            "success": True,
            "event": EventResponse.model_validate(event),
            "message": "Événement créé avec succès",
        }
    except EventValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PremiumRequiredError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la création de l'événement")


@dashboard_router.put("/{event_id}")
async def update_event(
    event_id: int,
    data: EventPayload,
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    try:
        event = await EventService(db).update_event(event_id, data, current_user)
        return {
            "success": True,
            "event": EventResponse.model_validate(event),
            "message": "Événement modifié avec succès",
        }
    except EventValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PremiumRequiredError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la modification de l'événement")


@dashboard_router.delete("/{event_id}")
async def delete_event(
    event_id: int,
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    try:
        await EventService(db).delete_event(event_id, current_user)
        return {"success": True, "message": "Événement supprimé avec succès"}
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PremiumRequiredError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la suppression de l'événement")


# ===============================
# ÉVÉNEMENTS PUBLICS
# ===============================
@router.get("/upcoming", response_model=UpcomingEventsResponse)
async def upcoming_events(
    city: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await EventService(db).upcoming(city=city, limit=limit)
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la récupération des événements")


@router.post("/{event_id}/engage")
async def engage(
    event_id: int,
    data: EngageRequest,
    current_user=Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await EventService(db).engage(event_id, current_user, data.type)
    except EventValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la création de l'engagement")


@router.get("/{event_id}/engage")
async def engagement_stats(
    event_id: int,
    current_user=Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await EventService(db).engagement_stats(event_id, current_user)
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la récupération des stats")
