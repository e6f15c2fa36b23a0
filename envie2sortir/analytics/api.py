from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging
import traceback

from envie2sortir.analytics import services
from envie2sortir.analytics.schemas import ClickEvent, SearchEvent
from envie2sortir.auth.permissions import require_admin
from envie2sortir.db.session import get_db
from envie2sortir.establishments.models import Establishment

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/analytics", tags=["analytics"])
admin_router = APIRouter(prefix="/api/admin/analytics", tags=["admin"])


@router.post("/track")
async def track(event: ClickEvent, db: AsyncSession = Depends(get_db)):
    if event.establishment_id is not None and await db.get(Establishment, event.establishment_id) is None:
        raise HTTPException(status_code=404, detail="Établissement non trouvé")
    try:
        event_id = await services.track_click(event)
    except services.AnalyticsValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur serveur")
    return {"success": True, "id": event_id}


@router.post("/search")
async def track_search(event: SearchEvent):
    try:
        event_id = await services.track_search(event)
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur serveur")
    return {"success": True, "id": event_id}


@admin_router.get("/establishments")
async def establishment_clicks(
    limit: int = Query(20, ge=1, le=100),
    period: Optional[str] = Query("30d"),
    establishment_id: Optional[int] = Query(None, alias="establishmentId"),
    admin=Depends(require_admin),
):
    try:
        if establishment_id is not None:
            return {"elements": await services.clicks_by_element(establishment_id, period=period)}
        return {"establishments": await services.clicks_by_establishment(limit=limit, period=period)}
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur serveur")


@admin_router.get("/searches")
async def searches(
    limit: int = Query(20, ge=1, le=100),
    period: Optional[str] = Query("30d"),
    admin=Depends(require_admin),
):
    try:
        return {"searches": await services.top_searches(limit=limit, period=period)}
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur serveur")
