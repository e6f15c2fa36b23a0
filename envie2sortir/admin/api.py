from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging
import traceback

from envie2sortir.admin import services
from envie2sortir.admin.schemas import AdminActionOut, AdminEstablishmentOut, EstablishmentActionRequest
from envie2sortir.auth.permissions import require_admin
from envie2sortir.db.session import get_db
from envie2sortir.professionals import update_requests
from envie2sortir.professionals.schemas import ReviewUpdateRequest, UpdateRequestOut

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/establishments")
async def list_establishments(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = await services.list_establishments(db, status=status, search=search, page=page, limit=limit)
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur serveur")
    data["establishments"] = [AdminEstablishmentOut.model_validate(e) for e in data["establishments"]]
    return data


@router.patch("/establishments/actions")
async def establishment_action(
    data: EstablishmentActionRequest,
    admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        establishment, action, message = await services.moderate_establishment(
            db, admin, data.establishment_id, data.action, data.reason
        )
    except services.ModerationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except services.EstablishmentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur interne du serveur")

    return {
        "success": True,
        "message": message,
        "establishment": {
            "id": establishment.id,
            "name": establishment.name,
            "status": establishment.status,
            "rejectionReason": establishment.rejection_reason,
        },
        "action": AdminActionOut.model_validate(action),
    }


@router.get("/actions")
async def action_history(
    establishment_id: Optional[int] = Query(None, alias="establishmentId"),
    limit: int = Query(50, ge=1, le=500),
    admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    actions = await services.list_actions(db, establishment_id=establishment_id, limit=limit)
    return {"actions": [AdminActionOut.model_validate(a) for a in actions]}


@router.get("/professionals-stats")
async def professionals_stats(admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    try:
        return await services.professionals_stats(db)
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la récupération des données")


@router.get("/stats")
async def stats(admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    try:
        return await services.global_stats(db)
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur serveur")


@router.get("/update-requests")
async def list_update_requests(
    status: str = Query("pending"),
    admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        requests = await update_requests.list_requests(db, status=None if status == "all" else status)
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur serveur")
    return {"requests": [UpdateRequestOut.model_validate(r) for r in requests]}


@router.post("/review-update")
async def review_update(
    data: ReviewUpdateRequest,
    admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        update_request = await update_requests.review_request(
            db, admin, data.request_id, data.action, data.rejection_reason
        )
    except update_requests.UpdateRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except update_requests.UpdateRequestNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur interne du serveur")

    message = "Modification approuvée et appliquée" if data.action == "approve" else "Modification rejetée"
    return {"success": True, "message": message, "request": UpdateRequestOut.model_validate(update_request)}
