from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging
import traceback

from envie2sortir.auth.permissions import require_admin, require_professional
from envie2sortir.db.session import get_db
from envie2sortir.deals.schemas import DealCreate, DealUpdate, DealResponse, EngagementRequest
from envie2sortir.deals.services import (
    DealService, DealNotFoundError, DealPermissionError, PremiumRequiredError, DealValidationError,
    serialize_deal,
)
from envie2sortir.utils.rate_limit import get_client_ip

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/deals", tags=["deals"])
admin_router = APIRouter(prefix="/api/admin/deals", tags=["admin"])


@router.post("", response_model=DealResponse, status_code=status.HTTP_201_CREATED)
async def create_deal(
    data: DealCreate,
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    try:
        deal = await DealService(db).create_deal(data, current_user)
        return serialize_deal(deal)
    except DealValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DealNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PremiumRequiredError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la création du bon plan")


@router.get("/all")
async def all_active_deals(limit: int = Query(12, ge=0, le=100), db: AsyncSession = Depends(get_db)):
    try:
        deals = await DealService(db).all_active_deals(limit=limit)
        return {
            "success": True,
            "deals": [DealResponse.model_validate(serialize_deal(d, establishment=d.establishment)) for d in deals],
            "count": len(deals),
        }
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur serveur")


@router.get("/active/{establishment_id}")
async def active_deals(establishment_id: int, db: AsyncSession = Depends(get_db)):
    try:
        deals = await DealService(db).active_deals_for_establishment(establishment_id)
        return {"success": True, "deals": [DealResponse.model_validate(serialize_deal(d)) for d in deals]}
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la récupération des bons plans")


@router.post("/engagement")
async def record_engagement(data: EngagementRequest, request: Request, db: AsyncSession = Depends(get_db)):
    try:
        await DealService(db).record_engagement(data.deal_id, data.type, get_client_ip(request), data.timestamp)
        return {"success": True, "message": "Engagement enregistré avec succès"}
    except DealValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DealNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur serveur")


@router.get("/engagement")
async def engagement_stats(
    deal_id: Optional[int] = Query(None, alias="dealId"),
    establishment_id: Optional[int] = Query(None, alias="establishmentId"),
    db: AsyncSession = Depends(get_db),
):
    if deal_id is None and establishment_id is None:
        raise HTTPException(status_code=400, detail="dealId ou establishmentId requis")
    try:
        data = await DealService(db).engagement_stats(deal_id=deal_id, establishment_id=establishment_id)
        return {"success": True, **data}
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur serveur")


@router.get("/{deal_id}", response_model=DealResponse)
async def get_deal(deal_id: int, db: AsyncSession = Depends(get_db)):
    try:
        deal = await DealService(db).get_deal(deal_id)
    except DealNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return serialize_deal(deal, establishment=deal.establishment)


@router.put("/{deal_id}", response_model=DealResponse)
async def update_deal(
    deal_id: int,
    data: DealUpdate,
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    try:
        deal = await DealService(db).update_deal(deal_id, data.model_dump(exclude_unset=True), current_user)
        return serialize_deal(deal)
    except DealNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DealPermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except DealValidationError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la mise à jour du bon plan")


@router.delete("/{deal_id}")
async def delete_deal(
    deal_id: int,
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    try:
        await DealService(db).delete_deal(deal_id, current_user)
        return {"success": True, "message": "Bon plan supprimé"}
    except DealNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DealPermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la suppression du bon plan")


@admin_router.post("/recurrence/process")
async def process_recurrence(admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    try:
        deactivated = await DealService(db).process_recurrence()
        return {"success": True, "deactivated": deactivated}
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors du traitement des récurrences")
