from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging
import traceback

from envie2sortir.db.session import get_db
from envie2sortir.search.services import search_envie, search_filtered, SearchError, DEFAULT_RADIUS_KM, DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/recherche", tags=["recherche"])


@router.get("/envie")
async def recherche_envie(
    envie: Optional[str] = Query(None),
    ville: Optional[str] = Query(None),
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    rayon: float = Query(DEFAULT_RADIUS_KM, gt=0, le=100),
    db: AsyncSession = Depends(get_db),
):
    if not envie:
        raise HTTPException(status_code=400, detail="Paramètre 'envie' requis")
    try:
        return await search_envie(db, envie, lat=lat, lng=lng, rayon=rayon, ville=ville)
    except SearchError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la recherche")


@router.get("/filtered")
async def recherche_filtree(
    envie: Optional[str] = Query(None),
    ville: Optional[str] = Query(None),
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    rayon: float = Query(DEFAULT_RADIUS_KM, gt=0, le=100),
    filter: str = Query("popular"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    if not envie:
        raise HTTPException(status_code=400, detail="Paramètre 'envie' requis")
    try:
        return await search_filtered(
            db, envie, lat=lat, lng=lng, rayon=rayon, ville=ville, filter_name=filter, page=page, limit=limit
        )
    except SearchError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la recherche")
