from fastapi import APIRouter, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from typing import Optional
import logging
import traceback

import requests

from envie2sortir.geo.services import geocode_address, GeocodingError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/geocode", tags=["geo"])


@router.get("")
async def geocode(
    address: Optional[str] = Query(None),
    limit: int = Query(1, ge=1, le=10),
):
    if not address or not address.strip():
        raise HTTPException(status_code=400, detail="Adresse requise")

    try:
        results = await run_in_threadpool(geocode_address, address.strip(), limit)
    except (GeocodingError, requests.RequestException) as e:
        logger.error(f"❌ Géocodage impossible pour '{address}' : {e}")
        raise HTTPException(status_code=502, detail="Service de géocodage indisponible")
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur interne de géocodage")

    if not results:
        raise HTTPException(status_code=404, detail="Adresse non trouvée")

    if limit == 1:
        return results[0]
    return {"results": results}
