from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import traceback

from envie2sortir.auth.permissions import require_admin
from envie2sortir.db.session import get_db
from envie2sortir.learning.schemas import SuggestRequest, CorrectionRequest, PatternResponse
from envie2sortir.learning.services import LearningService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["learning"])


@router.post("/api/learning/suggest")
async def suggest_type(data: SuggestRequest, db: AsyncSession = Depends(get_db)):
    try:
        suggestions = await LearningService(db).suggest_type(data.name, data.types, data.description or "")
        return {"suggestions": suggestions}
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la suggestion de type")


@router.post("/api/admin/learning/correct")
async def correct_type(
    data: CorrectionRequest,
    admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        updated = await LearningService(db).correct_type(data.name, data.corrected_type, admin.email)
        return {"success": True, "updated": updated}
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la correction")


@router.get("/api/admin/learning/stats")
async def learning_stats(admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    try:
        return await LearningService(db).get_stats()
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors du calcul des statistiques")


@router.get("/api/admin/learning/patterns")
async def list_patterns(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin=Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = await LearningService(db).list_patterns(limit=limit, offset=offset)
        return {
            "patterns": [PatternResponse.model_validate(p) for p in data["patterns"]],
            "total": data["total"],
            "duplicatesRemoved": data["duplicatesRemoved"],
        }
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la récupération des patterns")
