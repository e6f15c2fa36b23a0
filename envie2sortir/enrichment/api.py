from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import traceback

from envie2sortir.auth.permissions import require_professional
from envie2sortir.db.session import get_db
from envie2sortir.enrichment.categories import CATEGORY_TAGS_MAPPING, organize_tags_by_category
from envie2sortir.enrichment.services import apply_enrichment, build_establishment_tags
from envie2sortir.establishments.schemas import EnrichmentData
from envie2sortir.establishments.services import EstablishmentService, EstablishmentNotFoundError
from envie2sortir.learning.keywords import extract_keywords
from envie2sortir.learning.services import LearningService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["enrichment"])


@router.get("/api/categories")
async def list_categories():
    return {
        "categories": [
            {"key": key, "tags": mapping["primary"] + mapping["secondary"] + mapping["related"]}
            for key, mapping in CATEGORY_TAGS_MAPPING.items()
        ]
    }


@router.post("/api/establishments/{establishment_id}/enrich")
async def enrich_establishment(
    establishment_id: int,
    data: EnrichmentData,
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    service = EstablishmentService(db)
    try:
        establishment = await service.get_by_id(establishment_id)
    except EstablishmentNotFoundError:
        raise HTTPException(status_code=404, detail="Établissement non trouvé")

    if establishment.owner_id != current_user.id:
        raise HTTPException(status_code=403, detail="Vous n'êtes pas propriétaire de cet établissement")

    try:
        summary = apply_enrichment(establishment, data.model_dump())
        await service.replace_tags(
            establishment,
            build_establishment_tags(envie_tags=summary["envie_tags"]),
            type_tag="envie",
        )

        description = establishment.description or ""
        await LearningService(db).save_pattern(
            name=establishment.name,
            detected_type=summary["establishment_type"],
            google_types=data.types,
            keywords=extract_keywords(f"{establishment.name} {description}"),
            confidence=0.8 if summary["establishment_type"] != "other" else 0.3,
            commit=False,
        )
        await db.commit()

        return {
            "success": True,
            "establishmentType": summary["establishment_type"],
            "envieTags": summary["envie_tags"],
            "tagsByCategory": organize_tags_by_category(summary["envie_tags"]),
        }
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de l'enrichissement")
