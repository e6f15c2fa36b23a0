from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, File, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import Optional
from xml.sax.saxutils import escape
import logging
import traceback

from envie2sortir.auth.dependencies import get_current_user, get_current_user_optional
from envie2sortir.auth.permissions import require_professional
from envie2sortir.config import settings
from envie2sortir.db.session import get_db
from envie2sortir.establishments.models import Establishment, STATUS_APPROVED
from envie2sortir.establishments.schemas import (
    EstablishmentListResponse, EstablishmentResponse, EstablishmentSummary, EstablishmentUpdate, ImageOut
)
from envie2sortir.establishments.services import (
    EstablishmentService, EstablishmentNotFoundError, NotOwnerError, can_manage
)
from envie2sortir.professionals.models import get_subscription_features
from envie2sortir.utils.uploads import validate_image_file, save_upload

logger = logging.getLogger(__name__)
router = APIRouter(tags=["establishments"])


@router.get("/api/establishments", response_model=EstablishmentListResponse)
async def list_establishments(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    city: Optional[str] = Query(None),
    activity: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = await EstablishmentService(db).list_approved(
            page=page, per_page=per_page, city=city, activity=activity, search=search
        )
        data["items"] = [EstablishmentSummary.model_validate(e) for e in data["items"]]
        return data
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la récupération des établissements")


@router.get("/api/professional/establishment", response_model=EstablishmentResponse)
async def my_establishment(
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    establishment = await EstablishmentService(db).get_for_owner(current_user.id)
    if not establishment:
        raise HTTPException(status_code=404, detail="Aucun établissement trouvé")
    return establishment


@router.get("/api/establishments/{slug}", response_model=EstablishmentResponse)
async def get_establishment(
    slug: str,
    current_user=Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    try:
        establishment = await EstablishmentService(db).get_by_slug(slug)
    except EstablishmentNotFoundError:
        raise HTTPException(status_code=404, detail="Établissement non trouvé")

    # Les fiches non validées ne sont visibles que du propriétaire et des admins
    if establishment.status != STATUS_APPROVED and not can_manage(establishment, current_user):
        raise HTTPException(status_code=404, detail="Établissement non trouvé")
    return establishment


@router.put("/api/establishments/{establishment_id}", response_model=EstablishmentResponse)
async def update_establishment(
    establishment_id: int,
    data: EstablishmentUpdate,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await EstablishmentService(db).update(
            establishment_id, current_user, data.model_dump(exclude_unset=True)
        )
    except EstablishmentNotFoundError:
        raise HTTPException(status_code=404, detail="Établissement non trouvé")
    except NotOwnerError:
        raise HTTPException(status_code=403, detail="Vous n'êtes pas propriétaire de cet établissement")
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la mise à jour de l'établissement")


@router.delete("/api/establishments/{establishment_id}")
async def delete_establishment(
    establishment_id: int,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        name = await EstablishmentService(db).delete(establishment_id, current_user)
        return {"success": True, "message": f'"{name}" supprimé avec succès'}
    except EstablishmentNotFoundError:
        raise HTTPException(status_code=404, detail="Établissement non trouvé")
    except NotOwnerError:
        raise HTTPException(status_code=403, detail="Vous n'êtes pas propriétaire de cet établissement")
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la suppression de l'établissement")


@router.post(
    "/api/establishments/{establishment_id}/images",
    response_model=ImageOut,
    status_code=status.HTTP_201_CREATED,
)
async def upload_image(
    establishment_id: int,
    file: UploadFile = File(...),
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

    max_images = get_subscription_features(establishment.subscription)["max_images"]
    if len(establishment.images) >= max_images:
        raise HTTPException(
            status_code=403,
            detail=f"Limite de {max_images} image(s) atteinte pour l'abonnement {establishment.subscription}",
        )

    validate_image_file(file)
    url = await save_upload(file, f"establishments/{establishment.id}")
    return await service.add_image(establishment, url)


@router.get("/sitemap.xml", include_in_schema=False)
async def sitemap(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Establishment.slug, Establishment.updated_at)
        .where(Establishment.status == STATUS_APPROVED)
        .order_by(Establishment.updated_at.desc())
    )
    base_url = settings.SITE_URL.rstrip("/")
    urls = [f"  <url><loc>{escape(base_url)}/</loc><priority>1.0</priority></url>"]
    for slug, updated_at in result.all():
        lastmod = updated_at.date().isoformat() if updated_at else ""
        urls.append(
            f"  <url><loc>{escape(base_url)}/etablissements/{escape(slug)}</loc>"
            f"<lastmod>{lastmod}</lastmod><priority>0.8</priority></url>"
        )
    body = (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        + "\n".join(urls)
        + "\n</urlset>\n"
    )
    return Response(content=body, media_type="application/xml")
