from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging
import traceback

from envie2sortir.auth.permissions import require_professional
from envie2sortir.db.session import get_db
from envie2sortir.menus.schemas import MenuListResponse, MenuResponse, MenuUpdate, TariffPayload, TariffResponse
from envie2sortir.menus.services import (
    MenuService, TariffService, MenuNotFoundError, MenuLimitError, PremiumRequiredError, TariffNotFoundError
)
from envie2sortir.utils.uploads import MAX_PDF_SIZE, read_upload, validate_pdf_file

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/establishments/{establishment_id}/menus", tags=["menus"])
tariffs_router = APIRouter(prefix="/api/dashboard/tariffs", tags=["tariffs"])


# ===============================
# MENUS PDF
# ===============================
@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_menu(
    establishment_id: int,
    file: UploadFile = File(...),
    name: str = Form(...),
    description: Optional[str] = Form(None),
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    service = MenuService(db)
    try:
        establishment = await service.check_can_upload(establishment_id, current_user)
    except MenuNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PremiumRequiredError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except MenuLimitError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not name.strip():
        raise HTTPException(status_code=400, detail="Le nom du menu est requis")
    validate_pdf_file(file)
    content = await read_upload(file, MAX_PDF_SIZE)

    try:
        menu = await service.create_menu(
            establishment,
            name=name.strip(),
            description=(description or "").strip() or None,
            content=content,
            file_name=file.filename,
            mime_type=file.content_type,
        )
        return {"success": True, "menu": MenuResponse.model_validate(menu), "message": "Menu ajouté avec succès"}
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de l'upload du menu")


@router.get("", response_model=MenuListResponse)
async def list_menus(establishment_id: int, db: AsyncSession = Depends(get_db)):
    try:
        menus = await MenuService(db).list_active(establishment_id)
        return {"menus": [MenuResponse.model_validate(m) for m in menus]}
    except MenuNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{menu_id}")
async def update_menu(
    establishment_id: int,
    menu_id: int,
    data: MenuUpdate,
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    try:
        menu = await MenuService(db).update_menu(establishment_id, menu_id, data, current_user)
        return {"success": True, "menu": MenuResponse.model_validate(menu), "message": "Menu mis à jour"}
    except MenuNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PremiumRequiredError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la mise à jour du menu")


@router.delete("/{menu_id}")
async def delete_menu(
    establishment_id: int,
    menu_id: int,
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    try:
        await MenuService(db).delete_menu(establishment_id, menu_id, current_user)
        return {"success": True, "message": "Menu supprimé avec succès"}
    except MenuNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PremiumRequiredError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la suppression du menu")


# ===============================
# GRILLE TARIFAIRE
# ===============================
@tariffs_router.get("")
async def list_tariffs(current_user=Depends(require_professional), db: AsyncSession = Depends(get_db)):
    try:
        tariffs = await TariffService(db).list_for_owner(current_user)
        return {"tariffs": [TariffResponse.model_validate(t) for t in tariffs]}
    except TariffNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@tariffs_router.post("", status_code=status.HTTP_201_CREATED, response_model=TariffResponse)
async def create_tariff(
    data: TariffPayload,
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await TariffService(db).create(data, current_user)
    except TariffNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la création du tarif")


@tariffs_router.put("/{tariff_id}", response_model=TariffResponse)
async def update_tariff(
    tariff_id: int,
    data: TariffPayload,
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await TariffService(db).update(tariff_id, data, current_user)
    except TariffNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la modification du tarif")


@tariffs_router.delete("/{tariff_id}")
async def delete_tariff(
    tariff_id: int,
    current_user=Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    try:
        await TariffService(db).delete(tariff_id, current_user)
        return {"success": True, "message": "Tarif supprimé"}
    except TariffNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la suppression du tarif")
