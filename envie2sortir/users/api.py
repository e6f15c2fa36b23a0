from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
import logging

from envie2sortir.auth.permissions import require_user
from envie2sortir.db.session import get_db
from envie2sortir.establishments.models import Establishment
from envie2sortir.users.models import UserFavorite
from envie2sortir.users.schemas import FavoriteCreate, FavoriteOut

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/user/favorites", tags=["favorites"])


# ─────────────────────────────────────────────
# 1. Lister ses favoris
# ─────────────────────────────────────────────
@router.get("")
async def list_favorites(current_user=Depends(require_user), db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(UserFavorite)
        .options(selectinload(UserFavorite.establishment).selectinload(Establishment.images))
        .where(UserFavorite.user_id == current_user.id)
        .order_by(UserFavorite.created_at.desc())
    )
    favorites = result.scalars().all()
    return {"favorites": [FavoriteOut.model_validate(f) for f in favorites]}


# ─────────────────────────────────────────────
# 2. Ajouter un favori
# ─────────────────────────────────────────────
@router.post("", status_code=status.HTTP_201_CREATED)
async def add_favorite(
    data: FavoriteCreate,
    current_user=Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    establishment = await db.get(Establishment, data.establishment_id)
    if not establishment:
        raise HTTPException(status_code=404, detail="Établissement non trouvé")

    existing = await db.execute(
        select(UserFavorite).where(
            UserFavorite.user_id == current_user.id,
            UserFavorite.establishment_id == data.establishment_id,
        )
    )
    if existing.scalars().first():
        raise HTTPException(status_code=409, detail="Établissement déjà dans vos favoris")

    favorite = UserFavorite(user_id=current_user.id, establishment_id=data.establishment_id)
    db.add(favorite)
    await db.commit()
    await db.refresh(favorite)
    logger.info(f"⭐ Favori ajouté : user={current_user.id}, établissement={data.establishment_id}")
    return {"success": True, "favoriteId": favorite.id}


# ─────────────────────────────────────────────
# 3. Retirer un favori
# ─────────────────────────────────────────────
@router.delete("/{establishment_id}")
async def remove_favorite(
    establishment_id: int,
    current_user=Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(UserFavorite).where(
            UserFavorite.user_id == current_user.id,
            UserFavorite.establishment_id == establishment_id,
        )
    )
    favorite = result.scalars().first()
    if not favorite:
        raise HTTPException(status_code=404, detail="Favori non trouvé")

    await db.delete(favorite)
    await db.commit()
    return {"success": True, "message": "Favori retiré"}
