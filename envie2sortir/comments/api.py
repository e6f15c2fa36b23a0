from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import traceback

from envie2sortir.auth.permissions import require_user
from envie2sortir.comments.moderation import ModerationError
from envie2sortir.comments.schemas import CommentCreate, CommentResponse
from envie2sortir.comments.services import CommentService, CommentNotFoundError, CommentPermissionError
from envie2sortir.db.session import get_db

logger = logging.getLogger(__name__)
router = APIRouter(tags=["comments"])


@router.post("/api/user/comments")
async def create_or_update_comment(
    data: CommentCreate,
    current_user=Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        comment, created = await CommentService(db).upsert_comment(current_user, data)
    except ModerationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CommentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de l'enregistrement de l'avis")

    return {
        "success": True,
        "message": "Avis ajouté" if created else "Avis mis à jour",
        "comment": CommentResponse.model_validate(comment),
    }


@router.get("/api/user/comments")
async def my_comments(current_user=Depends(require_user), db: AsyncSession = Depends(get_db)):
    comments = await CommentService(db).list_for_user(current_user.id)
    return {"comments": [CommentResponse.model_validate(c) for c in comments]}


@router.delete("/api/user/comments/{comment_id}")
async def delete_comment(
    comment_id: int,
    current_user=Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        await CommentService(db).delete_comment(comment_id, current_user)
    except CommentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CommentPermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la suppression de l'avis")
    return {"success": True, "message": "Avis supprimé"}


@router.get("/api/establishments/{establishment_id}/comments")
async def establishment_comments(establishment_id: int, db: AsyncSession = Depends(get_db)):
    comments = await CommentService(db).list_for_establishment(establishment_id)
    return {"comments": [CommentResponse.model_validate(c) for c in comments], "total": len(comments)}
