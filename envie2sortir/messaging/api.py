from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging
import traceback

from envie2sortir.auth.dependencies import get_current_user
from envie2sortir.db.session import get_db
from envie2sortir.messaging.schemas import (
    ConversationCreate, ConversationDetail, ConversationOut, ConversationStatusUpdate, MessageCreate, MessageOut,
)
from envie2sortir.messaging.services import (
    MessagingService, ConversationNotFoundError, MessagingPermissionError, MessagingValidationError,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/messaging", tags=["messaging"])


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, ConversationNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, MessagingPermissionError):
        return HTTPException(status_code=403, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


MESSAGING_ERRORS = (ConversationNotFoundError, MessagingPermissionError, MessagingValidationError)


@router.get("/conversations")
async def list_conversations(
    status_filter: Optional[str] = Query(None, alias="status"),
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(20, ge=1, le=100),
    page: int = Query(1, ge=1),
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        conversations = await MessagingService(db).list_conversations(
            current_user, status=status_filter, unread_only=unread_only, limit=limit, page=page
        )
    except MESSAGING_ERRORS as e:
        raise _http_error(e)
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur serveur")
    return {"conversations": conversations, "page": page, "limit": limit}


@router.post("/conversations", response_model=ConversationDetail, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    data: ConversationCreate,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await MessagingService(db).create_conversation(current_user, data)
    except MESSAGING_ERRORS as e:
        raise _http_error(e)
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la création de la conversation")


@router.get("/conversations/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(
    conversation_id: int,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await MessagingService(db).get_conversation(conversation_id, current_user)
    except MESSAGING_ERRORS as e:
        raise _http_error(e)


@router.patch("/conversations/{conversation_id}", response_model=ConversationOut)
async def update_conversation_status(
    conversation_id: int,
    data: ConversationStatusUpdate,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await MessagingService(db).update_status(conversation_id, current_user, data.status)
    except MESSAGING_ERRORS as e:
        raise _http_error(e)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageOut,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: int,
    data: MessageCreate,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await MessagingService(db).add_message(conversation_id, current_user, data.content)
    except MESSAGING_ERRORS as e:
        raise _http_error(e)
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de l'envoi du message")


@router.get("/unread-count")
async def unread_count(current_user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    try:
        count = await MessagingService(db).unread_count(current_user)
    except MessagingPermissionError as e:
        raise _http_error(e)
    return {"unreadCount": count}
