from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging
import traceback

from envie2sortir.auth.permissions import require_admin
from envie2sortir.db.session import get_db
from envie2sortir.newsletter.schemas import NewsletterSubscribe, NewsletterUnsubscribe, SubscriberOut, normalize_email
from envie2sortir.newsletter.services import (
    subscribe_limiter, subscribe, unsubscribe, list_subscribers, subscribers_to_csv,
    SubscriberNotFoundError, SubscriptionConflictError,
)
from envie2sortir.utils.rate_limit import get_client_ip
from envie2sortir.utils.validation import first_error_message

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/newsletter", tags=["newsletter"])
admin_router = APIRouter(prefix="/api/admin/newsletter", tags=["admin"])


@router.post("/subscribe")
async def subscribe_newsletter(request: Request, payload: dict = Body(...), db: AsyncSession = Depends(get_db)):
    client_ip = get_client_ip(request)
    if not subscribe_limiter.is_allowed(client_ip):
        logger.warning(f"⚠️ Rate limit newsletter atteint pour {client_ip}")
        raise HTTPException(status_code=429, detail="Trop de tentatives. Veuillez réessayer dans quelques minutes.")

    try:
        data = NewsletterSubscribe.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=first_error_message(e))

    try:
        message = await subscribe(db, data.email, client_ip)
    except SubscriptionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Une erreur est survenue. Veuillez réessayer plus tard.")
    return {"success": True, "message": message}


async def _unsubscribe(db: AsyncSession, email: str) -> dict:
    try:
        await unsubscribe(db, email)
    except SubscriberNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SubscriptionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur lors de la désinscription")
    return {"success": True, "message": "Vous avez été désabonné avec succès de notre newsletter"}


@router.post("/unsubscribe")
async def unsubscribe_newsletter(payload: dict = Body(...), db: AsyncSession = Depends(get_db)):
    try:
        data = NewsletterUnsubscribe.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=first_error_message(e))
    return await _unsubscribe(db, data.email)


# Lien de désinscription des emails
@router.get("/unsubscribe")
async def unsubscribe_from_link(email: Optional[str] = Query(None), db: AsyncSession = Depends(get_db)):
    if not email:
        raise HTTPException(status_code=400, detail="Email requis")
    try:
        email = normalize_email(email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await _unsubscribe(db, email)


@admin_router.get("/subscribers")
async def subscribers(admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    users = await list_subscribers(db)
    return {"subscribers": [SubscriberOut.model_validate(u) for u in users], "total": len(users)}


@admin_router.get("/export")
async def export_subscribers(admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    users = await list_subscribers(db)
    logger.info(f"📤 Export newsletter ({len(users)} abonnés) par l'admin {admin.id}")
    return Response(
        content=subscribers_to_csv(users),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="newsletter-subscribers.csv"'},
    )
