from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from datetime import datetime
import traceback
import time
import logging

from envie2sortir.auth import models, schemas, password, jwt_handler
from envie2sortir.auth.dependencies import get_current_user, oauth2_scheme, token_blacklist
from envie2sortir.auth.permissions import require_admin
from envie2sortir.db.session import get_db
from envie2sortir.professionals.models import Professional
from envie2sortir.utils.code import generate_verification_code
from envie2sortir.utils.email import send_email_async

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

# Codes de réinitialisation en attente, par email
reset_codes = {}

RESET_CODE_TTL_SECONDS = 600
MAX_CODE_ATTEMPTS = 5


async def get_user_by_email(db: AsyncSession, email: str):
    result = await db.execute(select(models.User).filter(models.User.email == email))
    return result.scalars().first()


async def get_professional_by_email(db: AsyncSession, email: str):
    result = await db.execute(select(Professional).filter(Professional.email == email))
    return result.scalars().first()


async def find_account(db: AsyncSession, email: str):
    """Compte utilisateur (avec mot de passe) puis compte professionnel."""
    user = await get_user_by_email(db, email)
    if user and user.hashed_password:
        return user
    return await get_professional_by_email(db, email)


def _stored_hash(account) -> str:
    return account.password_hash if account.user_type == "professional" else account.hashed_password


def _issue_token(account) -> str:
    return jwt_handler.create_access_token({
        "user_id": account.id,
        "user_type": account.user_type,
        "role": account.role,
    })


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(user: schemas.UserRegister, db: AsyncSession = Depends(get_db)):
    try:
        if await get_professional_by_email(db, user.email):
            raise HTTPException(status_code=400, detail="Email déjà enregistré")

        existing = await get_user_by_email(db, user.email)
        if existing and existing.hashed_password:
            raise HTTPException(status_code=400, detail="Email déjà enregistré")

        hashed = password.hash_password(user.password)
        if existing:
            # Compte créé par la newsletter : on le complète
            db_user = existing
            db_user.hashed_password = hashed
            db_user.first_name = user.first_name
            db_user.last_name = user.last_name
            db_user.phone = user.phone
        else:
            db_user = models.User(
                email=user.email,
                phone=user.phone,
                hashed_password=hashed,
                first_name=user.first_name,
                last_name=user.last_name,
                role="user",
            )
            db.add(db_user)
        await db.commit()
        await db.refresh(db_user)

        logger.info(f"✅ Nouvel utilisateur inscrit : {db_user.id}")
        return {"msg": "Utilisateur enregistré avec succès", "user_id": db_user.id}

    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur interne lors de l'inscription")


@router.post("/login")
async def login(credentials: schemas.UserLogin, db: AsyncSession = Depends(get_db)):
    try:
        account = await find_account(db, credentials.email)
        if not account or not password.verify_password(credentials.password, _stored_hash(account)):
            logger.warning("🔐 Échec de connexion")
            raise HTTPException(status_code=401, detail="Identifiant ou mot de passe incorrect")

        return {
            "access_token": _issue_token(account),
            "token_type": "bearer",
            "user": schemas.AccountOut.model_validate(account),
        }
    except HTTPException:
        raise
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur interne lors de la connexion")


@router.post("/logout")
async def logout(token: str = Depends(oauth2_scheme), account=Depends(get_current_user)):
    token_blacklist.add(token)
    logger.info(f"👋 Déconnexion : {account.user_type}:{account.id}")
    return {"msg": "Déconnecté avec succès"}


@router.get("/me")
async def get_me(account=Depends(get_current_user)):
    return {"user": schemas.AccountOut.model_validate(account)}


def cleanup_expired_codes() -> int:
    current_time = time.time()
    expired = [email for email, entry in reset_codes.items() if current_time > entry["expires"]]
    for email in expired:
        reset_codes.pop(email, None)
    return len(expired)


@router.post("/forgot-password")
async def forgot_password(data: schemas.ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    cleanup_expired_codes()
    try:
        account = await find_account(db, data.email)
        if not account:
            raise HTTPException(status_code=404, detail="Utilisateur non trouvé")

        code = generate_verification_code()
        reset_codes[data.email] = {
            "code": code,
            "expires": time.time() + RESET_CODE_TTL_SECONDS,
            "verified": False,
            "attempts": 0,
            "user_type": account.user_type,
        }

        body = f"Voici votre code de réinitialisation : {code}\nIl expire dans 10 minutes."
        await send_email_async("Réinitialisation de mot de passe", data.email, body)
        return {"msg": "Code de réinitialisation envoyé"}

    except HTTPException:
        raise
    except Exception:
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur interne")


def _pending_code(email: str) -> dict:
    entry = reset_codes.get(email)
    if not entry:
        raise HTTPException(status_code=400, detail="Code invalide")
    if time.time() > entry["expires"]:
        reset_codes.pop(email, None)
        raise HTTPException(status_code=400, detail="Code expiré")
    return entry


@router.post("/verify-code")
async def verify_code(data: schemas.VerifyCodeRequest):
    entry = _pending_code(data.email)
    if entry["code"] != data.code:
        entry["attempts"] = entry.get("attempts", 0) + 1
        if entry["attempts"] >= MAX_CODE_ATTEMPTS:
            reset_codes.pop(data.email, None)
            logger.warning(f"🚫 Code de réinitialisation invalidé après {MAX_CODE_ATTEMPTS} essais : {data.email}")
            raise HTTPException(status_code=429, detail="Trop de tentatives, demandez un nouveau code")
        raise HTTPException(status_code=400, detail="Code invalide")
    entry["verified"] = True
    return {"msg": "Code vérifié avec succès", "email": data.email}


@router.post("/reset-password")
async def reset_password(data: schemas.ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    entry = _pending_code(data.email)
    if not entry["verified"]:
        raise HTTPException(status_code=400, detail="Aucun code vérifié trouvé. Veuillez d'abord vérifier votre code.")

    try:
        if entry["user_type"] == "professional":
            account = await get_professional_by_email(db, data.email)
        else:
            account = await get_user_by_email(db, data.email)
        if not account:
            raise HTTPException(status_code=404, detail="Utilisateur non trouvé")

        hashed = password.hash_password(data.new_password)
        if account.user_type == "professional":
            account.password_hash = hashed
        else:
            account.hashed_password = hashed
        account.updated_at = datetime.utcnow()
        await db.commit()

        reset_codes.pop(data.email, None)
        logger.info(f"🔑 Mot de passe réinitialisé : {account.user_type}:{account.id}")
        return {"msg": "Mot de passe réinitialisé avec succès"}

    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Erreur interne")


@router.post("/admin/verify-password")
async def verify_admin_password(data: schemas.AdminPasswordCheck, admin=Depends(require_admin)):
    if not password.verify_password(data.password, admin.hashed_password):
        logger.warning(f"🔐 Mot de passe admin incorrect pour l'admin {admin.id}")
        raise HTTPException(status_code=401, detail="Mot de passe incorrect")
    return {"success": True, "verified": True}


