from typing import Optional, Union
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
import logging

from envie2sortir.db.session import get_db
from envie2sortir.auth.models import User
from envie2sortir.auth.jwt_handler import decode_access_token
from envie2sortir.professionals.models import Professional

logger = logging.getLogger(__name__)

# Utilisé pour extraire le token depuis le header Authorization
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

# Tokens invalidés par /auth/logout (mémoire du process)
token_blacklist = set()

Account = Union[User, Professional]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _load_account(db: AsyncSession, payload: dict) -> Optional[Account]:
    try:
        account_id = int(payload.get("user_id"))
    except (ValueError, TypeError):
        logger.warning(f"⚠️ Champ 'user_id' mal formé dans token : {payload.get('user_id')}")
        return None

    model = Professional if payload.get("user_type") == "professional" else User
    result = await db.execute(select(model).where(model.id == account_id))
    return result.scalars().first()


# 🔒 Récupération obligatoire du compte (utilisateur ou professionnel)
async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> Account:
    """
    🔐 Récupère le compte courant à partir du token JWT.
    """
    if not token:
        logger.warning("⛔ Accès refusé : token manquant")
        raise _unauthorized("Token d'authentification manquant")

    if token in token_blacklist:
        logger.warning("⛔ Token révoqué présenté")
        raise _unauthorized("Token révoqué")

    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized("Token invalide ou expiré")

    account = await _load_account(db, payload)
    if not account:
        logger.warning(f"❌ Compte introuvable : sub={payload.get('sub')}")
        raise _unauthorized("Utilisateur non trouvé")

    logger.info(f"✅ Compte authentifié : type={account.user_type}, id={account.id}")
    return account


# 🔓 Version non bloquante
async def get_current_user_optional(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> Optional[Account]:
    """
    Retourne le compte si le token est valide, sinon None.
    """
    if not token or token in token_blacklist:
        return None

    payload = decode_access_token(token)
    if payload is None:
        return None

    return await _load_account(db, payload)
