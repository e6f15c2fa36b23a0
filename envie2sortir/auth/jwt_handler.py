import logging
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError

from envie2sortir.config import settings

logger = logging.getLogger(__name__)

ACCOUNT_TYPES = ("user", "professional")


def account_subject(user_type: str, user_id) -> str:
    """'professional:12' ou 'user:7' : les deux tables ont des ids qui se recoupent."""
    return f"{user_type}:{user_id}"


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    claims = dict(data)
    claims.setdefault("user_type", "user")
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    claims["exp"] = expire
    if "user_id" in claims:
        claims["sub"] = account_subject(claims["user_type"], claims["user_id"])

    logger.info(f"🎟️ Jeton émis pour {claims.get('sub')} (expire {expire:%Y-%m-%d %H:%M})")
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Payload du jeton, ou None s'il est expiré, falsifié ou incohérent."""
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"❌ Jeton rejeté : {e}")
        return None

    subject = claims.get("sub")
    if not subject:
        logger.warning("⚠️ Jeton sans 'sub'")
        return None
    if claims.get("user_type") not in ACCOUNT_TYPES:
        logger.warning(f"⚠️ Type de compte inconnu dans le jeton : {claims.get('user_type')}")
        return None
    if subject != account_subject(claims["user_type"], claims.get("user_id")):
        logger.warning(f"⚠️ 'sub' incohérent avec le compte : {subject}")
        return None
    return claims
