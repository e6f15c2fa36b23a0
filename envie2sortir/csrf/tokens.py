import hashlib
import hmac
import secrets
import time
from typing import Optional

from fastapi import Request

from envie2sortir.config import settings
from envie2sortir.utils.rate_limit import get_client_ip


def session_id_for(request: Request) -> str:
    """Empreinte du client : IP + User-Agent."""
    raw = f"{get_client_ip(request)}|{request.headers.get('user-agent', '')}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _signature(session_id: str, timestamp: str, nonce: str) -> str:
    message = f"{session_id}.{timestamp}.{nonce}".encode("utf-8")
    return hmac.new(settings.JWT_SECRET.encode("utf-8"), message, hashlib.sha256).hexdigest()


def generate_csrf_token(session_id: str, now: Optional[float] = None) -> str:
    timestamp = str(int(now if now is not None else time.time()))
    nonce = secrets.token_hex(16)
    return f"{timestamp}.{nonce}.{_signature(session_id, timestamp, nonce)}"


def validate_csrf_token(token: Optional[str], session_id: str, now: Optional[float] = None) -> bool:
    if not token:
        return False
    parts = token.split(".")
    if len(parts) != 3:
        return False
    timestamp, nonce, signature = parts
    if not timestamp.isdigit():
        return False

    now = now if now is not None else time.time()
    age = now - int(timestamp)
    if age < 0 or age > settings.CSRF_TOKEN_TTL_SECONDS:
        return False
    return hmac.compare_digest(signature, _signature(session_id, timestamp, nonce))
