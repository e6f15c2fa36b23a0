import json
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from envie2sortir.config import settings
from envie2sortir.csrf.tokens import session_id_for, validate_csrf_token

logger = logging.getLogger(__name__)

SAFE_METHODS = ("GET", "HEAD", "OPTIONS")

PUBLIC_ENDPOINTS = (
    "/auth/login",
    "/auth/register",
    "/api/csrf/token",
    "/api/newsletter/",
    "/api/analytics/track",
    "/api/deals/engagement",
    "/api/professionals/waitlist/join",
)


def requires_csrf(method: str, path: str) -> bool:
    if method in SAFE_METHODS:
        return False
    return not any(path.startswith(endpoint) for endpoint in PUBLIC_ENDPOINTS)


async def _token_from_request(request: Request):
    token = request.headers.get("x-csrf-token")
    if token:
        return token
    if "application/json" in request.headers.get("content-type", ""):
        try:
            body = json.loads(await request.body() or b"{}")
        except ValueError:
            return None
        if isinstance(body, dict):
            return body.get("csrfToken")
    return None


async def csrf_middleware(request: Request, call_next):
    if not settings.CSRF_ENABLED or not requires_csrf(request.method, request.url.path):
        return await call_next(request)

    token = await _token_from_request(request)
    if not token:
        logger.warning(f"🔐 CSRF token manquant : {request.method} {request.url.path}")
        return JSONResponse(status_code=403, content={"detail": "CSRF token manquant"})

    if not validate_csrf_token(token, session_id_for(request)):
        logger.warning(f"🔐 Token CSRF invalide : {request.method} {request.url.path}")
        return JSONResponse(status_code=403, content={"detail": "Token CSRF invalide ou expiré"})

    return await call_next(request)
