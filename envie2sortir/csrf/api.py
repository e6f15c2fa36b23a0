from fastapi import APIRouter, Request

from envie2sortir.csrf.tokens import generate_csrf_token, session_id_for

router = APIRouter(prefix="/api/csrf", tags=["csrf"])


@router.get("/token")
async def csrf_token(request: Request):
    return {"csrfToken": generate_csrf_token(session_id_for(request))}
