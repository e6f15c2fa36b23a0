from fastapi import Depends, HTTPException, status
from envie2sortir.auth.dependencies import get_current_user


def require_role(*roles: str):
    def wrapper(user=Depends(get_current_user)):
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Accès interdit (rôle requis)"
            )
        return user
    return wrapper


require_admin = require_role("admin")
require_professional = require_role("pro")
require_user = require_role("user", "admin")
