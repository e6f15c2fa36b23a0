from envie2sortir.auth.jwt_handler import create_access_token

DEFAULT_PASSWORD = "motdepasse123"


def auth_headers(account) -> dict:
    token = create_access_token({
        "user_id": account.id,
        "user_type": account.user_type,
        "role": account.role,
    })
    return {"Authorization": f"Bearer {token}"}
