"""Tests des comptes : inscription, connexion, jetons et réinitialisation du mot de passe."""
import time
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from jose import jwt

from envie2sortir.auth import api as auth_api
from envie2sortir.auth.jwt_handler import create_access_token, decode_access_token
from envie2sortir.auth.password import hash_password, verify_password
from envie2sortir.config import settings
from tests.helpers import DEFAULT_PASSWORD, auth_headers


@pytest.fixture(autouse=True)
def clear_reset_codes():
    yield
    auth_api.reset_codes.clear()


def registration_payload(**overrides):
    payload = {
        "email": "Lucie@Example.com",
        "password": "unmotdepasse",
        "passwordConfirm": "unmotdepasse",
        "firstName": "Lucie",
        "lastName": "Aubrac",
    }
    payload.update(overrides)
    return payload


class TestPasswordHashing:
    def test_hash_then_verify(self):
        hashed = hash_password("secret-123")
        assert hashed != "secret-123"
        assert verify_password("secret-123", hashed)
        assert not verify_password("autre", hashed)

    def test_missing_or_malformed_hash(self):
        assert not verify_password("secret", None)
        assert not verify_password("secret", "pas-un-hash-bcrypt")


class TestJwtHandler:
    def test_subject_built_from_account(self):
        token = create_access_token({"user_id": 7, "user_type": "professional", "role": "pro"})
        payload = decode_access_token(token)
        assert payload["sub"] == "professional:7"
        assert payload["role"] == "pro"

    def test_expired_token_is_rejected(self):
        token = create_access_token({"user_id": 1, "user_type": "user"}, expires_delta=timedelta(seconds=-10))
        assert decode_access_token(token) is None

    def test_garbage_token(self):
        assert decode_access_token("abc.def.ghi") is None

    def test_subject_must_match_account(self):
        forged = jwt.encode(
            {"user_id": 7, "user_type": "user", "sub": "professional:7",
             "exp": datetime.utcnow() + timedelta(minutes=5)},
            settings.JWT_SECRET, algorithm=settings.ALGORITHM,
        )
        assert decode_access_token(forged) is None

    def test_unknown_account_type(self):
        assert decode_access_token(create_access_token({"user_id": 3, "user_type": "robot"})) is None


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_creates_user(self, client):
        response = await client.post("/auth/register", json=registration_payload())
        assert response.status_code == 201
        assert response.json()["user_id"] > 0

        login = await client.post("/auth/login", json={"email": "lucie@example.com", "password": "unmotdepasse"})
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client, make_user):
        await make_user(email="lucie@example.com")
        response = await client.post("/auth/register", json=registration_payload())
        assert response.status_code == 400
        assert response.json()["detail"] == "Email déjà enregistré"

    @pytest.mark.asyncio
    async def test_email_taken_by_professional(self, client, make_professional):
        await make_professional(email="lucie@example.com")
        response = await client.post("/auth/register", json=registration_payload())
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_password_mismatch(self, client):
        response = await client.post("/auth/register", json=registration_payload(passwordConfirm="autrechose"))
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_short_password(self, client):
        response = await client.post(
            "/auth/register", json=registration_payload(password="court", passwordConfirm="court")
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_completes_newsletter_only_account(self, client, db, make_user):
        """Un compte créé par la newsletter (sans mot de passe) est complété, pas dupliqué."""
        subscriber = await make_user(email="lucie@example.com", password=None, newsletter_opt_in=True)

        response = await client.post("/auth/register", json=registration_payload())
        assert response.status_code == 201
        assert response.json()["user_id"] == subscriber.id

        await db.refresh(subscriber)
        assert subscriber.hashed_password
        assert subscriber.newsletter_opt_in is True


class TestLogin:
    @pytest.mark.asyncio
    async def test_user_login(self, client, make_user):
        user = await make_user()
        response = await client.post("/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["user_type"] == "user"
        assert decode_access_token(body["access_token"])["user_id"] == user.id

    @pytest.mark.asyncio
    async def test_professional_login(self, client, make_professional):
        professional = await make_professional()
        response = await client.post(
            "/auth/login", json={"email": professional.email, "password": DEFAULT_PASSWORD}
        )
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "pro"

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, make_user):
        user = await make_user()
        response = await client.post("/auth/login", json={"email": user.email, "password": "mauvais-mdp"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Identifiant ou mot de passe incorrect"

    @pytest.mark.asyncio
    async def test_newsletter_only_account_cannot_login(self, client, make_user):
        await make_user(email="abonne@example.com", password=None)
        response = await client.post("/auth/login", json={"email": "abonne@example.com", "password": "x" * 8})
        assert response.status_code == 401


class TestSession:
    @pytest.mark.asyncio
    async def test_me(self, client, make_user):
        user = await make_user()
        response = await client.get("/auth/me", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["user"]["email"] == user.email

    @pytest.mark.asyncio
    async def test_me_requires_token(self, client):
        response = await client.get("/auth/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_revokes_token(self, client, make_user):
        user = await make_user()
        headers = auth_headers(user)

        response = await client.post("/auth/logout", headers=headers)
        assert response.status_code == 200
        assert response.json()["msg"] == "Déconnecté avec succès"

        response = await client.get("/auth/me", headers=headers)
        assert response.status_code == 401


class TestPasswordReset:
    @pytest.mark.asyncio
    async def test_full_reset_flow(self, client, make_user):
        user = await make_user()

        with patch("envie2sortir.auth.api.send_email_async", new=AsyncMock()) as send:
            response = await client.post("/auth/forgot-password", json={"email": user.email})
        assert response.status_code == 200
        send.assert_awaited_once()
        code = auth_api.reset_codes[user.email]["code"]
        assert code in send.await_args.args[2]

        response = await client.post("/auth/verify-code", json={"email": user.email, "code": code})
        assert response.status_code == 200

        response = await client.post("/auth/reset-password", json={
            "email": user.email,
            "newPassword": "nouveaumotdepasse",
            "confirmPassword": "nouveaumotdepasse",
        })
        assert response.status_code == 200
        assert user.email not in auth_api.reset_codes

        login = await client.post("/auth/login", json={"email": user.email, "password": "nouveaumotdepasse"})
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_email(self, client):
        with patch("envie2sortir.auth.api.send_email_async", new=AsyncMock()) as send:
            response = await client.post("/auth/forgot-password", json={"email": "inconnu@example.com"})
        assert response.status_code == 404
        send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_wrong_code(self, client):
        auth_api.reset_codes["marie@example.com"] = {
            "code": "123456", "expires": time.time() + 600, "verified": False, "user_type": "user",
        }
        response = await client.post("/auth/verify-code", json={"email": "marie@example.com", "code": "654321"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Code invalide"

    @pytest.mark.asyncio
    async def test_code_invalidated_after_repeated_failures(self, client):
        auth_api.reset_codes["marie@example.com"] = {
            "code": "123456", "expires": time.time() + 600, "verified": False, "attempts": 0, "user_type": "user",
        }
        wrong = {"email": "marie@example.com", "code": "000000"}
        for _ in range(auth_api.MAX_CODE_ATTEMPTS - 1):
            assert (await client.post("/auth/verify-code", json=wrong)).status_code == 400

        response = await client.post("/auth/verify-code", json=wrong)
        assert response.status_code == 429
        assert "marie@example.com" not in auth_api.reset_codes

        # Le bon code ne sert plus à rien
        response = await client.post("/auth/verify-code", json={"email": "marie@example.com", "code": "123456"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_expired_code(self, client):
        auth_api.reset_codes["marie@example.com"] = {
            "code": "123456", "expires": time.time() - 1, "verified": False, "user_type": "user",
        }
        response = await client.post("/auth/verify-code", json={"email": "marie@example.com", "code": "123456"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Code expiré"
        assert "marie@example.com" not in auth_api.reset_codes

    @pytest.mark.asyncio
    async def test_reset_requires_verified_code(self, client, make_user):
        user = await make_user()
        auth_api.reset_codes[user.email] = {
            "code": "123456", "expires": time.time() + 600, "verified": False, "user_type": "user",
        }
        response = await client.post("/auth/reset-password", json={
            "email": user.email,
            "newPassword": "nouveaumotdepasse",
            "confirmPassword": "nouveaumotdepasse",
        })
        assert response.status_code == 400

    def test_cleanup_expired_codes(self):
        auth_api.reset_codes["a@example.com"] = {"code": "1", "expires": time.time() - 5}
        auth_api.reset_codes["b@example.com"] = {"code": "2", "expires": time.time() + 600}
        assert auth_api.cleanup_expired_codes() == 1
        assert list(auth_api.reset_codes) == ["b@example.com"]


class TestAdminPasswordCheck:
    @pytest.mark.asyncio
    async def test_correct_password(self, client, make_user):
        admin = await make_user(email="admin@example.com", role="admin")
        response = await client.post(
            "/auth/admin/verify-password", json={"password": DEFAULT_PASSWORD}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "verified": True}

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, make_user):
        admin = await make_user(email="admin@example.com", role="admin")
        response = await client.post(
            "/auth/admin/verify-password", json={"password": "mauvais"}, headers=auth_headers(admin)
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_plain_user_forbidden(self, client, make_user):
        user = await make_user()
        response = await client.post(
            "/auth/admin/verify-password", json={"password": DEFAULT_PASSWORD}, headers=auth_headers(user)
        )
        assert response.status_code == 403
