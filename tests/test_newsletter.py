import pytest
from sqlalchemy import select

from envie2sortir.auth.models import User
from tests.helpers import auth_headers


async def _subscribe(client, email="lecteur@example.com", consent=True, ip="10.0.0.1"):
    return await client.post(
        "/api/newsletter/subscribe",
        json={"email": email, "consent": consent},
        headers={"x-forwarded-for": ip},
    )


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_creates_newsletter_account(self, client, db):
        response = await _subscribe(client, email="  Lecteur@Example.com ")
        assert response.status_code == 200
        assert response.json()["success"] is True

        user = (await db.execute(select(User).where(User.email == "lecteur@example.com"))).scalars().one()
        assert user.newsletter_opt_in is True
        assert user.hashed_password is None
        assert user.first_name == "lecteur"
        assert user.preferences["newsletterConsent"] is True
        assert user.preferences["ipAddress"] == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_already_subscribed(self, client):
        await _subscribe(client)
        response = await _subscribe(client)
        assert response.status_code == 409
        assert response.json()["detail"] == "Cette adresse email est déjà inscrite à notre newsletter."

    @pytest.mark.asyncio
    async def test_reactivates_existing_account(self, client, db, make_user):
        user = await make_user()
        response = await _subscribe(client, email=user.email)
        assert response.status_code == 200
        assert "réactivée" in response.json()["message"]

        await db.refresh(user)
        assert user.newsletter_opt_in is True

    @pytest.mark.asyncio
    async def test_consent_required(self, client):
        response = await _subscribe(client, consent=False)
        assert response.status_code == 400
        assert response.json()["detail"] == "Vous devez accepter de recevoir nos communications"

        response = await client.post("/api/newsletter/subscribe", json={"email": "lecteur@example.com"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_email(self, client):
        response = await _subscribe(client, email="pas-un-email")
        assert response.status_code == 400
        assert response.json()["detail"] == "Adresse email invalide"

    @pytest.mark.asyncio
    async def test_rate_limited_per_ip(self, client):
        for i in range(3):
            await _subscribe(client, email=f"lecteur{i}@example.com")
        response = await _subscribe(client, email="lecteur9@example.com")
        assert response.status_code == 429

        response = await _subscribe(client, email="lecteur9@example.com", ip="10.0.0.2")
        assert response.status_code == 200


class TestUnsubscribe:
    @pytest.mark.asyncio
    async def test_unsubscribe_then_again(self, client, db):
        await _subscribe(client)
        response = await client.post("/api/newsletter/unsubscribe", json={"email": "lecteur@example.com"})
        assert response.status_code == 200

        user = (await db.execute(select(User).where(User.email == "lecteur@example.com"))).scalars().one()
        assert user.newsletter_opt_in is False

        response = await client.post("/api/newsletter/unsubscribe", json={"email": "lecteur@example.com"})
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_email(self, client):
        response = await client.post("/api/newsletter/unsubscribe", json={"email": "inconnu@example.com"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_link(self, client):
        await _subscribe(client)
        response = await client.get("/api/newsletter/unsubscribe", params={"email": "LECTEUR@example.com"})
        assert response.status_code == 200
        assert response.json()["success"] is True

    @pytest.mark.asyncio
    async def test_link_without_email(self, client):
        response = await client.get("/api/newsletter/unsubscribe")
        assert response.status_code == 400
        assert response.json()["detail"] == "Email requis"


class TestSubscriberAdmin:
    @pytest.mark.asyncio
    async def test_list_and_export(self, client, make_user):
        admin = await make_user(email="admin@example.com", role="admin")
        await make_user(email="abonne@example.com", newsletter_opt_in=True, is_verified=True)
        await make_user(email="silencieux@example.com")

        body = (await client.get("/api/admin/newsletter/subscribers", headers=auth_headers(admin))).json()
        assert body["total"] == 1
        assert body["subscribers"][0]["email"] == "abonne@example.com"

        response = await client.get("/api/admin/newsletter/export", headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.splitlines()
        assert lines[0] == "email,prenom,nom,verifie,inscrit_le"
        assert lines[1].startswith("abonne@example.com,Marie,Curie,oui,")

    @pytest.mark.asyncio
    async def test_admin_only(self, client, make_user):
        user = await make_user()
        response = await client.get("/api/admin/newsletter/subscribers", headers=auth_headers(user))
        assert response.status_code == 403
