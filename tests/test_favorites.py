import pytest

from envie2sortir.establishments.models import Image
from tests.helpers import auth_headers


class TestFavorites:
    @pytest.mark.asyncio
    async def test_add_list_remove(self, client, db, make_user, make_professional, make_establishment):
        establishment = await make_establishment(await make_professional())
        db.add(Image(establishment_id=establishment.id, url="/static/uploads/bistrot.jpg", is_primary=True))
        await db.commit()
        user = await make_user()
        headers = auth_headers(user)

        response = await client.post("/api/user/favorites", json={"establishmentId": establishment.id}, headers=headers)
        assert response.status_code == 201
        assert response.json()["success"] is True

        favorites = (await client.get("/api/user/favorites", headers=headers)).json()["favorites"]
        assert len(favorites) == 1
        assert favorites[0]["establishment"]["name"] == "Le Bistrot"
        assert favorites[0]["establishment"]["primary_image"] == "/static/uploads/bistrot.jpg"

        response = await client.delete(f"/api/user/favorites/{establishment.id}", headers=headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Favori retiré"
        assert (await client.get("/api/user/favorites", headers=headers)).json()["favorites"] == []

    @pytest.mark.asyncio
    async def test_duplicate(self, client, make_user, make_professional, make_establishment):
        establishment = await make_establishment(await make_professional())
        headers = auth_headers(await make_user())

        await client.post("/api/user/favorites", json={"establishmentId": establishment.id}, headers=headers)
        response = await client.post("/api/user/favorites", json={"establishmentId": establishment.id}, headers=headers)
        assert response.status_code == 409
        assert response.json()["detail"] == "Établissement déjà dans vos favoris"

    @pytest.mark.asyncio
    async def test_unknown_establishment(self, client, make_user):
        headers = auth_headers(await make_user())
        response = await client.post("/api/user/favorites", json={"establishmentId": 404}, headers=headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_remove_missing(self, client, make_user):
        headers = auth_headers(await make_user())
        response = await client.delete("/api/user/favorites/12", headers=headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Favori non trouvé"

    @pytest.mark.asyncio
    async def test_favorites_are_per_user(self, client, make_user, make_professional, make_establishment):
        establishment = await make_establishment(await make_professional())
        marie = auth_headers(await make_user())
        jean = auth_headers(await make_user(email="jean@example.com"))

        await client.post("/api/user/favorites", json={"establishmentId": establishment.id}, headers=marie)
        assert (await client.get("/api/user/favorites", headers=jean)).json()["favorites"] == []

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        assert (await client.get("/api/user/favorites")).status_code == 401
