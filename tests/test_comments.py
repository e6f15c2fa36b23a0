import pytest

from envie2sortir.comments.moderation import ModerationError, is_profane, validate_comment_content
from envie2sortir.comments.schemas import CommentCreate
from tests.helpers import auth_headers

GOOD_REVIEW = "Très bonne adresse, service attentionné"


class TestModeration:
    @pytest.mark.parametrize("text", [
        "Service de merde",
        "C'est de la MERDE",
        "Un vrai enfoiré ce serveur",
        "what the fuck is this",
        "quel bordel !",
    ])
    def test_profane(self, text):
        assert is_profane(text)

    @pytest.mark.parametrize("text", [
        GOOD_REVIEW,
        "Accueil chaleureux et cuisine soignée",
        "Une salle lumineuse, on reviendra",
        "Consommations correctes",
    ])
    def test_clean(self, text):
        assert not is_profane(text)

    def test_length_bounds(self):
        with pytest.raises(ModerationError, match="au moins 10 caractères"):
            validate_comment_content("   trop   ")
        with pytest.raises(ModerationError, match="1000 caractères"):
            validate_comment_content("a" * 1001)

    def test_returns_trimmed_content(self):
        assert validate_comment_content(f"  {GOOD_REVIEW}  ") == GOOD_REVIEW

    def test_profane_message(self):
        with pytest.raises(ModerationError, match="mots inappropriés"):
            validate_comment_content("Franchement c'était de la merde")


class TestRatingNormalization:
    @pytest.mark.parametrize("rating, expected", [
        (4, 4), (1, 1), (5, 5), (0, None), (6, None), (3.5, None), ("4", None), (True, None), (None, None),
    ])
    def test_rating(self, rating, expected):
        data = CommentCreate(establishmentId=1, content=GOOD_REVIEW, rating=rating)
        assert data.rating == expected


class TestCommentEndpoints:
    @pytest.mark.asyncio
    async def test_create_then_update(self, client, db, make_user, make_professional, make_establishment):
        establishment = await make_establishment(await make_professional())
        user = await make_user()
        payload = {"establishmentId": establishment.id, "content": GOOD_REVIEW, "rating": 4}

        response = await client.post("/api/user/comments", json=payload, headers=auth_headers(user))
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Avis ajouté"
        assert body["comment"]["user"]["first_name"] == "Marie"
        assert body["comment"]["establishment"]["slug"] == establishment.slug

        payload.update(content="Encore mieux la seconde fois", rating=5)
        response = await client.post("/api/user/comments", json=payload, headers=auth_headers(user))
        assert response.json()["message"] == "Avis mis à jour"
        assert response.json()["comment"]["id"] == body["comment"]["id"]

        await db.refresh(establishment)
        assert establishment.total_comments == 1
        assert establishment.avg_rating == 5

    @pytest.mark.asyncio
    async def test_stats_ignore_missing_ratings(self, client, db, make_user, make_professional, make_establishment):
        establishment = await make_establishment(await make_professional())
        authors = [await make_user(email=f"client{i}@example.com") for i in range(3)]
        for author, rating in zip(authors, (4, 5, None)):
            await client.post(
                "/api/user/comments",
                json={"establishmentId": establishment.id, "content": GOOD_REVIEW, "rating": rating},
                headers=auth_headers(author),
            )

        await db.refresh(establishment)
        assert establishment.total_comments == 3
        assert establishment.avg_rating == 4.5

        body = (await client.get(f"/api/establishments/{establishment.id}/comments")).json()
        assert body["total"] == 3

    @pytest.mark.asyncio
    async def test_profanity_rejected(self, client, make_user, make_professional, make_establishment):
        establishment = await make_establishment(await make_professional())
        user = await make_user()
        response = await client.post(
            "/api/user/comments",
            json={"establishmentId": establishment.id, "content": "Service de merde, à éviter"},
            headers=auth_headers(user),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_establishment(self, client, make_user):
        user = await make_user()
        response = await client.post(
            "/api/user/comments", json={"establishmentId": 999, "content": GOOD_REVIEW}, headers=auth_headers(user)
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_professionals_cannot_comment(self, client, make_professional, make_establishment):
        owner = await make_professional()
        establishment = await make_establishment(owner)
        response = await client.post(
            "/api/user/comments",
            json={"establishmentId": establishment.id, "content": GOOD_REVIEW},
            headers=auth_headers(owner),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_my_comments(self, client, make_user, make_professional, make_establishment):
        establishment = await make_establishment(await make_professional())
        user = await make_user()
        await client.post(
            "/api/user/comments",
            json={"establishmentId": establishment.id, "content": GOOD_REVIEW},
            headers=auth_headers(user),
        )
        body = (await client.get("/api/user/comments", headers=auth_headers(user))).json()
        assert [c["content"] for c in body["comments"]] == [GOOD_REVIEW]


class TestCommentDeletion:
    async def _comment(self, client, author, establishment):
        response = await client.post(
            "/api/user/comments",
            json={"establishmentId": establishment.id, "content": GOOD_REVIEW, "rating": 3},
            headers=auth_headers(author),
        )
        return response.json()["comment"]["id"]

    @pytest.mark.asyncio
    async def test_author_deletes(self, client, db, make_user, make_professional, make_establishment):
        establishment = await make_establishment(await make_professional())
        user = await make_user()
        comment_id = await self._comment(client, user, establishment)

        response = await client.delete(f"/api/user/comments/{comment_id}", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["message"] == "Avis supprimé"

        await db.refresh(establishment)
        assert establishment.total_comments == 0
        assert establishment.avg_rating is None

    @pytest.mark.asyncio
    async def test_other_user_forbidden(self, client, make_user, make_professional, make_establishment):
        establishment = await make_establishment(await make_professional())
        author = await make_user()
        other = await make_user(email="autre@example.com")
        comment_id = await self._comment(client, author, establishment)

        response = await client.delete(f"/api/user/comments/{comment_id}", headers=auth_headers(other))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_deletes_any(self, client, make_user, make_professional, make_establishment):
        establishment = await make_establishment(await make_professional())
        author = await make_user()
        admin = await make_user(email="admin@example.com", role="admin")
        comment_id = await self._comment(client, author, establishment)

        response = await client.delete(f"/api/user/comments/{comment_id}", headers=auth_headers(admin))
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown(self, client, make_user):
        user = await make_user()
        assert (await client.delete("/api/user/comments/999", headers=auth_headers(user))).status_code == 404
