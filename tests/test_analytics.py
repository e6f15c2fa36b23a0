from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from envie2sortir.analytics import services
from envie2sortir.analytics.schemas import SearchEvent
from tests.helpers import auth_headers


@pytest.fixture(autouse=True)
def collections(monkeypatch):
    mongo = AsyncMongoMockClient()["envie2sortir_test"]
    monkeypatch.setattr(services, "click_events_collection", mongo["click_events"])
    monkeypatch.setattr(services, "search_events_collection", mongo["search_events"])
    return mongo


@pytest_asyncio.fixture
async def establishment(make_professional, make_establishment):
    return await make_establishment(await make_professional())


def click(establishment_id, element_id="menu", element_type="button", **extra):
    return {
        "establishmentId": establishment_id,
        "elementType": element_type,
        "elementId": element_id,
        "action": "click",
        **extra,
    }


class TestTracking:
    @pytest.mark.asyncio
    async def test_track_click(self, client, collections, establishment):
        response = await client.post("/api/analytics/track", json=click(establishment.id, elementName="Voir le menu"))
        assert response.status_code == 200
        assert response.json()["success"] is True

        document = await collections["click_events"].find_one({})
        assert document["establishment_id"] == establishment.id
        assert document["element_name"] == "Voir le menu"
        assert isinstance(document["timestamp"], datetime)

    @pytest.mark.asyncio
    async def test_missing_fields(self, client, establishment):
        payload = click(establishment.id)
        del payload["action"]
        response = await client.post("/api/analytics/track", json=payload)
        assert response.status_code == 400
        assert response.json()["detail"] == "Champs requis manquants"

    @pytest.mark.asyncio
    async def test_unknown_establishment(self, client):
        response = await client.post("/api/analytics/track", json=click(999))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_track_search_normalizes_term(self, client, collections):
        response = await client.post("/api/analytics/search", json={"searchTerm": "  Pizza ", "resultCount": 4})
        assert response.status_code == 200

        document = await collections["search_events"].find_one({})
        assert document["search_term"] == "  Pizza "
        assert document["term"] == "pizza"

    @pytest.mark.asyncio
    async def test_empty_search_term(self, client):
        response = await client.post("/api/analytics/search", json={"searchTerm": ""})
        assert response.status_code == 422


class TestAggregations:
    def test_period_start(self):
        now = datetime(2025, 6, 11)
        assert services.period_start("7d", now) == datetime(2025, 6, 4)
        assert services.period_start("inconnu", now) == datetime(2025, 5, 12)

    @pytest.mark.asyncio
    async def test_clicks_by_establishment(self, collections):
        old = datetime.utcnow() - timedelta(days=60)
        await collections["click_events"].insert_many([
            {"establishment_id": 1, "element_type": "button", "element_id": "menu", "timestamp": datetime.utcnow()},
            {"establishment_id": 2, "element_type": "button", "element_id": "menu", "timestamp": datetime.utcnow()},
            {"establishment_id": 2, "element_type": "link", "element_id": "site", "timestamp": datetime.utcnow()},
            {"establishment_id": 3, "element_type": "button", "element_id": "menu", "timestamp": old},
        ])

        rows = await services.clicks_by_establishment(period="30d")
        assert [(r["establishmentId"], r["clicks"]) for r in rows] == [(2, 2), (1, 1)]

        rows = await services.clicks_by_establishment(period="90d")
        assert len(rows) == 3

    @pytest.mark.asyncio
    async def test_clicks_by_element(self, collections):
        now = datetime.utcnow()
        await collections["click_events"].insert_many([
            {"establishment_id": 1, "element_type": "button", "element_id": "menu", "timestamp": now},
            {"establishment_id": 1, "element_type": "button", "element_id": "menu", "timestamp": now},
            {"establishment_id": 1, "element_type": "link", "element_id": "site", "timestamp": now},
            {"establishment_id": 2, "element_type": "link", "element_id": "site", "timestamp": now},
        ])

        rows = await services.clicks_by_element(1)
        assert rows[0] == {"elementType": "button", "elementId": "menu", "clicks": 2}
        assert rows[1] == {"elementType": "link", "elementId": "site", "clicks": 1}

    @pytest.mark.asyncio
    async def test_top_searches_conversion(self):
        for clicked in (12, None, None, None):
            await services.track_search(SearchEvent(searchTerm="Pizza", resultCount=3, clickedEstablishmentId=clicked))
        await services.track_search(SearchEvent(searchTerm="karaoké", resultCount=0))

        searches = await services.top_searches()
        assert searches[0] == {
            "searchTerm": "pizza",
            "searchCount": 4,
            "clickCount": 1,
            "conversionRate": 25.0,
            "hasResults": True,
        }
        assert searches[1]["hasResults"] is False
        assert searches[1]["conversionRate"] == 0


class TestAdminRoutes:
    @pytest.mark.asyncio
    async def test_admin_views(self, client, make_user, establishment):
        admin = await make_user(email="admin@example.com", role="admin")
        await client.post("/api/analytics/track", json=click(establishment.id))
        await client.post("/api/analytics/search", json={"searchTerm": "bistrot", "resultCount": 1})

        body = (await client.get("/api/admin/analytics/establishments", headers=auth_headers(admin))).json()
        assert body["establishments"][0]["establishmentId"] == establishment.id

        body = (await client.get(
            "/api/admin/analytics/establishments",
            params={"establishmentId": establishment.id},
            headers=auth_headers(admin),
        )).json()
        assert body["elements"] == [{"elementType": "button", "elementId": "menu", "clicks": 1}]

        body = (await client.get("/api/admin/analytics/searches", headers=auth_headers(admin))).json()
        assert body["searches"][0]["searchTerm"] == "bistrot"

    @pytest.mark.asyncio
    async def test_admin_only(self, client, make_user):
        user = await make_user()
        response = await client.get("/api/admin/analytics/searches", headers=auth_headers(user))
        assert response.status_code == 403
