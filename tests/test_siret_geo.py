import time
from unittest.mock import MagicMock, patch

import pytest
import requests

from envie2sortir.geo import services as geo
from envie2sortir.siret.insee import InseeClient, InseeError, clean_siret, format_address, validate_siret_format


def fake_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


INSEE_PAYLOAD = {
    "etablissement": {
        "siret": "73282932000074",
        "siren": "732829320",
        "dateCreationEtablissement": "1998-03-01",
        "uniteLegale": {
            "denominationUniteLegale": "LE BISTROT DIJONNAIS",
            "categorieJuridiqueUniteLegale": "5499",
            "activitePrincipaleUniteLegale": "56.10A",
        },
        "adresseEtablissement": {
            "numeroVoieEtablissement": "12",
            "typeVoieEtablissement": "RUE",
            "libelleVoieEtablissement": "DE LA LIBERTE",
            "codePostalEtablissement": "21000",
            "libelleCommuneEtablissement": "DIJON",
        },
        "periodesEtablissement": [{"etatAdministratifEtablissement": "A"}],
    }
}


class TestSiretFormat:
    def test_valid_luhn(self):
        assert validate_siret_format("73282932000074")

    def test_spaces_are_ignored(self):
        assert validate_siret_format("732 829 320 00074")
        assert clean_siret(" 732 829 320 00074 ") == "73282932000074"

    def test_bad_checksum(self):
        assert not validate_siret_format("73282932000075")

    @pytest.mark.parametrize("siret", ["", "1234", "7328293200007A", "732829320000740"])
    def test_bad_format(self, siret):
        assert not validate_siret_format(siret)

    def test_format_address(self):
        address = INSEE_PAYLOAD["etablissement"]["adresseEtablissement"]
        assert format_address(address) == "12 RUE DE LA LIBERTE, 21000 DIJON"


class TestInseeClient:
    def test_missing_credentials(self):
        client = InseeClient(consumer_key="", consumer_secret="")
        with pytest.raises(InseeError):
            client.get_establishment("73282932000074")

    def test_establishment_lookup(self):
        client = InseeClient(consumer_key="key", consumer_secret="secret")
        with patch("envie2sortir.siret.insee.requests") as mocked:
            mocked.post.return_value = fake_response(200, {"access_token": "tok", "expires_in": 3600})
            mocked.get.return_value = fake_response(200, INSEE_PAYLOAD)

            info = client.get_establishment("732 829 320 00074")

        assert info["denomination"] == "LE BISTROT DIJONNAIS"
        assert info["siren"] == "732829320"
        assert info["address"] == "12 RUE DE LA LIBERTE, 21000 DIJON"
        assert info["is_active"] is True
        assert mocked.get.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"

    def test_token_is_cached(self):
        client = InseeClient(consumer_key="key", consumer_secret="secret")
        with patch("envie2sortir.siret.insee.requests") as mocked:
            mocked.post.return_value = fake_response(200, {"access_token": "tok", "expires_in": 3600})
            mocked.get.return_value = fake_response(200, INSEE_PAYLOAD)

            client.get_establishment("73282932000074")
            client.get_establishment("73282932000074")

        assert mocked.post.call_count == 1

    def test_unknown_siret(self):
        client = InseeClient(consumer_key="key", consumer_secret="secret")
        with patch("envie2sortir.siret.insee.requests") as mocked:
            mocked.post.return_value = fake_response(200, {"access_token": "tok"})
            mocked.get.return_value = fake_response(404)
            assert client.get_establishment("73282932000074") is None

    def test_refused_authentication(self):
        client = InseeClient(consumer_key="key", consumer_secret="secret")
        with patch("envie2sortir.siret.insee.requests") as mocked:
            mocked.post.return_value = fake_response(401)
            with pytest.raises(InseeError):
                client.get_establishment("73282932000074")


class TestVerifySiretEndpoint:
    @pytest.mark.asyncio
    async def test_invalid_format(self, client):
        response = await client.post("/api/professionals/verify-siret", json={"siret": "123"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_known_siret(self, client, make_professional):
        await make_professional()
        info = {"siret": "73282932000074", "denomination": "LE BISTROT DIJONNAIS"}
        with patch("envie2sortir.professionals.api.insee_client") as insee:
            insee.get_establishment.return_value = info
            response = await client.post("/api/professionals/verify-siret", json={"siret": "73282932000074"})

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is True
        assert body["data"]["denomination"] == "LE BISTROT DIJONNAIS"
        assert body["alreadyRegistered"] is True

    @pytest.mark.asyncio
    async def test_not_found(self, client):
        with patch("envie2sortir.professionals.api.insee_client") as insee:
            insee.get_establishment.return_value = None
            response = await client.post("/api/professionals/verify-siret", json={"siret": "73282932000074"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_service_down(self, client):
        with patch("envie2sortir.professionals.api.insee_client") as insee:
            insee.get_establishment.side_effect = InseeError("indisponible")
            response = await client.post("/api/professionals/verify-siret", json={"siret": "73282932000074"})
        assert response.status_code == 503


FRENCH_API_PAYLOAD = {
    "features": [{
        "geometry": {"coordinates": [5.0415, 47.3220]},
        "properties": {"label": "12 Rue de la Liberté 21000 Dijon", "city": "Dijon", "postcode": "21000", "score": 0.93},
    }]
}

NOMINATIM_PAYLOAD = [{
    "lat": "48.8566",
    "lon": "2.3522",
    "display_name": "Paris, Île-de-France, France",
    "importance": 0.9,
    "address": {"city": "Paris", "postcode": "75001"},
}]


class TestHaversine:
    def test_same_point(self):
        assert geo.haversine_km(47.322, 5.041, 47.322, 5.041) == 0

    def test_paris_dijon(self):
        distance = geo.haversine_km(48.8566, 2.3522, 47.3220, 5.0415)
        assert 260 < distance < 270


class TestGeocoding:
    def test_french_address_uses_api_adresse(self):
        with patch("envie2sortir.geo.services.requests.get", return_value=fake_response(200, FRENCH_API_PAYLOAD)) as get:
            results = geo.geocode_address("12 rue de la Liberté, 21000 Dijon")

        assert get.call_args.args[0] == geo.FRENCH_API_URL
        assert results[0]["latitude"] == 47.3220
        assert results[0]["longitude"] == 5.0415
        assert results[0]["source"] == "api-adresse"

    def test_other_address_uses_nominatim(self):
        with patch("envie2sortir.geo.services.requests.get", return_value=fake_response(200, NOMINATIM_PAYLOAD)) as get:
            results = geo.geocode_address("Paris")

        assert get.call_args.args[0] == geo.NOMINATIM_URL
        assert results[0]["city"] == "Paris"
        assert results[0]["latitude"] == 48.8566

    def test_rate_limited_falls_back_to_nominatim(self):
        responses = [fake_response(429), fake_response(200, NOMINATIM_PAYLOAD)]
        with patch("envie2sortir.geo.services.requests.get", side_effect=responses) as get:
            results = geo.geocode_address("1 rue de Rivoli, 75001 Paris")

        assert get.call_count == 2
        assert results[0]["source"] == "nominatim"

    def test_results_are_cached(self):
        with patch("envie2sortir.geo.services.requests.get", return_value=fake_response(200, FRENCH_API_PAYLOAD)) as get:
            geo.geocode_address("12 rue de la Liberté, 21000 Dijon")
            geo.geocode_address("  12 RUE DE LA LIBERTÉ, 21000 DIJON ")
        assert get.call_count == 1

    def test_expired_entries_purged_on_write(self):
        geo._geocode_cache["ancienne adresse|1"] = (time.time() - geo.CACHE_TTL_SECONDS - 1, [])
        geo._geocode_cache["récente|1"] = (time.time(), [])
        with patch("envie2sortir.geo.services.requests.get", return_value=fake_response(200, FRENCH_API_PAYLOAD)):
            geo.geocode_address("12 rue de la Liberté, 21000 Dijon")

        assert "ancienne adresse|1" not in geo._geocode_cache
        assert "récente|1" in geo._geocode_cache
        assert len(geo._geocode_cache) == 2

    def test_retry_then_give_up(self):
        with patch("envie2sortir.geo.services.requests.get", side_effect=requests.ConnectionError("down")) as get:
            assert geo.geocode_with_retry("Dijon", retries=2) is None
        assert get.call_count == 3

    def test_retry_returns_coordinates(self):
        with patch("envie2sortir.geo.services.requests.get", return_value=fake_response(200, FRENCH_API_PAYLOAD)):
            assert geo.geocode_with_retry("12 rue de la Liberté, 21000 Dijon") == (47.3220, 5.0415)


class TestGeocodeEndpoint:
    @pytest.mark.asyncio
    async def test_address_required(self, client):
        response = await client.get("/api/geocode")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_single_result(self, client):
        with patch("envie2sortir.geo.services.requests.get", return_value=fake_response(200, FRENCH_API_PAYLOAD)):
            response = await client.get("/api/geocode", params={"address": "12 rue de la Liberté, 21000 Dijon"})
        assert response.status_code == 200
        assert response.json()["city"] == "Dijon"

    @pytest.mark.asyncio
    async def test_not_found(self, client):
        with patch("envie2sortir.geo.services.requests.get", return_value=fake_response(200, {"features": []})):
            response = await client.get("/api/geocode", params={"address": "99999 Nullepart"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_upstream_error(self, client):
        with patch("envie2sortir.geo.services.requests.get", return_value=fake_response(500)):
            response = await client.get("/api/geocode", params={"address": "Dijon"})
        assert response.status_code == 502
