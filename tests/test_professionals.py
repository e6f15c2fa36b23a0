"""Inscription professionnelle et waitlist de pré-lancement."""
from datetime import datetime
from unittest.mock import patch

import pytest
from sqlalchemy import select

from envie2sortir.config import settings
from envie2sortir.establishments.models import Establishment, EstablishmentTag, STATUS_PENDING
from envie2sortir.learning.models import EstablishmentLearningPattern
from envie2sortir.professionals.models import (
    Professional, SubscriptionLog, SUBSCRIPTION_PREMIUM, SUBSCRIPTION_WAITLIST_BETA,
    get_subscription_features, has_premium_access,
)
from envie2sortir.waitlist.services import days_until_launch, format_time_until_launch, is_launch_active


def registration_payload(**overrides):
    payload = {
        "siret": "732 829 320 00074",
        "firstName": "Paul",
        "lastName": "Bocuse",
        "email": "Paul@Bistrot.fr",
        "password": "motdepasse123",
        "companyName": "Bistrot SARL",
        "establishmentName": "Le Bistrot Dijonnais",
        "description": "Cuisine de bistrot et vins de Bourgogne",
        "address": "12 rue de la Liberté, 21000 Dijon",
        "activities": ["bistrot"],
        "tags": ["Terrasse"],
        "envieTags": ["Envie de bien manger"],
    }
    payload.update(overrides)
    return payload


class TestSubscriptionFeatures:
    def test_premium_access(self):
        assert has_premium_access(SUBSCRIPTION_PREMIUM)
        assert has_premium_access(SUBSCRIPTION_WAITLIST_BETA)
        assert not has_premium_access("FREE")
        assert not has_premium_access(None)

    def test_image_limits(self):
        assert get_subscription_features("FREE")["max_images"] == 1
        assert get_subscription_features(SUBSCRIPTION_PREMIUM)["max_images"] == 5
        assert get_subscription_features("INCONNU")["max_images"] == 1


class TestProfessionalRegistration:
    @pytest.mark.asyncio
    async def test_creates_professional_and_pending_establishment(self, client, db):
        with patch("envie2sortir.professionals.services.geocode_with_retry", return_value=(47.322, 5.0415)):
            response = await client.post("/api/professional-registration", json=registration_payload())

        assert response.status_code == 201
        body = response.json()
        assert body["slug"] == "le-bistrot-dijonnais"
        assert body["subscription"] == "FREE"

        professional = (await db.execute(select(Professional))).scalars().one()
        assert professional.email == "paul@bistrot.fr"
        assert professional.siret == "73282932000074"

        establishment = (await db.execute(select(Establishment))).scalars().one()
        assert establishment.status == STATUS_PENDING
        assert establishment.postal_code == "21000"
        assert establishment.city == "Dijon"
        assert establishment.latitude == 47.322

        tags = {t.tag: t for t in (await db.execute(select(EstablishmentTag))).scalars().all()}
        assert tags["terrasse"].type_tag == "manuel"
        assert tags["bistrot"].poids == 10
        assert tags["envie de bien manger"].type_tag == "envie"

        log = (await db.execute(select(SubscriptionLog))).scalars().one()
        assert log.reason == "registration"
        pattern = (await db.execute(select(EstablishmentLearningPattern))).scalars().one()
        assert pattern.detected_type == "bistrot"

    @pytest.mark.asyncio
    async def test_premium_plan(self, client):
        with patch("envie2sortir.professionals.services.geocode_with_retry", return_value=None):
            response = await client.post(
                "/api/professional-registration", json=registration_payload(subscriptionPlan="premium")
            )
        assert response.status_code == 201
        assert response.json()["subscription"] == SUBSCRIPTION_PREMIUM

    @pytest.mark.asyncio
    async def test_given_coordinates_skip_geocoding(self, client):
        with patch("envie2sortir.professionals.services.geocode_with_retry") as geocode:
            response = await client.post(
                "/api/professional-registration", json=registration_payload(latitude=47.3, longitude=5.0)
            )
        assert response.status_code == 201
        geocode.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_fields(self, client):
        response = await client.post("/api/professional-registration", json={"siret": "73282932000074"})
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Champs requis manquants")

    @pytest.mark.asyncio
    async def test_invalid_siret(self, client):
        response = await client.post(
            "/api/professional-registration", json=registration_payload(siret="73282932000075")
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Format SIRET invalide"

    @pytest.mark.asyncio
    async def test_duplicate_siret(self, client, make_professional):
        await make_professional(email="autre@example.com")
        response = await client.post("/api/professional-registration", json=registration_payload())
        assert response.status_code == 400
        assert response.json()["detail"] == "Ce SIRET est déjà enregistré"

    @pytest.mark.asyncio
    async def test_email_of_consumer_account(self, client, db, make_user):
        await make_user(email="paul@bistrot.fr")
        response = await client.post("/api/professional-registration", json=registration_payload())
        assert response.status_code == 400
        assert response.json()["detail"] == "Cet email est déjà utilisé"
        assert (await db.execute(select(Professional))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_newsletter_only_email_is_free(self, client, make_user):
        await make_user(email="paul@bistrot.fr", password=None, newsletter_opt_in=True)
        with patch("envie2sortir.professionals.services.geocode_with_retry", return_value=None):
            response = await client.post("/api/professional-registration", json=registration_payload())
        assert response.status_code == 201

        login = await client.post("/auth/login", json={"email": "paul@bistrot.fr", "password": "motdepasse123"})
        assert login.json()["user"]["user_type"] == "professional"

    @pytest.mark.asyncio
    async def test_slug_is_unique(self, client, make_professional, make_establishment):
        owner = await make_professional(email="autre@example.com", siret="11111111111111")
        await make_establishment(owner, name="Le Bistrot Dijonnais", slug="le-bistrot-dijonnais")

        with patch("envie2sortir.professionals.services.geocode_with_retry", return_value=None):
            response = await client.post("/api/professional-registration", json=registration_payload())
        assert response.status_code == 201
        assert response.json()["slug"] == "le-bistrot-dijonnais-1"


def waitlist_payload(**overrides):
    payload = {
        "firstName": "Anne",
        "lastName": "Sophie",
        "email": "anne@cave.fr",
        "phone": "06 12 34 56 78",
        "siret": "73282932000074",
        "password": "motdepasse123",
        "companyName": "La Cave SAS",
        "legalStatus": "SAS",
        "establishmentName": "La Cave à Vins",
        "acceptTerms": True,
    }
    payload.update(overrides)
    return payload


class TestLaunchDate:
    def test_before_launch(self):
        now = datetime(2098, 12, 30, 12, 0, 0)
        assert not is_launch_active(now)
        assert days_until_launch(now) == 2
        assert format_time_until_launch(now) == "Plus que 2 jours avant le lancement !"

    def test_last_day(self):
        now = datetime(2098, 12, 31, 12, 0, 0)
        assert format_time_until_launch(now) == "Plus qu'un jour avant le lancement !"

    def test_after_launch(self):
        now = datetime(2099, 1, 2)
        assert is_launch_active(now)
        assert days_until_launch(now) == 0
        assert format_time_until_launch(now) == "Le lancement est imminent !"


class TestWaitlist:
    @pytest.mark.asyncio
    async def test_join(self, client, db):
        response = await client.post("/api/professionals/waitlist/join", json=waitlist_payload())
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert "premium gratuitement" in body["message"]

        professional = await db.get(Professional, body["professionalId"])
        assert professional.subscription_plan == SUBSCRIPTION_WAITLIST_BETA
        assert professional.phone == "0612345678"

        establishment = (await db.execute(select(Establishment))).scalars().one()
        assert establishment.subscription == SUBSCRIPTION_WAITLIST_BETA
        assert establishment.status == STATUS_PENDING

    @pytest.mark.asyncio
    async def test_invalid_phone(self, client):
        response = await client.post("/api/professionals/waitlist/join", json=waitlist_payload(phone="0112345678"))
        assert response.status_code == 400
        assert response.json()["detail"] == "Numéro de téléphone mobile invalide (06 ou 07)"

    @pytest.mark.asyncio
    async def test_terms_must_be_accepted(self, client):
        response = await client.post("/api/professionals/waitlist/join", json=waitlist_payload(acceptTerms=False))
        assert response.status_code == 400
        assert response.json()["detail"] == "Vous devez accepter les conditions d'utilisation"

    @pytest.mark.asyncio
    async def test_email_already_used(self, client, make_professional):
        await make_professional(email="anne@cave.fr", siret="11111111111111")
        response = await client.post("/api/professionals/waitlist/join", json=waitlist_payload())
        assert response.status_code == 400
        assert response.json()["detail"] == "Cet email est déjà utilisé"

    @pytest.mark.asyncio
    async def test_closed_after_launch(self, client, monkeypatch):
        monkeypatch.setattr(settings, "LAUNCH_DATE", datetime(2000, 1, 1))
        response = await client.post("/api/professionals/waitlist/join", json=waitlist_payload())
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_status(self, client):
        response = await client.get("/api/professionals/waitlist/status")
        assert response.status_code == 200
        body = response.json()
        assert body["isLaunchActive"] is False
        assert body["launchDate"].startswith("2099-01-01")
        assert body["daysUntilLaunch"] > 0
