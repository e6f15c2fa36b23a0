"""Modification des informations d'un compte professionnel et validation admin."""
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from envie2sortir.professionals.models import ProfessionalUpdateRequest, UPDATE_PENDING, UPDATE_REJECTED
from tests.helpers import auth_headers


def change(field_name, new_value, sms_verified=True):
    return {"fieldName": field_name, "newValue": new_value, "smsVerified": sms_verified}


async def request_change(client, professional, field_name, new_value):
    with patch("envie2sortir.professionals.update_requests.send_email_async", new=AsyncMock()) as send:
        response = await client.post(
            "/api/professional/request-update", json=change(field_name, new_value), headers=auth_headers(professional)
        )
    return response, send


class TestRequestUpdate:
    @pytest.mark.asyncio
    async def test_identity_fields_applied_immediately(self, client, db, make_professional):
        professional = await make_professional()
        response, _ = await request_change(client, professional, "phone", "06 11 22 33 44")
        assert response.status_code == 200
        assert response.json()["requiresAdminApproval"] is False

        await db.refresh(professional)
        assert professional.phone == "0611223344"
        assert (await db.execute(select(ProfessionalUpdateRequest))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_sms_verification_required(self, client, make_professional):
        professional = await make_professional()
        response = await client.post(
            "/api/professional/request-update",
            json=change("firstName", "Jean", sms_verified=False),
            headers=auth_headers(professional),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Vérification SMS requise"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field_name,new_value,detail", [
        ("password", "secret", "Champ invalide"),
        ("phone", "0112345678", "Numéro de téléphone mobile invalide (06 ou 07)"),
        ("siret", "1234", "Le SIRET doit contenir 14 chiffres"),
        ("email", "pas-un-email", "Adresse email invalide"),
        ("firstName", "   ", "La nouvelle valeur est requise"),
        ("firstName", "Paul", "La nouvelle valeur est identique à l'actuelle"),
    ])
    async def test_invalid_values(self, client, make_professional, field_name, new_value, detail):
        professional = await make_professional()
        response, _ = await request_change(client, professional, field_name, new_value)
        assert response.status_code == 400
        assert response.json()["detail"] == detail

    @pytest.mark.asyncio
    async def test_siret_creates_pending_request(self, client, db, make_professional):
        professional = await make_professional()
        response, send = await request_change(client, professional, "siret", "111 111 111 11111")
        assert response.status_code == 200
        assert response.json()["requiresAdminApproval"] is True
        send.assert_not_awaited()

        update_request = (await db.execute(select(ProfessionalUpdateRequest))).scalars().one()
        assert update_request.status == UPDATE_PENDING
        assert update_request.old_value == "73282932000074"
        assert update_request.new_value == "11111111111111"

        again, _ = await request_change(client, professional, "siret", "22222222222222")
        assert again.status_code == 400
        assert again.json()["detail"] == "Une demande de modification est déjà en attente pour ce champ"

    @pytest.mark.asyncio
    async def test_siret_already_used(self, client, make_professional):
        professional = await make_professional()
        await make_professional(email="autre@example.com", siret="11111111111111")
        response, _ = await request_change(client, professional, "siret", "11111111111111")
        assert response.status_code == 400
        assert response.json()["detail"] == "Ce SIRET est déjà utilisé"

    @pytest.mark.asyncio
    async def test_email_already_used(self, client, make_professional, make_user):
        professional = await make_professional()
        await make_user(email="marie@example.com")
        response, _ = await request_change(client, professional, "email", "Marie@Example.com")
        assert response.status_code == 400
        assert response.json()["detail"] == "Cet email est déjà utilisé"

    @pytest.mark.asyncio
    async def test_email_change_sends_verification_link(self, client, db, make_professional):
        professional = await make_professional()
        response, send = await request_change(client, professional, "email", "nouveau@bistrot.fr")
        assert response.status_code == 200

        update_request = (await db.execute(select(ProfessionalUpdateRequest))).scalars().one()
        assert update_request.email_verification_token
        send.assert_awaited_once()
        subject, email_to, body = send.await_args.args
        assert email_to == "nouveau@bistrot.fr"
        assert f"verify-email?token={update_request.email_verification_token}" in body

    @pytest.mark.asyncio
    async def test_professionals_only(self, client, make_user):
        user = await make_user()
        response = await client.post(
            "/api/professional/request-update", json=change("firstName", "Jean"), headers=auth_headers(user)
        )
        assert response.status_code == 403


class TestVerifyEmail:
    @pytest.mark.asyncio
    async def test_marks_request_verified(self, client, db, make_professional):
        professional = await make_professional()
        await request_change(client, professional, "email", "nouveau@bistrot.fr")
        update_request = (await db.execute(select(ProfessionalUpdateRequest))).scalars().one()

        response = await client.get(
            "/api/professional/verify-email", params={"token": update_request.email_verification_token}
        )
        assert response.status_code == 200
        await db.refresh(update_request)
        assert update_request.is_email_verified is True

    @pytest.mark.asyncio
    async def test_unknown_token(self, client):
        response = await client.get("/api/professional/verify-email", params={"token": "inconnu"})
        assert response.status_code == 404


class TestReviewUpdate:
    @pytest.mark.asyncio
    async def test_list_pending(self, client, make_professional, make_user):
        professional = await make_professional()
        admin = await make_user(email="admin@example.com", role="admin")
        await request_change(client, professional, "companyName", "Bistrot Paul SAS")

        response = await client.get("/api/admin/update-requests", headers=auth_headers(admin))
        assert response.status_code == 200
        requests = response.json()["requests"]
        assert len(requests) == 1
        assert requests[0]["field_name"] == "companyName"
        assert requests[0]["professional"]["siret"] == "73282932000074"

    @pytest.mark.asyncio
    async def test_admin_only(self, client, make_professional):
        professional = await make_professional()
        response = await client.get("/api/admin/update-requests", headers=auth_headers(professional))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_approve_company_name_renames_establishment(self, client, db, make_professional,
                                                               make_establishment, make_user):
        professional = await make_professional()
        establishment = await make_establishment(professional)
        admin = await make_user(email="admin@example.com", role="admin")
        await request_change(client, professional, "companyName", "Bistrot Paul SAS")
        update_request = (await db.execute(select(ProfessionalUpdateRequest))).scalars().one()

        response = await client.post(
            "/api/admin/review-update",
            json={"requestId": update_request.id, "action": "approve"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Modification approuvée et appliquée"
        assert body["request"]["reviewed_by"] == admin.id

        await db.refresh(professional)
        await db.refresh(establishment)
        assert professional.company_name == "Bistrot Paul SAS"
        assert establishment.name == "Bistrot Paul SAS"
        assert establishment.slug == "le-bistrot"

    @pytest.mark.asyncio
    async def test_email_must_be_verified_before_approval(self, client, db, make_professional, make_user):
        professional = await make_professional()
        admin = await make_user(email="admin@example.com", role="admin")
        await request_change(client, professional, "email", "nouveau@bistrot.fr")
        update_request = (await db.execute(select(ProfessionalUpdateRequest))).scalars().one()
        review = {"requestId": update_request.id, "action": "approve"}

        refused = await client.post("/api/admin/review-update", json=review, headers=auth_headers(admin))
        assert refused.status_code == 400
        assert refused.json()["detail"] == "Le nouvel email doit être vérifié avant approbation"

        await client.get("/api/professional/verify-email", params={"token": update_request.email_verification_token})
        approved = await client.post("/api/admin/review-update", json=review, headers=auth_headers(admin))
        assert approved.status_code == 200

        login = await client.post("/auth/login", json={"email": "nouveau@bistrot.fr", "password": "motdepasse123"})
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_reject_requires_reason_and_is_final(self, client, db, make_professional, make_user):
        professional = await make_professional()
        admin = await make_user(email="admin@example.com", role="admin")
        await request_change(client, professional, "siret", "11111111111111")
        update_request = (await db.execute(select(ProfessionalUpdateRequest))).scalars().one()

        no_reason = await client.post(
            "/api/admin/review-update",
            json={"requestId": update_request.id, "action": "reject"},
            headers=auth_headers(admin),
        )
        assert no_reason.status_code == 400
        assert no_reason.json()["detail"] == "La raison du rejet est requise"

        rejected = await client.post(
            "/api/admin/review-update",
            json={"requestId": update_request.id, "action": "reject", "rejectionReason": "Kbis manquant"},
            headers=auth_headers(admin),
        )
        assert rejected.status_code == 200
        assert rejected.json()["message"] == "Modification rejetée"
        await db.refresh(update_request)
        assert update_request.status == UPDATE_REJECTED
        assert update_request.rejection_reason == "Kbis manquant"
        await db.refresh(professional)
        assert professional.siret == "73282932000074"

        again = await client.post(
            "/api/admin/review-update",
            json={"requestId": update_request.id, "action": "approve"},
            headers=auth_headers(admin),
        )
        assert again.status_code == 400
        assert again.json()["detail"] == "Cette demande a déjà été traitée"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload,status_code", [
        ({"action": "approve"}, 400),
        ({"requestId": 1, "action": "archive"}, 400),
        ({"requestId": 999, "action": "approve"}, 404),
    ])
    async def test_invalid_review(self, client, make_user, payload, status_code):
        admin = await make_user(email="admin@example.com", role="admin")
        response = await client.post("/api/admin/review-update", json=payload, headers=auth_headers(admin))
        assert response.status_code == status_code
