"""
Vérification des numéros SIRET via l'API Sirene de l'INSEE.

Le jeton OAuth2 (client credentials) est gardé en mémoire jusqu'à
5 minutes avant son expiration.
"""
import base64
import logging
import re
import time
from typing import Optional

import requests

from envie2sortir.config import settings

logger = logging.getLogger(__name__)

INSEE_TOKEN_URL = "https://api.insee.fr/token"
INSEE_SIRET_URL = "https://api.insee.fr/entreprises/sirene/V3.11/siret/{siret}"
REQUEST_TIMEOUT = 10

TOKEN_SAFETY_MARGIN = 300


class InseeError(Exception):
    pass


def clean_siret(siret: str) -> str:
    return re.sub(r"\s+", "", siret or "")


def validate_siret_format(siret: str) -> bool:
    """14 chiffres et clé de Luhn valide."""
    cleaned = clean_siret(siret)
    if not re.fullmatch(r"\d{14}", cleaned):
        return False

    total = 0
    for index, char in enumerate(cleaned):
        digit = int(char)
        # Un chiffre sur deux doublé en partant de la gauche (longueur paire)
        if index % 2 == 0:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def format_address(adresse: dict) -> str:
    street = " ".join(
        part for part in (
            adresse.get("numeroVoieEtablissement"),
            adresse.get("typeVoieEtablissement"),
            adresse.get("libelleVoieEtablissement"),
        ) if part
    )
    city = " ".join(
        part for part in (
            adresse.get("codePostalEtablissement"),
            adresse.get("libelleCommuneEtablissement"),
        ) if part
    )
    return ", ".join(part for part in (street, city) if part)


class InseeClient:
    def __init__(self, consumer_key: str = None, consumer_secret: str = None):
        self.consumer_key = consumer_key if consumer_key is not None else settings.INSEE_CONSUMER_KEY
        self.consumer_secret = consumer_secret if consumer_secret is not None else settings.INSEE_CONSUMER_SECRET
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    def _get_token(self) -> str:
        if self._token and time.time() < self._token_expires_at:
            return self._token

        if not self.consumer_key or not self.consumer_secret:
            raise InseeError("Identifiants INSEE non configurés")

        credentials = base64.b64encode(f"{self.consumer_key}:{self.consumer_secret}".encode()).decode()
        response = requests.post(
            INSEE_TOKEN_URL,
            data={"grant_type": "client_credentials"},
            headers={"Authorization": f"Basic {credentials}"},
            timeout=REQUEST_TIMEOUT,
        )
        if response.status_code != 200:
            raise InseeError(f"Authentification INSEE refusée ({response.status_code})")

        payload = response.json()
        self._token = payload["access_token"]
        self._token_expires_at = time.time() + int(payload.get("expires_in", 3600)) - TOKEN_SAFETY_MARGIN
        logger.info("🔐 Nouveau jeton INSEE obtenu")
        return self._token

    def get_establishment(self, siret: str) -> Optional[dict]:
        """Retourne les informations de l'établissement ou None si inconnu."""
        cleaned = clean_siret(siret)
        response = requests.get(
            INSEE_SIRET_URL.format(siret=cleaned),
            headers={"Authorization": f"Bearer {self._get_token()}", "Accept": "application/json"},
            timeout=REQUEST_TIMEOUT,
        )
        if response.status_code == 404:
            logger.info(f"SIRET {cleaned} inconnu de l'INSEE")
            return None
        if response.status_code != 200:
            raise InseeError(f"Erreur API INSEE ({response.status_code})")

        etablissement = response.json().get("etablissement", {})
        unite = etablissement.get("uniteLegale", {})
        periodes = etablissement.get("periodesEtablissement") or [{}]
        denomination = unite.get("denominationUniteLegale") or " ".join(
            part for part in (unite.get("prenom1UniteLegale"), unite.get("nomUniteLegale")) if part
        )

        return {
            "siret": etablissement.get("siret", cleaned),
            "siren": etablissement.get("siren", cleaned[:9]),
            "denomination": denomination,
            "legal_form": unite.get("categorieJuridiqueUniteLegale"),
            "activity_code": unite.get("activitePrincipaleUniteLegale"),
            "address": format_address(etablissement.get("adresseEtablissement", {})),
            "creation_date": etablissement.get("dateCreationEtablissement"),
            "is_active": periodes[0].get("etatAdministratifEtablissement", "A") == "A",
        }


insee_client = InseeClient()
