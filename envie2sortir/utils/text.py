import re
import unicodedata
from typing import Optional, Tuple

ACCENTS_MAP = {
    "à": "a", "á": "a", "â": "a", "ã": "a", "ä": "a", "å": "a",
    "è": "e", "é": "e", "ê": "e", "ë": "e",
    "ì": "i", "í": "i", "î": "i", "ï": "i",
    "ò": "o", "ó": "o", "ô": "o", "õ": "o", "ö": "o",
    "ù": "u", "ú": "u", "û": "u", "ü": "u",
    "ý": "y", "ÿ": "y", "ñ": "n", "ç": "c",
    "œ": "oe", "æ": "ae",
}


def strip_accents(text: str) -> str:
    normalized = unicodedata.normalize("NFD", text)
    return "".join(c for c in normalized if unicodedata.category(c) != "Mn")


def generate_slug(name: str) -> str:
    slug = (name or "").lower().strip()
    slug = "".join(ACCENTS_MAP.get(c, c) for c in slug)
    slug = strip_accents(slug)
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


# Ordre d'essai : "12 rue X, 75001 Paris" puis "12 rue X 75001 Paris" puis "75001 Paris"
ADDRESS_PATTERNS = (
    re.compile(r"^(?P<street>.+?),\s*(?P<postal>\d{5})\s+(?P<city>[^,]+?)(?:,\s*France)?$", re.IGNORECASE),
    re.compile(r"^(?P<street>.+?)\s+(?P<postal>\d{5})\s+(?P<city>[^,]+?)(?:,\s*France)?$", re.IGNORECASE),
    re.compile(r"^(?P<street>)(?P<postal>\d{5})\s+(?P<city>[^,]+?)(?:,\s*France)?$", re.IGNORECASE),
)


def parse_address(address: str) -> Tuple[str, Optional[str], Optional[str]]:
    """
    Découpe une adresse française en (rue, code postal, ville).
    Retourne (adresse, None, None) si aucun motif ne correspond.
    """
    cleaned = (address or "").strip()
    for pattern in ADDRESS_PATTERNS:
        match = pattern.match(cleaned)
        if match:
            street = match.group("street").strip().rstrip(",")
            return street, match.group("postal"), match.group("city").strip()
    return cleaned, None, None
