import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from envie2sortir.enrichment.categories import get_tags_for_activity

logger = logging.getLogger(__name__)

GOOGLE_TYPE_MAPPING = (
    ("restaurant", ("restaurant", "meal_takeaway", "meal_delivery", "food")),
    ("bar", ("bar", "night_club", "liquor_store")),
    ("escape_game", ("amusement_park", "tourist_attraction")),
    ("hotel", ("lodging",)),
    ("spa", ("spa", "beauty_salon")),
    ("sport", ("gym", "stadium")),
    ("cinema", ("movie_theater",)),
    ("shopping", ("shopping_mall", "store")),
)

TYPE_ENVIE_TAGS = {
    "restaurant": ["Envie de bien manger", "Envie de sortir dîner", "Envie de découvrir", "Envie de se régaler"],
    "bar": ["Envie de boire un verre", "Envie de soirée", "Envie de convivialité", "Envie de détente"],
    "escape_game": ["Envie d'évasion", "Envie de challenge", "Envie de groupe", "Envie d'aventure"],
    "cinema": ["Envie de cinéma", "Envie de détente", "Envie de culture"],
    "spa": ["Envie de détente", "Envie de bien-être", "Envie de se ressourcer"],
}

PRICE_ENVIE_TAGS = {
    1: ["Envie d'économique", "Envie d'accessible"],
    2: ["Envie de bon rapport qualité-prix"],
    3: ["Envie de standing", "Envie de se faire plaisir"],
    4: ["Envie de luxe", "Envie d'exception"],
}

SPECIFIC_TYPE_ENVIE_TAGS = {
    "french_restaurant": ["Envie de français", "Envie de tradition"],
    "italian_restaurant": ["Envie d'italien", "Envie de convivial"],
    "japanese_restaurant": ["Envie de japonais", "Envie de raffinement"],
    "fast_food_restaurant": ["Envie de rapide", "Envie de casual"],
    "fine_dining_restaurant": ["Envie de gastronomie", "Envie de prestige"],
    "seafood_restaurant": ["Envie de fruits de mer", "Envie de fraîcheur"],
    "steak_house": ["Envie de viande", "Envie de grillade"],
    "pizza_place": ["Envie de pizza", "Envie de partage"],
    "cafe": ["Envie de café", "Envie de pause"],
    "bakery": ["Envie de pâtisserie", "Envie de douceur"],
}

ENVIE_TAG_WEIGHT = 3
MANUAL_TAG_WEIGHT = 10


def categorize_establishment(google_types: Optional[Iterable[str]]) -> str:
    if not google_types:
        return "other"
    types = set(google_types)
    for category, mapped in GOOGLE_TYPE_MAPPING:
        if types.intersection(mapped):
            return category
    return "other"


def translate_price_level(price_level: Optional[int]) -> int:
    if not price_level:
        return 2
    return min(4, max(1, int(price_level)))


def generate_envie_tags(place: dict, establishment_type: Optional[str] = None) -> List[str]:
    """Tags "Envie de ..." à partir du type, du prix, de la note et des types Google."""
    google_types = place.get("types") or []
    establishment_type = establishment_type or categorize_establishment(google_types)

    tags = list(TYPE_ENVIE_TAGS.get(establishment_type, []))

    if place.get("price_level"):
        tags.extend(PRICE_ENVIE_TAGS.get(place["price_level"], []))

    rating = place.get("rating") or 0
    if rating >= 4.5:
        tags.extend(["Envie d'excellence", "Envie de qualité"])
    elif rating >= 4.0:
        tags.append("Envie de fiabilité")

    for google_type in google_types:
        tags.extend(SPECIFIC_TYPE_ENVIE_TAGS.get(google_type, []))

    return list(dict.fromkeys(tags))


def build_establishment_tags(
    activities: Optional[List[str]] = None,
    manual_tags: Optional[List[str]] = None,
    envie_tags: Optional[List[str]] = None,
) -> List[Dict]:
    """
    Liste de tags {tag, type_tag, poids} sans doublon, chaque tag gardant
    son poids maximal.
    """
    merged: Dict[str, Dict] = {}

    def add(tag: str, type_tag: str, weight: int):
        key = tag.strip().lower()
        if not key:
            return
        current = merged.get(key)
        if current is None or weight > current["poids"]:
            merged[key] = {"tag": key, "type_tag": type_tag, "poids": weight}

    for activity in activities or []:
        for item in get_tags_for_activity(activity):
            add(item["tag"], "activite", item["weight"])
    for tag in manual_tags or []:
        add(tag, "manuel", MANUAL_TAG_WEIGHT)
    for tag in envie_tags or []:
        add(tag, "envie", ENVIE_TAG_WEIGHT)

    return list(merged.values())


ENRICHABLE_FIELDS = (
    "google_place_id", "google_business_url", "google_rating", "google_review_count",
    "phone", "website", "services", "ambiance", "payment_methods", "horaires_ouverture",
    "informations_pratiques", "the_fork_link", "uber_eats_link", "description",
)


def apply_enrichment(establishment, data: dict) -> dict:
    """
    Fusionne les données d'enrichissement dans l'établissement.
    Retourne un résumé : type détecté et tags envie générés.
    """
    for field in ENRICHABLE_FIELDS:
        value = data.get(field)
        if value not in (None, "", []):
            setattr(establishment, field, value)

    if data.get("price_level") is not None:
        establishment.price_level = translate_price_level(data.get("price_level"))

    place = {
        "types": data.get("types") or [],
        "price_level": establishment.price_level,
        "rating": data.get("google_rating"),
    }
    establishment_type = categorize_establishment(place["types"])
    envie_tags = generate_envie_tags(place, establishment_type)
    existing = establishment.envie_tags or []
    establishment.envie_tags = list(dict.fromkeys([*existing, *envie_tags]))

    establishment.enriched = True
    establishment.enrichment_date = datetime.utcnow()
    logger.info(f"✨ Établissement {establishment.id} enrichi ({establishment_type}, {len(envie_tags)} tags envie)")
    return {"establishment_type": establishment_type, "envie_tags": establishment.envie_tags}
