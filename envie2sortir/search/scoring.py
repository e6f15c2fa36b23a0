"""
Score de pertinence d'un établissement pour une "envie" en texte libre.

Le score thématique additionne les correspondances sur les tags, le nom,
la description et les activités. Le bonus "ouvert maintenant" et le
bonus de proximité ne s'appliquent qu'aux établissements déjà pertinents.
"""
import re
from datetime import datetime
from typing import List, Optional

from envie2sortir.geo.services import haversine_km
from envie2sortir.utils.text import strip_accents

STOP_WORDS = {
    "de", "le", "la", "les", "un", "une", "des", "du", "manger", "boire", "faire",
    "avec", "mes", "mon", "ma", "pour", "l", "d", "au", "aux",
}

FOOD_KEYWORDS = [
    "pizza", "burger", "sushi", "restaurant", "pasta", "tacos", "chinese",
    "indian", "french", "italian", "mexican", "asian", "food",
]

# Tags trop génériques pour peser autant qu'un tag précis
GENERIC_ENVIE_TAGS = ("envie de découvrir", "envie de sortir", "envie de détente")
GENERIC_TAG_WEIGHT = 3

TAG_FACTOR = 10
NAME_SCORE = 20
NAME_FOOD_BONUS = 30
DESCRIPTION_SCORE = 10
DESCRIPTION_FOOD_BONUS = 20
ACTIVITY_SCORE = 25
OPEN_BONUS = 15
MAX_PROXIMITY_BONUS = 50
MINIMUM_THEMATIC_SCORE = 5

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def normalize(text: Optional[str]) -> str:
    return strip_accents((text or "").lower())


def extract_keywords(envie: str) -> List[str]:
    words = re.split(r"[\s,]+", normalize(envie))
    return [word.strip() for word in words if len(word.strip()) >= 3 and word.strip() not in STOP_WORDS]


def intelligent_match(text: str, keyword: str) -> bool:
    """Mot exact, mot entier, ou sous-chaîne pour les mots-clés de 4 caractères et plus."""
    if text == keyword:
        return True
    if re.search(rf"\b{re.escape(keyword)}\b", text, re.IGNORECASE):
        return True
    return len(keyword) >= 4 and keyword in text


def is_food_search(keywords: List[str]) -> bool:
    return any(kw in food or food in kw for kw in keywords for food in FOOD_KEYWORDS)


def _minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def is_open_now(horaires, now: Optional[datetime] = None) -> bool:
    """Sans horaires renseignés (ou illisibles), l'établissement est considéré ouvert."""
    if not horaires:
        return True
    now = now or datetime.now()
    try:
        today = horaires.get(WEEKDAYS[now.weekday()])
        if not today or not today.get("isOpen"):
            return False
        current = now.hour * 60 + now.minute
        for slot in today.get("slots", []):
            opening = _minutes(slot["open"])
            closing = _minutes(slot["close"])
            # Créneau qui passe minuit (ex: 19:00-02:00)
            if closing < opening:
                closing += 24 * 60
            if opening <= current <= closing:
                return True
        return False
    except (AttributeError, KeyError, TypeError, ValueError):
        return True


def _is_restaurant(establishment) -> bool:
    activities = establishment.activities or []
    if any(isinstance(a, str) and "restaurant" in a.lower() for a in activities):
        return True
    return "restaurant" in (establishment.description or "").lower()


def score_establishment(
    establishment,
    keywords: List[str],
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    now: Optional[datetime] = None,
) -> dict:
    thematic = 0
    matched_tags = []
    food_search = is_food_search(keywords)
    has_restaurant_activity = any(
        isinstance(a, str) and "restaurant" in a.lower() for a in (establishment.activities or [])
    )

    for tag in establishment.tags or []:
        tag_text = normalize(tag.tag)
        weight = GENERIC_TAG_WEIGHT if any(g in tag.tag.lower() for g in GENERIC_ENVIE_TAGS) else tag.poids
        for keyword in keywords:
            if intelligent_match(tag_text, keyword):
                thematic += weight * TAG_FACTOR
                if tag.tag not in matched_tags:
                    matched_tags.append(tag.tag)

    name = normalize(establishment.name)
    description = normalize(establishment.description)
    food_bonus = food_search and has_restaurant_activity
    for keyword in keywords:
        if intelligent_match(name, keyword):
            thematic += NAME_SCORE + (NAME_FOOD_BONUS if food_bonus else 0)
        if intelligent_match(description, keyword):
            thematic += DESCRIPTION_SCORE + (DESCRIPTION_FOOD_BONUS if food_bonus else 0)

    for activity in establishment.activities or []:
        if isinstance(activity, str):
            activity_text = normalize(activity)
            thematic += ACTIVITY_SCORE * sum(1 for kw in keywords if intelligent_match(activity_text, kw))

    distance = 0.0
    if lat is not None and lng is not None and establishment.latitude is not None and establishment.longitude is not None:
        distance = haversine_km(lat, lng, establishment.latitude, establishment.longitude)

    is_open = is_open_now(establishment.horaires_ouverture, now)
    score = thematic
    if thematic > 0:
        if is_open:
            score += OPEN_BONUS
        score += max(0, MAX_PROXIMITY_BONUS - distance * 2)

    return {
        "score": score,
        "thematicScore": thematic,
        "distance": round(distance, 2),
        "isOpen": is_open,
        "matchedTags": matched_tags,
    }


def is_relevant(establishment, scoring: dict, keywords: List[str]) -> bool:
    if scoring["thematicScore"] < MINIMUM_THEMATIC_SCORE:
        return False
    if is_food_search(keywords):
        return _is_restaurant(establishment)
    return True
