import logging
import math
from datetime import datetime
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from envie2sortir.establishments.models import Establishment, STATUS_APPROVED
from envie2sortir.establishments.schemas import EstablishmentSummary
from envie2sortir.geo.services import geocode_with_retry, haversine_km
from envie2sortir.professionals.models import has_premium_access
from envie2sortir.search.scoring import extract_keywords, score_establishment, is_relevant
from envie2sortir.users.models import UserFavorite

logger = logging.getLogger(__name__)

# Dijon
DEFAULT_LAT = 47.322
DEFAULT_LNG = 5.041
DEFAULT_RADIUS_KM = 5
MAX_RESULTS = 15
AROUND_ME = "Autour de moi"
DEFAULT_PAGE_SIZE = 15

# Mot-clé -> activités dont l'établissement doit porter au moins une
CRITICAL_KEYWORDS = {
    "tandoori": ["restaurant_indien", "cuisine_indienne"],
    "indien": ["restaurant_indien", "cuisine_indienne"],
    "sushi": ["restaurant_japonais", "cuisine_japonaise"],
    "pizza": ["restaurant_italien", "pizzeria"],
    "burger": ["burger", "fast_food"],
    "tapas": ["tapas", "restaurant_espagnol"],
    "chinois": ["restaurant_chinois", "cuisine_chinoise"],
    "karting": ["karting"],
    "kart": ["karting"],
    "bowling": ["bowling"],
    "laser": ["laser_game"],
    "escape": ["escape_game"],
    "vr": ["realite_virtuelle"],
    "paintball": ["paintball_exterieur", "paintball_interieur"],
    "tir": ["tir"],
    "piscine": ["piscine"],
    "cinema": ["cinema_mainstream", "cinema_art_essai", "cinema_imax"],
    "theatre": ["theatre_classique", "theatre_cafe"],
    "bar": ["bar_ambiance", "pub_traditionnel", "bar_cocktails"],
    "cafe": ["cafe"],
    "discotheque": ["discotheque", "boite_nuit_mainstream", "club_prive"],
}

SEARCH_FILTERS = ("popular", "wanted", "cheap", "premium", "newest", "rating")
UNKNOWN_PRICE = 999


class SearchError(Exception):
    pass


async def resolve_coordinates(lat: Optional[float], lng: Optional[float], ville: Optional[str]):
    if lat and lng:
        return lat, lng
    if ville and ville != AROUND_ME:
        coordinates = await run_in_threadpool(geocode_with_retry, f"{ville}, France", 0)
        if coordinates:
            return coordinates
        logger.warning(f"⚠️ Ville non géocodée, position par défaut utilisée : {ville}")
    return DEFAULT_LAT, DEFAULT_LNG


async def search_envie(
    db: AsyncSession,
    envie: str,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    rayon: float = DEFAULT_RADIUS_KM,
    ville: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    keywords = extract_keywords(envie)
    if not keywords:
        raise SearchError("Aucun mot-clé significatif trouvé")

    lat, lng = await resolve_coordinates(lat, lng, ville)

    result = await db.execute(
        select(Establishment)
        .options(selectinload(Establishment.tags), selectinload(Establishment.images))
        .where(
            Establishment.status == STATUS_APPROVED,
            Establishment.latitude.is_not(None),
            Establishment.longitude.is_not(None),
        )
    )
    establishments = result.scalars().all()
    in_radius = [e for e in establishments if haversine_km(lat, lng, e.latitude, e.longitude) <= rayon]

    scored = []
    for establishment in in_radius:
        scoring = score_establishment(establishment, keywords, lat, lng, now)
        if is_relevant(establishment, scoring, keywords):
            scored.append({**EstablishmentSummary.model_validate(establishment).model_dump(), **scoring})

    scored.sort(key=lambda item: (-item["score"], item["distance"]))
    results = scored[:MAX_RESULTS]
    logger.info(f"🔎 Recherche '{envie}' : {len(results)} résultat(s) sur {len(in_radius)} dans le rayon")

    return {
        "success": True,
        "results": results,
        "total": len(results),
        "query": {
            "envie": envie,
            "ville": ville,
            "rayon": rayon,
            "keywords": keywords,
            "coordinates": {"lat": lat, "lng": lng},
            "totalEstablishments": len(establishments),
            "establishmentsInRadius": len(in_radius),
        },
    }


def passes_critical_keywords(establishment, keywords) -> bool:
    activities = set(establishment.activities or [])
    for keyword in keywords:
        required = CRITICAL_KEYWORDS.get(keyword)
        if required and not activities.intersection(required):
            return False
    return True


def _sort_key(filter_name: str):
    if filter_name == "wanted":
        return lambda item: -item["likesCount"]
    if filter_name == "cheap":
        return lambda item: item["price_min"] if item["price_min"] is not None else UNKNOWN_PRICE
    if filter_name == "newest":
        return lambda item: -item["created_at"].timestamp()
    if filter_name == "rating":
        return lambda item: -(item["avg_rating"] or 0)
    return lambda item: (-item["score"], item["distance"])


async def _favorites_counts(db: AsyncSession, establishment_ids) -> dict:
    if not establishment_ids:
        return {}
    rows = await db.execute(
        select(UserFavorite.establishment_id, func.count(UserFavorite.id))
        .where(UserFavorite.establishment_id.in_(establishment_ids))
        .group_by(UserFavorite.establishment_id)
    )
    return dict(rows.all())


async def search_filtered(
    db: AsyncSession,
    envie: str,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    rayon: float = DEFAULT_RADIUS_KM,
    ville: Optional[str] = None,
    filter_name: str = "popular",
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    now: Optional[datetime] = None,
) -> dict:
    """Recherche par envie triée selon un filtre, avec pagination."""
    keywords = extract_keywords(envie)
    if not keywords:
        raise SearchError("Aucun mot-clé significatif trouvé")
    if filter_name not in SEARCH_FILTERS:
        filter_name = "popular"

    lat, lng = await resolve_coordinates(lat, lng, ville)

    query = (
        select(Establishment)
        .options(selectinload(Establishment.tags), selectinload(Establishment.images))
        .where(
            Establishment.status == STATUS_APPROVED,
            Establishment.latitude.is_not(None),
            Establishment.longitude.is_not(None),
        )
    )
    establishments = (await db.execute(query)).scalars().all()
    if filter_name == "premium":
        establishments = [e for e in establishments if has_premium_access(e.subscription)]

    candidates = [
        e for e in establishments
        if haversine_km(lat, lng, e.latitude, e.longitude) <= rayon and passes_critical_keywords(e, keywords)
    ]

    relevant = []
    for establishment in candidates:
        scoring = score_establishment(establishment, keywords, lat, lng, now)
        if is_relevant(establishment, scoring, keywords):
            relevant.append((establishment, scoring))

    likes = await _favorites_counts(db, [e.id for e, _ in relevant])
    items = [
        {
            **EstablishmentSummary.model_validate(establishment).model_dump(),
            **scoring,
            "likesCount": likes.get(establishment.id, 0),
            "price_min": establishment.price_min,
            "subscription": establishment.subscription,
            "created_at": establishment.created_at,
        }
        for establishment, scoring in relevant
    ]
    items.sort(key=_sort_key(filter_name))

    start = (page - 1) * limit
    results = items[start:start + limit]
    logger.info(
        f"🔎 Recherche filtrée '{envie}' ({filter_name}) : page {page}, {len(results)}/{len(items)} résultat(s)"
    )

    return {
        "success": True,
        "results": results,
        "pagination": {
            "currentPage": page,
            "totalPages": math.ceil(len(items) / limit),
            "totalResults": len(items),
            "hasMore": start + limit < len(items),
            "limit": limit,
        },
        "filter": filter_name,
        "query": {
            "envie": envie,
            "ville": ville,
            "rayon": rayon,
            "keywords": keywords,
            "coordinates": {"lat": lat, "lng": lng},
        },
    }
