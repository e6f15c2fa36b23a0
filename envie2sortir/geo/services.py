import logging
import math
import re
import time
from typing import Dict, List, Optional, Tuple

import requests

from envie2sortir.config import settings

logger = logging.getLogger(__name__)

FRENCH_API_URL = "https://api-adresse.data.gouv.fr/search/"
NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
CACHE_TTL_SECONDS = 60 * 60
REQUEST_TIMEOUT = 10

POSTAL_CODE_RE = re.compile(r"\b\d{5}\b")

# Cache mémoire: adresse normalisée -> (timestamp, résultats)
_geocode_cache: Dict[str, Tuple[float, List[dict]]] = {}


class GeocodingError(Exception):
    pass


def clear_cache():
    _geocode_cache.clear()


def _purge_expired(now: float) -> int:
    expired = [key for key, (stored_at, _) in _geocode_cache.items() if now - stored_at >= CACHE_TTL_SECONDS]
    for key in expired:
        del _geocode_cache[key]
    return len(expired)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    radius = 6371.0
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return radius * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _query_french_api(address: str, limit: int) -> Optional[List[dict]]:
    """Retourne None si l'API renvoie 429 (bascule vers Nominatim)."""
    response = requests.get(
        FRENCH_API_URL,
        params={"q": address, "limit": limit},
        timeout=REQUEST_TIMEOUT,
    )
    if response.status_code == 429:
        logger.warning("⚠️ api-adresse.data.gouv.fr limite atteinte, bascule vers Nominatim")
        return None
    if response.status_code != 200:
        raise GeocodingError(f"api-adresse a répondu {response.status_code}")

    results = []
    for feature in response.json().get("features", []):
        lng, lat = feature["geometry"]["coordinates"]
        props = feature.get("properties", {})
        results.append({
            "latitude": lat,
            "longitude": lng,
            "display_name": props.get("label"),
            "city": props.get("city"),
            "postal_code": props.get("postcode"),
            "score": props.get("score"),
            "source": "api-adresse",
        })
    return results


def _query_nominatim(address: str, limit: int) -> List[dict]:
    response = requests.get(
        NOMINATIM_URL,
        params={"q": address, "format": "json", "limit": limit, "addressdetails": 1, "countrycodes": "fr"},
        headers={"User-Agent": settings.GEOCODING_USER_AGENT},
        timeout=REQUEST_TIMEOUT,
    )
    if response.status_code != 200:
        raise GeocodingError(f"Nominatim a répondu {response.status_code}")

    results = []
    for item in response.json():
        details = item.get("address", {})
        results.append({
            "latitude": float(item["lat"]),
            "longitude": float(item["lon"]),
            "display_name": item.get("display_name"),
            "city": details.get("city") or details.get("town") or details.get("village"),
            "postal_code": details.get("postcode"),
            "score": item.get("importance"),
            "source": "nominatim",
        })
    return results


def geocode_address(address: str, limit: int = 1) -> List[dict]:
    """
    Géocode une adresse. Les adresses françaises (code postal à 5 chiffres)
    et les recherches multiples passent par api-adresse.data.gouv.fr,
    le reste par Nominatim.
    """
    cache_key = f"{address.strip().lower()}|{limit}"
    cached = _geocode_cache.get(cache_key)
    if cached and time.time() - cached[0] < CACHE_TTL_SECONDS:
        logger.debug(f"Cache géocodage utilisé pour '{address}'")
        return cached[1]

    results = None
    if POSTAL_CODE_RE.search(address) or limit != 1:
        results = _query_french_api(address, limit)
    if results is None:
        results = _query_nominatim(address, limit)

    now = time.time()
    _purge_expired(now)
    _geocode_cache[cache_key] = (now, results)
    return results


def geocode_with_retry(address: str, retries: int = 2) -> Optional[Tuple[float, float]]:
    """Retourne (lat, lng) ou None après `retries` nouvelles tentatives."""
    for attempt in range(retries + 1):
        try:
            results = geocode_address(address)
            if results:
                return results[0]["latitude"], results[0]["longitude"]
            return None
        except (GeocodingError, requests.RequestException) as e:
            logger.warning(f"⚠️ Géocodage échoué (tentative {attempt + 1}/{retries + 1}) : {e}")
    return None
