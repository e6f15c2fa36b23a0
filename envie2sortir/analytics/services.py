import logging
from datetime import datetime, timedelta
from typing import List, Optional

from envie2sortir.analytics.schemas import ClickEvent, SearchEvent
from envie2sortir.db.mongo import click_events_collection, search_events_collection

logger = logging.getLogger(__name__)

PERIODS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}


class AnalyticsValidationError(Exception):
    pass


def period_start(period: Optional[str], now: Optional[datetime] = None) -> datetime:
    now = now or datetime.utcnow()
    return now - timedelta(days=PERIODS.get(period or "30d", 30))


def _naive(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.utcnow()
    return value.replace(tzinfo=None) if value.tzinfo else value


async def track_click(event: ClickEvent) -> str:
    if not event.establishment_id or not event.element_type or not event.element_id or not event.action:
        raise AnalyticsValidationError("Champs requis manquants")

    document = {
        "establishment_id": event.establishment_id,
        "element_type": event.element_type,
        "element_id": event.element_id,
        "element_name": event.element_name,
        "action": event.action,
        "section_context": event.section_context,
        "user_agent": event.user_agent,
        "referrer": event.referrer,
        "timestamp": _naive(event.timestamp),
    }
    result = await click_events_collection.insert_one(document)
    return str(result.inserted_id)


async def track_search(event: SearchEvent) -> str:
    document = {
        "search_term": event.search_term,
        # Terme normalisé pour le regroupement
        "term": event.search_term.lower().strip(),
        "result_count": event.result_count,
        "clicked_establishment_id": event.clicked_establishment_id,
        "clicked_establishment_name": event.clicked_establishment_name,
        "city": event.city,
        "timestamp": _naive(event.timestamp),
    }
    result = await search_events_collection.insert_one(document)
    return str(result.inserted_id)


async def clicks_by_establishment(limit: int = 20, period: Optional[str] = None) -> List[dict]:
    pipeline = [
        {"$match": {"timestamp": {"$gte": period_start(period)}}},
        {"$group": {
            "_id": "$establishment_id",
            "clicks": {"$sum": 1},
            "last_click": {"$max": "$timestamp"},
        }},
        {"$sort": {"clicks": -1, "_id": 1}},
        {"$limit": limit},
    ]
    rows = await click_events_collection.aggregate(pipeline).to_list(length=limit)
    return [
        {"establishmentId": row["_id"], "clicks": row["clicks"], "lastClick": row["last_click"]}
        for row in rows
    ]


async def clicks_by_element(establishment_id: int, period: Optional[str] = None) -> List[dict]:
    pipeline = [
        {"$match": {"establishment_id": establishment_id, "timestamp": {"$gte": period_start(period)}}},
        {"$group": {"_id": {"type": "$element_type", "id": "$element_id"}, "clicks": {"$sum": 1}}},
        {"$sort": {"clicks": -1}},
    ]
    rows = await click_events_collection.aggregate(pipeline).to_list(length=None)
    return [
        {"elementType": row["_id"]["type"], "elementId": row["_id"]["id"], "clicks": row["clicks"]}
        for row in rows
    ]


async def top_searches(limit: int = 20, period: Optional[str] = None) -> List[dict]:
    pipeline = [
        {"$match": {"timestamp": {"$gte": period_start(period)}}},
        {"$group": {
            "_id": "$term",
            "search_count": {"$sum": 1},
            "max_results": {"$max": "$result_count"},
        }},
        {"$sort": {"search_count": -1, "_id": 1}},
        {"$limit": limit},
    ]
    rows = await search_events_collection.aggregate(pipeline).to_list(length=limit)

    click_pipeline = [
        {"$match": {
            "timestamp": {"$gte": period_start(period)},
            "clicked_establishment_id": {"$ne": None},
        }},
        {"$group": {"_id": "$term", "clicks": {"$sum": 1}}},
    ]
    clicks = {
        row["_id"]: row["clicks"]
        for row in await search_events_collection.aggregate(click_pipeline).to_list(length=None)
    }

    searches = []
    for row in rows:
        click_count = clicks.get(row["_id"], 0)
        searches.append({
            "searchTerm": row["_id"],
            "searchCount": row["search_count"],
            "clickCount": click_count,
            "conversionRate": round(click_count / row["search_count"] * 100, 2) if row["search_count"] else 0,
            "hasResults": (row["max_results"] or 0) > 0,
        })
    return searches
