import logging
import math
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from envie2sortir.establishments.models import Establishment, STATUS_APPROVED
from envie2sortir.events.models import Event, EventEngagement
from envie2sortir.events.schemas import EventPayload, EventEstablishmentOut, EventResponse
from envie2sortir.professionals.models import has_premium_access

logger = logging.getLogger(__name__)

ENGAGEMENT_SCORES = {
    "envie": 1,
    "grande-envie": 3,
    "decouvrir": 2,
    "pas-envie": -1,
}

# Un score de 15 remplit la jauge à 100 %
GAUGE_FULL_SCORE = 15
GAUGE_MAX = 150

EVENT_BADGES = (
    (150, {"type": "fire", "label": "🔥 C'EST LE FEU !", "color": "#9C27B0"}),
    (100, {"type": "gold", "label": "🏆 Coup de Cœur", "color": "#FFD700"}),
    (75, {"type": "silver", "label": "⭐ Populaire", "color": "#C0C0C0"}),
    (50, {"type": "bronze", "label": "👍 Apprécié", "color": "#CD7F32"}),
)

USER_BADGES = (
    {"id": "curieux", "name": "Curieux", "threshold": 5},
    {"id": "explorateur", "name": "Explorateur", "threshold": 15},
    {"id": "ambassadeur", "name": "Ambassadeur", "threshold": 50},
)

TRENDING_SIZE = 5


class EventNotFoundError(Exception):
    pass


class EventValidationError(Exception):
    pass


class PremiumRequiredError(Exception):
    pass


def gauge_percentage(total_score: int) -> float:
    percentage = total_score / GAUGE_FULL_SCORE * 100
    return min(max(percentage, 0), GAUGE_MAX)


def event_badge(gauge: float) -> Optional[dict]:
    for threshold, badge in EVENT_BADGES:
        if gauge >= threshold:
            return dict(badge)
    return None


def unlocked_badge(current_count: int, previous_count: int) -> Optional[dict]:
    for badge in USER_BADGES:
        if previous_count < badge["threshold"] <= current_count:
            return dict(badge)
    return None


def is_recurring_event(event) -> bool:
    """Récurrent par drapeau, ou parce qu'il dure plus d'un jour."""
    if event.is_recurring:
        return True
    if event.end_date is None:
        return False
    days = math.ceil((event.end_date - event.start_date).total_seconds() / 86400)
    return days > 1


def _minutes_of_day(value: datetime) -> int:
    return value.hour * 60 + value.minute


def event_status(event, now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    start, end = event.start_date, event.end_date

    if not is_recurring_event(event):
        return "ongoing" if start <= now and (end is None or now <= end) else "upcoming"

    if now < start:
        return "upcoming"
    if end is not None and now > end:
        return "past"
    # Dans la période de validité : en cours seulement sur le créneau quotidien
    window_start = _minutes_of_day(start)
    window_end = _minutes_of_day(end) if end is not None else 23 * 60 + 59
    return "ongoing" if window_start <= _minutes_of_day(now) <= window_end else "upcoming"


def engagement_summary(engagements) -> dict:
    score = sum(ENGAGEMENT_SCORES.get(e.type, 0) for e in engagements)
    gauge = gauge_percentage(score)
    return {
        "engagementScore": score,
        "engagementCount": len(engagements),
        "gaugePercentage": gauge,
        "eventBadge": event_badge(gauge),
    }


def serialize_upcoming(event: Event, now: Optional[datetime] = None) -> dict:
    data = EventResponse.model_validate(event).model_dump()
    data["establishment"] = (
        EventEstablishmentOut.model_validate(event.establishment).model_dump() if event.establishment else None
    )
    data.update(engagement_summary(event.engagements))
    data["status"] = event_status(event, now)
    return data


def _initials(first_name: Optional[str], last_name: Optional[str]) -> str:
    return f"{(first_name or '')[:1]}{(last_name or '')[:1]}".upper()


class EventService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _premium_establishment(self, professional) -> Establishment:
        result = await self.db.execute(
            select(Establishment)
            .where(Establishment.owner_id == professional.id)
            .order_by(Establishment.created_at)
        )
        establishment = result.scalars().first()
        if not establishment:
            raise EventNotFoundError("Aucun établissement trouvé")
        if not has_premium_access(establishment.subscription):
            raise PremiumRequiredError("Les événements sont réservés aux comptes Premium")
        return establishment

    @staticmethod
    def _validate(data: EventPayload):
        if not data.title or not data.start_date:
            raise EventValidationError("Titre et date de début requis")
        if data.end_date is not None and data.end_date < data.start_date:
            raise EventValidationError("La date de fin doit être postérieure à la date de début")

    async def _get_owned_event(self, event_id: int, establishment: Establishment) -> Event:
        result = await self.db.execute(
            select(Event).where(Event.id == event_id, Event.establishment_id == establishment.id)
        )
        event = result.scalars().first()
        if not event:
            raise EventNotFoundError("Événement non trouvé")
        return event

    async def list_for_owner(self, professional) -> List[Event]:
        establishment = await self._premium_establishment(professional)
        result = await self.db.execute(
            select(Event).where(Event.establishment_id == establishment.id).order_by(Event.start_date)
        )
        return result.scalars().all()

    async def create_event(self, data: EventPayload, professional) -> Event:
        establishment = await self._premium_establishment(professional)
        self._validate(data)

        event = Event(establishment_id=establishment.id, **data.model_dump())
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)
        logger.info(f"🎉 Événement {event.id} créé pour l'établissement {establishment.id}")
        return event

    async def update_event(self, event_id: int, data: EventPayload, professional) -> Event:
        establishment = await self._premium_establishment(professional)
        event = await self._get_owned_event(event_id, establishment)
        self._validate(data)

        for field, value in data.model_dump().items():
            setattr(event, field, value)
        await self.db.commit()
        await self.db.refresh(event)
        logger.info(f"✏️ Événement {event_id} modifié")
        return event

    async def delete_event(self, event_id: int, professional):
        establishment = await self._premium_establishment(professional)
        event = await self._get_owned_event(event_id, establishment)
        await self.db.delete(event)
        await self.db.commit()
        logger.info(f"🗑️ Événement {event_id} supprimé")

    async def upcoming(self, city: Optional[str] = None, limit: int = 50, now: Optional[datetime] = None) -> dict:
        now = now or datetime.utcnow()
        query = (
            select(Event)
            .join(Establishment, Event.establishment_id == Establishment.id)
            .options(selectinload(Event.establishment), selectinload(Event.engagements))
            .where(
                Establishment.status == STATUS_APPROVED,
                # À venir, ou commencé et pas encore terminé
                or_(Event.start_date >= now, Event.end_date.is_(None), Event.end_date >= now),
            )
            .order_by(Event.start_date)
            .limit(limit)
        )
        if city:
            query = query.where(func.lower(Establishment.city) == city.strip().lower())

        events = [serialize_upcoming(event, now) for event in (await self.db.execute(query)).scalars().all()]
        trending = sorted(events, key=lambda e: e["engagementScore"], reverse=True)[:TRENDING_SIZE]
        return {"events": events, "trending": trending, "total": len(events)}

    async def get_event(self, event_id: int) -> Event:
        event = await self.db.get(Event, event_id)
        if not event:
            raise EventNotFoundError("Événement introuvable")
        return event

    async def _count_user_engagements(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(EventEngagement.id)).where(EventEngagement.user_id == user_id)
        )
        return result.scalar_one()

    async def engage(self, event_id: int, user, engagement_type: Optional[str]) -> dict:
        if engagement_type not in ENGAGEMENT_SCORES:
            raise EventValidationError("Type d'engagement invalide")
        await self.get_event(event_id)

        previous_count = await self._count_user_engagements(user.id)
        result = await self.db.execute(
            select(EventEngagement).where(EventEngagement.event_id == event_id, EventEngagement.user_id == user.id)
        )
        engagement = result.scalars().first()

        # Changer d'avis ne cumule pas le karma : seul l'écart de score compte
        karma_delta = ENGAGEMENT_SCORES[engagement_type]
        if engagement:
            karma_delta -= ENGAGEMENT_SCORES.get(engagement.type, 0)
            engagement.type = engagement_type
            engagement.created_at = datetime.utcnow()
        else:
            engagement = EventEngagement(event_id=event_id, user_id=user.id, type=engagement_type)
            self.db.add(engagement)
        user.karma_points = (user.karma_points or 0) + karma_delta
        await self.db.flush()

        new_badge = unlocked_badge(await self._count_user_engagements(user.id), previous_count)
        badges = list(user.gamification_badges or [])
        if new_badge and not any(b.get("id") == new_badge["id"] for b in badges):
            badges.append({**new_badge, "unlockedAt": datetime.utcnow().isoformat()})
            user.gamification_badges = badges
            logger.info(f"🏅 Badge '{new_badge['id']}' débloqué par l'utilisateur {user.id}")

        await self.db.commit()
        await self.db.refresh(engagement)

        stats = await self.engagement_stats(event_id, user)
        return {
            "success": True,
            "engagement": {
                "id": engagement.id,
                "eventId": engagement.event_id,
                "userId": engagement.user_id,
                "type": engagement.type,
                "createdAt": engagement.created_at,
            },
            **stats,
            "newBadge": new_badge,
            "userKarma": user.karma_points,
        }

    async def engagement_stats(self, event_id: int, viewer=None) -> dict:
        await self.get_event(event_id)
        result = await self.db.execute(
            select(EventEngagement)
            .options(selectinload(EventEngagement.user))
            .where(EventEngagement.event_id == event_id)
            .order_by(EventEngagement.created_at)
            .execution_options(populate_existing=True)
        )
        engagements = result.scalars().all()

        stats = {engagement_type: 0 for engagement_type in ENGAGEMENT_SCORES}
        users_by_engagement = {engagement_type: [] for engagement_type in ENGAGEMENT_SCORES}
        user_engagement = None
        for engagement in engagements:
            stats[engagement.type] += 1
            if engagement.user:
                users_by_engagement[engagement.type].append({
                    "id": engagement.user_id,
                    "firstName": engagement.user.first_name,
                    "lastName": engagement.user.last_name,
                    "initials": _initials(engagement.user.first_name, engagement.user.last_name),
                })
            if viewer is not None and viewer.user_type == "user" and engagement.user_id == viewer.id:
                user_engagement = engagement.type

        summary = engagement_summary(engagements)
        return {
            "stats": stats,
            "gaugePercentage": summary["gaugePercentage"],
            "totalScore": summary["engagementScore"],
            "eventBadge": summary["eventBadge"],
            "userEngagement": user_engagement,
            "totalEngagements": len(engagements),
            "usersByEngagement": users_by_engagement,
        }
