import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from envie2sortir.deals.models import DailyDeal, DealEngagement
from envie2sortir.deals.schemas import DealCreate, REQUIRED_DEAL_FIELDS
from envie2sortir.deals.utils import is_deal_active, format_deal_time, calculate_discount
from envie2sortir.establishments.models import Establishment, STATUS_APPROVED
from envie2sortir.professionals.models import has_premium_access

logger = logging.getLogger(__name__)

ENGAGEMENT_TYPES = ("liked", "disliked")


class DealNotFoundError(Exception):
    pass


class DealPermissionError(Exception):
    pass


class PremiumRequiredError(Exception):
    pass


class DealValidationError(Exception):
    pass


DEAL_COLUMNS = (
    "id", "establishment_id", "title", "description", "modality", "original_price", "discounted_price",
    "image_url", "pdf_url", "promo_url", "date_debut", "date_fin", "heure_debut", "heure_fin",
    "is_active", "is_recurring", "recurrence_type", "recurrence_days", "recurrence_end_date", "created_at",
)


def serialize_deal(deal: DailyDeal, now: Optional[datetime] = None, establishment: Optional[Establishment] = None) -> dict:
    data = {column: getattr(deal, column) for column in DEAL_COLUMNS}
    data["discount"] = calculate_discount(deal.original_price, deal.discounted_price)
    data["time_label"] = format_deal_time(deal, now)
    data["is_currently_active"] = is_deal_active(deal, now)
    if establishment is not None:
        data["establishment"] = {
            "id": establishment.id,
            "name": establishment.name,
            "slug": establishment.slug,
            "address": establishment.address,
            "city": establishment.city,
            "latitude": establishment.latitude,
            "longitude": establishment.longitude,
            "activities": establishment.activities,
        }
    return data


class DealService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_owned_establishment(self, establishment_id: int, professional) -> Establishment:
        result = await self.db.execute(
            select(Establishment).where(
                Establishment.id == establishment_id,
                Establishment.owner_id == professional.id,
            )
        )
        establishment = result.scalars().first()
        if not establishment:
            raise DealNotFoundError("Établissement non trouvé ou non autorisé")
        return establishment

    async def get_deal(self, deal_id: int) -> DailyDeal:
        result = await self.db.execute(
            select(DailyDeal).options(selectinload(DailyDeal.establishment)).where(DailyDeal.id == deal_id)
        )
        deal = result.scalars().first()
        if not deal:
            raise DealNotFoundError("Bon plan non trouvé")
        return deal

    async def create_deal(self, data: DealCreate, professional) -> DailyDeal:
        missing = [field for field in REQUIRED_DEAL_FIELDS if getattr(data, field) in (None, "")]
        if missing:
            raise DealValidationError(f"Champs requis manquants: {', '.join(missing)}")
        if data.date_fin < data.date_debut:
            raise DealValidationError("La date de fin doit être postérieure à la date de début")

        establishment = await self._get_owned_establishment(data.establishment_id, professional)
        if not has_premium_access(establishment.subscription):
            raise PremiumRequiredError("Les bons plans sont réservés aux comptes Premium")

        values = data.model_dump(exclude_unset=True, exclude={"establishment_id"})
        values.setdefault("is_active", True)
        values.setdefault("is_recurring", False)
        deal = DailyDeal(establishment_id=establishment.id, **{k: v for k, v in values.items() if v is not None})
        self.db.add(deal)
        await self.db.commit()
        await self.db.refresh(deal)
        logger.info(f"✅ Bon plan {deal.id} créé pour l'établissement {establishment.id}")
        return deal

    async def _get_for_owner(self, deal_id: int, professional) -> DailyDeal:
        deal = await self.get_deal(deal_id)
        if deal.establishment.owner_id != professional.id:
            raise DealPermissionError("Non autorisé à modifier ce bon plan")
        return deal

    async def update_deal(self, deal_id: int, values: dict, professional) -> DailyDeal:
        deal = await self._get_for_owner(deal_id, professional)
        for field, value in values.items():
            setattr(deal, field, value)
        if deal.date_fin < deal.date_debut:
            raise DealValidationError("La date de fin doit être postérieure à la date de début")
        await self.db.commit()
        await self.db.refresh(deal)
        logger.info(f"✏️ Bon plan {deal_id} mis à jour")
        return deal

    async def delete_deal(self, deal_id: int, professional):
        deal = await self._get_for_owner(deal_id, professional)
        await self.db.delete(deal)
        await self.db.commit()
        logger.info(f"🗑️ Bon plan {deal_id} supprimé")

    async def active_deals_for_establishment(self, establishment_id: int, now: Optional[datetime] = None) -> List[DailyDeal]:
        result = await self.db.execute(
            select(DailyDeal)
            .where(DailyDeal.establishment_id == establishment_id, DailyDeal.is_active.is_(True))
            .order_by(DailyDeal.created_at.desc())
        )
        return [deal for deal in result.scalars().all() if is_deal_active(deal, now)]

    async def all_active_deals(self, limit: int = 12, now: Optional[datetime] = None) -> List[DailyDeal]:
        now = now or datetime.now()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        tomorrow = today + timedelta(days=1)

        query = (
            select(DailyDeal)
            .join(Establishment, DailyDeal.establishment_id == Establishment.id)
            .options(selectinload(DailyDeal.establishment))
            .where(
                DailyDeal.is_active.is_(True),
                Establishment.status == STATUS_APPROVED,
                DailyDeal.date_debut <= tomorrow,
                (DailyDeal.date_fin >= today) | DailyDeal.is_recurring.is_(True),
            )
            .order_by(DailyDeal.created_at.desc())
        )
        result = await self.db.execute(query)
        deals = [deal for deal in result.scalars().all() if is_deal_active(deal, now)]
        return deals[:limit] if limit > 0 else deals

    async def record_engagement(self, deal_id: int, engagement_type: str, user_ip: str,
                                timestamp: Optional[datetime] = None) -> DealEngagement:
        if engagement_type not in ENGAGEMENT_TYPES:
            raise DealValidationError("Données invalides")
        deal = await self.get_deal(deal_id)
        timestamp = timestamp.replace(tzinfo=None) if timestamp else datetime.utcnow()

        result = await self.db.execute(
            select(DealEngagement).where(DealEngagement.deal_id == deal_id, DealEngagement.user_ip == user_ip)
        )
        engagement = result.scalars().first()
        if engagement:
            engagement.type = engagement_type
            engagement.timestamp = timestamp
        else:
            engagement = DealEngagement(
                deal_id=deal.id,
                establishment_id=deal.establishment_id,
                type=engagement_type,
                user_ip=user_ip,
                timestamp=timestamp,
            )
            self.db.add(engagement)
        await self.db.commit()
        return engagement

    async def engagement_stats(self, deal_id: Optional[int] = None, establishment_id: Optional[int] = None) -> dict:
        query = select(DealEngagement).order_by(DealEngagement.timestamp)
        if deal_id is not None:
            query = query.where(DealEngagement.deal_id == deal_id)
        else:
            query = query.where(DealEngagement.establishment_id == establishment_id)
        engagements = (await self.db.execute(query)).scalars().all()

        liked = sum(1 for e in engagements if e.type == "liked")
        disliked = sum(1 for e in engagements if e.type == "disliked")
        total = liked + disliked
        rate = (liked / total) * 100 if total > 0 else 0

        return {
            "stats": {
                "liked": liked,
                "disliked": disliked,
                "total": total,
                "engagementRate": round(rate, 2),
            },
            "engagements": [
                {"type": e.type, "timestamp": e.timestamp, "dealId": e.deal_id}
                for e in engagements[-10:]
            ],
        }

    async def process_recurrence(self, now: Optional[datetime] = None) -> int:
        """Désactive les bons plans expirés. Retourne le nombre de bons plans touchés."""
        now = now or datetime.now()
        result = await self.db.execute(select(DailyDeal).where(DailyDeal.is_active.is_(True)))
        expired = 0
        for deal in result.scalars().all():
            if deal.is_recurring:
                ended = deal.recurrence_end_date is not None and deal.recurrence_end_date < now
            else:
                ended = deal.date_fin < now
            if ended:
                deal.is_active = False
                expired += 1
        await self.db.commit()
        logger.info(f"🔁 Traitement des récurrences : {expired} bon(s) plan(s) désactivé(s)")
        return expired
