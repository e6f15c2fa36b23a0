import logging
from typing import List, Optional

from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from envie2sortir.admin.models import AdminAction
from envie2sortir.comments.models import UserComment
from envie2sortir.deals.models import DailyDeal, DealEngagement
from envie2sortir.establishments.models import (
    Establishment, EstablishmentTag, Image, Menu, Tariff, STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED
)
from envie2sortir.events.models import Event, EventEngagement
from envie2sortir.users.models import UserFavorite
from envie2sortir.utils.text import generate_slug

logger = logging.getLogger(__name__)


class EstablishmentNotFoundError(Exception):
    pass


class NotOwnerError(Exception):
    pass


UPDATABLE_FIELDS = (
    "name", "description", "address", "city", "postal_code", "latitude", "longitude",
    "activities", "services", "ambiance", "payment_methods", "horaires_ouverture", "envie_tags",
    "informations_pratiques", "phone", "email", "website", "instagram", "facebook", "tiktok",
    "the_fork_link", "uber_eats_link", "price_min", "price_max", "price_level",
)


def can_manage(establishment: Establishment, account) -> bool:
    """Le propriétaire ou un admin."""
    if account is None:
        return False
    if account.user_type == "professional":
        return establishment.owner_id == account.id
    return account.role == "admin"


def is_owner(establishment: Establishment, account) -> bool:
    return account is not None and account.user_type == "professional" and establishment.owner_id == account.id


async def unique_slug(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> str:
    base = generate_slug(name) or "etablissement"
    slug = base
    counter = 1
    while True:
        query = select(Establishment.id).where(Establishment.slug == slug)
        if exclude_id is not None:
            query = query.where(Establishment.id != exclude_id)
        if (await db.execute(query)).first() is None:
            return slug
        slug = f"{base}-{counter}"
        counter += 1


class EstablishmentService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _with_relations(self, query):
        return query.options(selectinload(Establishment.tags), selectinload(Establishment.images))

    async def get_by_id(self, establishment_id: int) -> Establishment:
        result = await self.db.execute(
            self._with_relations(select(Establishment)).where(Establishment.id == establishment_id)
        )
        establishment = result.scalars().first()
        if not establishment:
            raise EstablishmentNotFoundError(establishment_id)
        return establishment

    async def get_by_slug(self, slug: str) -> Establishment:
        result = await self.db.execute(
            self._with_relations(select(Establishment)).where(Establishment.slug == slug)
        )
        establishment = result.scalars().first()
        if not establishment:
            raise EstablishmentNotFoundError(slug)
        return establishment

    async def get_for_owner(self, owner_id: int) -> Optional[Establishment]:
        result = await self.db.execute(
            self._with_relations(select(Establishment))
            .where(Establishment.owner_id == owner_id)
            .order_by(Establishment.created_at)
        )
        return result.scalars().first()

    async def list_approved(
        self,
        page: int = 1,
        per_page: int = 20,
        city: Optional[str] = None,
        activity: Optional[str] = None,
        search: Optional[str] = None,
    ) -> dict:
        query = select(Establishment).where(Establishment.status == STATUS_APPROVED)
        if city:
            query = query.where(Establishment.city.ilike(f"%{city}%"))
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Establishment.name.ilike(pattern), Establishment.description.ilike(pattern)))

        if activity:
            # Filtre JSON fait côté Python pour rester portable (PostgreSQL / SQLite)
            result = await self.db.execute(self._with_relations(query).order_by(Establishment.name))
            rows = [e for e in result.scalars().all() if activity in (e.activities or [])]
            total = len(rows)
            items = rows[(page - 1) * per_page:page * per_page]
        else:
            count_query = query.with_only_columns(func.count(Establishment.id)).order_by(None)
            total = (await self.db.execute(count_query)).scalar_one()
            result = await self.db.execute(
                self._with_relations(query)
                .order_by(Establishment.name)
                .offset((page - 1) * per_page)
                .limit(per_page)
            )
            items = result.scalars().all()

        return {
            "items": items,
            "total": total,
            "page": page,
            "per_page": per_page,
            "pages": (total + per_page - 1) // per_page,
        }

    async def update(self, establishment_id: int, account, data: dict) -> Establishment:
        establishment = await self.get_by_id(establishment_id)
        if not is_owner(establishment, account):
            raise NotOwnerError(establishment_id)

        for field, value in data.items():
            if field in UPDATABLE_FIELDS:
                setattr(establishment, field, value)

        if "name" in data and data["name"]:
            establishment.slug = await unique_slug(self.db, data["name"], exclude_id=establishment.id)

        # Un établissement refusé et modifié repart en modération
        if establishment.status == STATUS_REJECTED:
            establishment.status = STATUS_PENDING
            establishment.rejection_reason = None
            establishment.rejected_at = None

        await self.db.commit()
        logger.info(f"✏️ Établissement {establishment.id} mis à jour ({', '.join(data.keys())})")
        return await self.get_by_id(establishment.id)

    async def replace_tags(self, establishment: Establishment, tags: List[dict], type_tag: Optional[str] = None):
        """Remplace les tags (tous, ou seulement ceux d'un type donné)."""
        query = delete(EstablishmentTag).where(EstablishmentTag.establishment_id == establishment.id)
        if type_tag:
            query = query.where(EstablishmentTag.type_tag == type_tag)
        await self.db.execute(query)

        existing = set()
        if type_tag:
            result = await self.db.execute(
                select(EstablishmentTag.tag).where(EstablishmentTag.establishment_id == establishment.id)
            )
            existing = {row[0] for row in result.all()}

        for item in tags:
            if item["tag"] in existing:
                continue
            self.db.add(EstablishmentTag(
                establishment_id=establishment.id,
                tag=item["tag"],
                type_tag=item["type_tag"],
                poids=item["poids"],
            ))

    async def delete(self, establishment_id: int, account) -> str:
        """Suppression complète de l'établissement et de ses dépendances en une transaction."""
        establishment = await self.get_by_id(establishment_id)
        if not can_manage(establishment, account):
            raise NotOwnerError(establishment_id)

        name = establishment.name
        try:
            deal_ids = select(DailyDeal.id).where(DailyDeal.establishment_id == establishment_id)
            await self.db.execute(delete(DealEngagement).where(DealEngagement.deal_id.in_(deal_ids)))
            await self.db.execute(delete(DailyDeal).where(DailyDeal.establishment_id == establishment_id))
            event_ids = select(Event.id).where(Event.establishment_id == establishment_id)
            await self.db.execute(delete(EventEngagement).where(EventEngagement.event_id.in_(event_ids)))
            await self.db.execute(delete(Event).where(Event.establishment_id == establishment_id))
            await self.db.execute(delete(UserComment).where(UserComment.establishment_id == establishment_id))
            await self.db.execute(delete(UserFavorite).where(UserFavorite.establishment_id == establishment_id))
            await self.db.execute(delete(EstablishmentTag).where(EstablishmentTag.establishment_id == establishment_id))
            await self.db.execute(delete(Image).where(Image.establishment_id == establishment_id))
            await self.db.execute(delete(Menu).where(Menu.establishment_id == establishment_id))
            await self.db.execute(delete(Tariff).where(Tariff.establishment_id == establishment_id))
            await self.db.execute(delete(AdminAction).where(AdminAction.establishment_id == establishment_id))
            await self.db.execute(delete(Establishment).where(Establishment.id == establishment_id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"🗑️ Établissement {establishment_id} ('{name}') supprimé")
        return name

    async def add_image(self, establishment: Establishment, url: str) -> Image:
        is_first = not establishment.images
        image = Image(
            establishment_id=establishment.id,
            url=url,
            is_primary=is_first,
            ordre=len(establishment.images or []),
        )
        self.db.add(image)
        await self.db.commit()
        await self.db.refresh(image)
        return image
