import logging
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from envie2sortir.establishments.models import Establishment, Menu, Tariff
from envie2sortir.menus.schemas import MenuUpdate, TariffPayload
from envie2sortir.professionals.models import has_premium_access
from envie2sortir.utils.uploads import delete_upload, write_upload

logger = logging.getLogger(__name__)

MAX_MENUS = 5


class MenuNotFoundError(Exception):
    pass


class MenuLimitError(Exception):
    pass


class PremiumRequiredError(Exception):
    pass


class TariffNotFoundError(Exception):
    pass


class MenuService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _owned_establishment(self, establishment_id: int, professional) -> Establishment:
        establishment = await self.db.get(Establishment, establishment_id)
        if not establishment or establishment.owner_id != professional.id:
            raise MenuNotFoundError("Établissement non trouvé")
        if not has_premium_access(establishment.subscription):
            raise PremiumRequiredError("Les menus PDF sont réservés aux comptes Premium")
        return establishment

    async def _get_menu(self, establishment_id: int, menu_id: int) -> Menu:
        result = await self.db.execute(
            select(Menu).where(Menu.id == menu_id, Menu.establishment_id == establishment_id)
        )
        menu = result.scalars().first()
        if not menu:
            raise MenuNotFoundError("Menu non trouvé")
        return menu

    async def list_active(self, establishment_id: int) -> List[Menu]:
        if not await self.db.get(Establishment, establishment_id):
            raise MenuNotFoundError("Établissement non trouvé")
        result = await self.db.execute(
            select(Menu)
            .where(Menu.establishment_id == establishment_id, Menu.is_active.is_(True))
            .order_by(Menu.ordre, Menu.id)
        )
        return result.scalars().all()

    async def check_can_upload(self, establishment_id: int, professional) -> Establishment:
        establishment = await self._owned_establishment(establishment_id, professional)
        result = await self.db.execute(
            select(func.count(Menu.id)).where(Menu.establishment_id == establishment.id, Menu.is_active.is_(True))
        )
        if result.scalar_one() >= MAX_MENUS:
            raise MenuLimitError(f"Limite de {MAX_MENUS} menus atteinte")
        return establishment

    async def create_menu(
        self,
        establishment: Establishment,
        name: str,
        description: Optional[str],
        content: bytes,
        file_name: str,
        mime_type: str,
    ) -> Menu:
        result = await self.db.execute(
            select(func.max(Menu.ordre)).where(Menu.establishment_id == establishment.id)
        )
        last_order = result.scalar_one()

        file_url = await write_upload(content, f"menus/{establishment.id}", "pdf")
        menu = Menu(
            establishment_id=establishment.id,
            name=name,
            description=description,
            file_url=file_url,
            file_name=file_name,
            file_size=len(content),
            mime_type=mime_type,
            ordre=0 if last_order is None else last_order + 1,
        )
        self.db.add(menu)
        await self.db.commit()
        await self.db.refresh(menu)
        logger.info(f"📄 Menu {menu.id} ajouté à l'établissement {establishment.id}")
        return menu

    async def update_menu(self, establishment_id: int, menu_id: int, data: MenuUpdate, professional) -> Menu:
        await self._owned_establishment(establishment_id, professional)
        menu = await self._get_menu(establishment_id, menu_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "description" and isinstance(value, str):
                value = value.strip() or None
            setattr(menu, field, value)
        await self.db.commit()
        await self.db.refresh(menu)
        return menu

    async def delete_menu(self, establishment_id: int, menu_id: int, professional):
        await self._owned_establishment(establishment_id, professional)
        menu = await self._get_menu(establishment_id, menu_id)
        file_url = menu.file_url
        await self.db.delete(menu)
        await self.db.commit()
        await delete_upload(file_url)
        logger.info(f"🗑️ Menu {menu_id} supprimé de l'établissement {establishment_id}")


class TariffService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _establishment_of(self, professional) -> Establishment:
        result = await self.db.execute(
            select(Establishment)
            .where(Establishment.owner_id == professional.id)
            .order_by(Establishment.created_at)
        )
        establishment = result.scalars().first()
        if not establishment:
            raise TariffNotFoundError("Aucun établissement trouvé")
        return establishment

    async def _get_tariff(self, tariff_id: int, establishment: Establishment) -> Tariff:
        result = await self.db.execute(
            select(Tariff).where(Tariff.id == tariff_id, Tariff.establishment_id == establishment.id)
        )
        tariff = result.scalars().first()
        if not tariff:
            raise TariffNotFoundError("Tarif non trouvé")
        return tariff

    async def list_for_owner(self, professional) -> List[Tariff]:
        establishment = await self._establishment_of(professional)
        result = await self.db.execute(
            select(Tariff).where(Tariff.establishment_id == establishment.id).order_by(Tariff.id)
        )
        return result.scalars().all()

    async def create(self, data: TariffPayload, professional) -> Tariff:
        establishment = await self._establishment_of(professional)
        tariff = Tariff(establishment_id=establishment.id, label=data.label, price=data.price)
        self.db.add(tariff)
        await self.db.commit()
        await self.db.refresh(tariff)
        logger.info(f"💶 Tarif {tariff.id} ajouté à l'établissement {establishment.id}")
        return tariff

    async def update(self, tariff_id: int, data: TariffPayload, professional) -> Tariff:
        establishment = await self._establishment_of(professional)
        tariff = await self._get_tariff(tariff_id, establishment)
        tariff.label = data.label
        tariff.price = data.price
        await self.db.commit()
        await self.db.refresh(tariff)
        return tariff

    async def delete(self, tariff_id: int, professional):
        establishment = await self._establishment_of(professional)
        tariff = await self._get_tariff(tariff_id, establishment)
        await self.db.delete(tariff)
        await self.db.commit()
