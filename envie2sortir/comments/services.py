import logging
from datetime import datetime
from typing import List, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from envie2sortir.comments.models import UserComment
from envie2sortir.comments.moderation import validate_comment_content
from envie2sortir.comments.schemas import CommentCreate
from envie2sortir.establishments.models import Establishment

logger = logging.getLogger(__name__)


class CommentNotFoundError(Exception):
    pass


class CommentPermissionError(Exception):
    pass


class CommentService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _with_relations(self, query):
        return query.options(selectinload(UserComment.user), selectinload(UserComment.establishment))

    async def _get(self, comment_id: int) -> UserComment:
        result = await self.db.execute(
            self._with_relations(select(UserComment))
            .where(UserComment.id == comment_id)
            .execution_options(populate_existing=True)
        )
        comment = result.scalars().first()
        if not comment:
            raise CommentNotFoundError("Avis non trouvé")
        return comment

    async def refresh_establishment_stats(self, establishment_id: int):
        """Recalcule la note moyenne et le nombre d'avis de l'établissement."""
        total, average = (await self.db.execute(
            select(func.count(UserComment.id), func.avg(UserComment.rating))
            .where(UserComment.establishment_id == establishment_id)
        )).one()
        establishment = await self.db.get(Establishment, establishment_id)
        if establishment is not None:
            establishment.total_comments = total
            establishment.avg_rating = round(float(average), 2) if average is not None else None

    async def upsert_comment(self, user, data: CommentCreate) -> Tuple[UserComment, bool]:
        """Crée l'avis ou met à jour celui déjà laissé. Retourne (avis, créé)."""
        content = validate_comment_content(data.content)

        establishment = await self.db.get(Establishment, data.establishment_id)
        if establishment is None:
            raise CommentNotFoundError("Établissement non trouvé")

        result = await self.db.execute(
            select(UserComment).where(
                UserComment.user_id == user.id,
                UserComment.establishment_id == establishment.id,
            )
        )
        comment = result.scalars().first()
        created = comment is None
        if created:
            comment = UserComment(user_id=user.id, establishment_id=establishment.id, content=content, rating=data.rating)
            self.db.add(comment)
        else:
            comment.content = content
            comment.rating = data.rating
            comment.updated_at = datetime.utcnow()

        await self.db.flush()
        await self.refresh_establishment_stats(establishment.id)
        await self.db.commit()
        logger.info(f"💬 Avis {'ajouté' if created else 'mis à jour'} : user={user.id}, établissement={establishment.id}")
        return await self._get(comment.id), created

    async def delete_comment(self, comment_id: int, account):
        comment = await self._get(comment_id)
        if comment.user_id != account.id and not account.is_admin:
            raise CommentPermissionError("Vous ne pouvez supprimer que vos propres avis")

        establishment_id = comment.establishment_id
        await self.db.delete(comment)
        await self.db.flush()
        await self.refresh_establishment_stats(establishment_id)
        await self.db.commit()
        logger.info(f"🗑️ Avis {comment_id} supprimé par {account.user_type}:{account.id}")

    async def list_for_user(self, user_id: int) -> List[UserComment]:
        result = await self.db.execute(
            self._with_relations(select(UserComment))
            .where(UserComment.user_id == user_id)
            .order_by(UserComment.created_at.desc())
        )
        return result.scalars().all()

    async def list_for_establishment(self, establishment_id: int) -> List[UserComment]:
        result = await self.db.execute(
            self._with_relations(select(UserComment))
            .where(UserComment.establishment_id == establishment_id)
            .order_by(UserComment.created_at.desc())
        )
        return result.scalars().all()
