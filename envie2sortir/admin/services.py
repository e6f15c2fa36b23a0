import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from envie2sortir.admin.models import AdminAction
from envie2sortir.auth.models import User
from envie2sortir.comments.models import UserComment
from envie2sortir.deals.models import DailyDeal
from envie2sortir.establishments.models import Establishment, STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED
from envie2sortir.messaging.models import Conversation, CONVERSATION_OPEN
from envie2sortir.professionals.models import Professional, has_premium_access

logger = logging.getLogger(__name__)

ESTABLISHMENT_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

# action -> (nouveau statut, libellé du message)
MODERATION_ACTIONS = {
    "approve": (STATUS_APPROVED, "approuvé"),
    "reject": (STATUS_REJECTED, "rejeté"),
    "pending": (STATUS_PENDING, "remis en attente"),
    "delete": (STATUS_REJECTED, "supprimé"),
}

DEFAULT_DELETE_REASON = "Supprimé par un administrateur"


class ModerationError(Exception):
    pass


class EstablishmentNotFound(Exception):
    pass


async def status_counts(db: AsyncSession) -> dict:
    rows = await db.execute(select(Establishment.status, func.count(Establishment.id)).group_by(Establishment.status))
    counts = {status: 0 for status in ESTABLISHMENT_STATUSES}
    counts.update(dict(rows.all()))
    counts["total"] = sum(counts[status] for status in ESTABLISHMENT_STATUSES)
    return counts


async def list_establishments(
    db: AsyncSession,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    query = select(Establishment)
    if status:
        query = query.where(Establishment.status == status)
    if search:
        query = query.where(or_(Establishment.name.ilike(f"%{search}%"), Establishment.city.ilike(f"%{search}%")))

    total = (await db.execute(query.with_only_columns(func.count(Establishment.id)).order_by(None))).scalar_one()
    result = await db.execute(
        query.options(selectinload(Establishment.owner))
        .order_by(Establishment.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return {
        "establishments": result.scalars().all(),
        "total": total,
        "page": page,
        "limit": limit,
        "counts": await status_counts(db),
    }


async def moderate_establishment(
    db: AsyncSession, admin, establishment_id: Optional[int], action: Optional[str], reason: Optional[str] = None
) -> Tuple[Establishment, AdminAction, str]:
    """Applique une action de modération et l'historise. Retourne (établissement, action, message)."""
    if not establishment_id or not action:
        raise ModerationError("ID établissement et action requis")
    action = action.lower()
    if action not in MODERATION_ACTIONS:
        raise ModerationError("Action non valide")
    if action == "reject" and not (reason or "").strip():
        raise ModerationError("Raison du rejet requise")

    establishment = await db.get(Establishment, establishment_id)
    if establishment is None:
        raise EstablishmentNotFound("Établissement non trouvé")

    new_status, label = MODERATION_ACTIONS[action]
    previous_status = establishment.status
    establishment.status = new_status

    if action == "approve" or action == "pending":
        establishment.rejection_reason = None
        establishment.rejected_at = None
    else:
        if action == "delete":
            reason = reason or DEFAULT_DELETE_REASON
        establishment.rejection_reason = reason
        establishment.rejected_at = datetime.utcnow()

    admin_action = AdminAction(
        admin_id=admin.id,
        establishment_id=establishment.id,
        action=action.upper(),
        reason=reason or None,
        previous_status=previous_status,
        new_status=new_status,
        details={
            "establishmentName": establishment.name,
            "adminEmail": admin.email,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
    db.add(admin_action)
    await db.commit()
    await db.refresh(admin_action)

    logger.info(f"🛡️ Admin {admin.id} : {action} sur l'établissement {establishment.id} ({previous_status} → {new_status})")
    return establishment, admin_action, f'"{establishment.name}" {label} avec succès'


async def list_actions(db: AsyncSession, establishment_id: Optional[int] = None, limit: int = 50):
    query = select(AdminAction).order_by(AdminAction.created_at.desc(), AdminAction.id.desc()).limit(limit)
    if establishment_id is not None:
        query = query.where(AdminAction.establishment_id == establishment_id)
    return (await db.execute(query)).scalars().all()


def _month_start(value: datetime, months_back: int = 0) -> datetime:
    year, month = value.year, value.month - months_back
    while month < 1:
        month += 12
        year -= 1
    return datetime(year, month, 1)


async def professionals_stats(db: AsyncSession, now: Optional[datetime] = None) -> dict:
    """Répartition premium / gratuit et nouveaux établissements approuvés par période."""
    now = now or datetime.utcnow()
    rows = (await db.execute(
        select(Establishment.subscription, Establishment.created_at).where(Establishment.status == STATUS_APPROVED)
    )).all()

    total = len(rows)
    premium = sum(1 for subscription, _ in rows if has_premium_access(subscription))
    conversion_rate = (premium / total) * 100 if total > 0 else 0

    # Semaine commençant le dimanche
    start_of_week = (now - timedelta(days=now.isoweekday() % 7)).replace(hour=0, minute=0, second=0, microsecond=0)
    start_of_month = _month_start(now)
    start_of_last_month = _month_start(now, 1)

    def created(value):
        return value.replace(tzinfo=None) if value is not None and value.tzinfo else value

    dates = [created(created_at) for _, created_at in rows if created_at is not None]
    return {
        "totalEstablishments": total,
        "premiumCount": premium,
        "freeCount": total - premium,
        "conversionRate": round(conversion_rate, 2),
        "newThisWeek": sum(1 for d in dates if d >= start_of_week),
        "newThisMonth": sum(1 for d in dates if d >= start_of_month),
        "newLastMonth": sum(1 for d in dates if start_of_last_month <= d < start_of_month),
    }


async def _count(db: AsyncSession, column, *conditions) -> int:
    query = select(func.count(column))
    if conditions:
        query = query.where(*conditions)
    return (await db.execute(query)).scalar_one()


async def global_stats(db: AsyncSession) -> dict:
    return {
        "users": await _count(db, User.id),
        "professionals": await _count(db, Professional.id),
        "establishments": await status_counts(db),
        "deals": await _count(db, DailyDeal.id),
        "activeDeals": await _count(db, DailyDeal.id, DailyDeal.is_active.is_(True)),
        "comments": await _count(db, UserComment.id),
        "openConversations": await _count(db, Conversation.id, Conversation.status == CONVERSATION_OPEN),
        "newsletterSubscribers": await _count(db, User.id, User.newsletter_opt_in.is_(True)),
    }
