import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from envie2sortir.messaging.models import (
    Conversation, Message, SENDER_ADMIN, SENDER_PROFESSIONAL, CONVERSATION_OPEN, CONVERSATION_CLOSED,
)
from envie2sortir.messaging.schemas import ConversationCreate, ConversationOut, ConversationSummary, MessageOut
from envie2sortir.professionals.models import Professional

logger = logging.getLogger(__name__)

CONVERSATION_STATUSES = (CONVERSATION_OPEN, CONVERSATION_CLOSED)


class ConversationNotFoundError(Exception):
    pass


class MessagingPermissionError(Exception):
    pass


class MessagingValidationError(Exception):
    pass


def sender_type_for(account) -> str:
    """ADMIN pour un administrateur, PROFESSIONAL pour un pro, sinon accès refusé."""
    if account.user_type == "professional":
        return SENDER_PROFESSIONAL
    if account.is_admin:
        return SENDER_ADMIN
    raise MessagingPermissionError("Accès réservé aux professionnels et administrateurs")


def other_side(sender_type: str) -> str:
    return SENDER_PROFESSIONAL if sender_type == SENDER_ADMIN else SENDER_ADMIN


class MessagingService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _with_participants(self, query):
        return query.options(selectinload(Conversation.professional), selectinload(Conversation.admin))

    async def _get_for(self, conversation_id: int, account, with_messages: bool = False) -> Conversation:
        sender_type = sender_type_for(account)
        query = self._with_participants(select(Conversation)).where(Conversation.id == conversation_id)
        if with_messages:
            query = query.options(selectinload(Conversation.messages))
        result = await self.db.execute(query.execution_options(populate_existing=True))
        conversation = result.scalars().first()
        if not conversation:
            raise ConversationNotFoundError("Conversation non trouvée")
        if sender_type == SENDER_PROFESSIONAL and conversation.professional_id != account.id:
            raise MessagingPermissionError("Accès non autorisé")
        return conversation

    async def list_conversations(
        self,
        account,
        status: Optional[str] = None,
        unread_only: bool = False,
        limit: int = 20,
        page: int = 1,
    ) -> List[ConversationSummary]:
        sender_type = sender_type_for(account)
        query = self._with_participants(select(Conversation))
        if sender_type == SENDER_PROFESSIONAL:
            query = query.where(Conversation.professional_id == account.id)
        if status:
            query = query.where(Conversation.status == status)
        query = query.order_by(Conversation.last_message_at.desc()).offset((page - 1) * limit).limit(limit)
        conversations = (await self.db.execute(query)).scalars().all()
        if not conversations:
            return []

        ids = [c.id for c in conversations]
        unread_rows = await self.db.execute(
            select(Message.conversation_id, func.count(Message.id))
            .where(
                Message.conversation_id.in_(ids),
                Message.is_read.is_(False),
                Message.sender_type == other_side(sender_type),
            )
            .group_by(Message.conversation_id)
        )
        unread_counts = dict(unread_rows.all())

        message_rows = await self.db.execute(
            select(Message).where(Message.conversation_id.in_(ids)).order_by(Message.created_at.desc(), Message.id.desc())
        )
        last_messages = {}
        for message in message_rows.scalars().all():
            last_messages.setdefault(message.conversation_id, message)

        summaries = []
        for conversation in conversations:
            unread = unread_counts.get(conversation.id, 0)
            if unread_only and unread == 0:
                continue
            last_message = last_messages.get(conversation.id)
            summaries.append(ConversationSummary(
                **ConversationOut.model_validate(conversation).model_dump(),
                last_message=MessageOut.model_validate(last_message) if last_message else None,
                unread_count=unread,
            ))
        return summaries

    async def create_conversation(self, account, data: ConversationCreate) -> Conversation:
        sender_type = sender_type_for(account)
        subject = (data.subject or "").strip()
        content = (data.content or "").strip()
        if not subject or not content:
            raise MessagingValidationError("Sujet et message requis")

        if sender_type == SENDER_ADMIN:
            if data.professional_id is None:
                raise MessagingValidationError("professionalId requis pour un administrateur")
            professional = await self.db.get(Professional, data.professional_id)
            if professional is None:
                raise ConversationNotFoundError("Professionnel non trouvé")
            professional_id, admin_id = professional.id, account.id
        else:
            professional_id, admin_id = account.id, None

        now = datetime.utcnow()
        conversation = Conversation(
            subject=subject,
            professional_id=professional_id,
            admin_id=admin_id,
            status=CONVERSATION_OPEN,
            last_message_at=now,
        )
        self.db.add(conversation)
        await self.db.flush()
        self.db.add(Message(
            conversation_id=conversation.id,
            sender_id=account.id,
            sender_type=sender_type,
            content=content,
            created_at=now,
        ))
        await self.db.commit()
        logger.info(f"✉️ Conversation {conversation.id} créée par {sender_type}:{account.id}")
        return await self._get_for(conversation.id, account, with_messages=True)

    async def get_conversation(self, conversation_id: int, account) -> Conversation:
        """Retourne la conversation et marque comme lus les messages de l'autre partie."""
        conversation = await self._get_for(conversation_id, account)
        await self.db.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation.id,
                Message.sender_type == other_side(sender_type_for(account)),
                Message.is_read.is_(False),
            )
            .values(is_read=True)
        )
        await self.db.commit()
        return await self._get_for(conversation_id, account, with_messages=True)

    async def update_status(self, conversation_id: int, account, status: Optional[str]) -> Conversation:
        if status not in CONVERSATION_STATUSES:
            raise MessagingValidationError("Statut invalide (open ou closed requis)")
        conversation = await self._get_for(conversation_id, account)
        conversation.status = status
        await self.db.commit()
        logger.info(f"📁 Conversation {conversation_id} → {status}")
        return await self._get_for(conversation_id, account)

    async def add_message(self, conversation_id: int, account, content: Optional[str]) -> Message:
        content = (content or "").strip()
        if not content:
            raise MessagingValidationError("Le message ne peut pas être vide")
        conversation = await self._get_for(conversation_id, account)
        if conversation.status == CONVERSATION_CLOSED:
            raise MessagingValidationError("Conversation fermée")

        sender_type = sender_type_for(account)
        now = datetime.utcnow()
        message = Message(
            conversation_id=conversation.id,
            sender_id=account.id,
            sender_type=sender_type,
            content=content,
            created_at=now,
        )
        self.db.add(message)
        conversation.last_message_at = now
        # Le premier admin qui répond prend la conversation
        if sender_type == SENDER_ADMIN and conversation.admin_id is None:
            conversation.admin_id = account.id
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def unread_count(self, account) -> int:
        sender_type = sender_type_for(account)
        query = (
            select(func.count(Message.id))
            .join(Conversation, Message.conversation_id == Conversation.id)
            .where(Message.is_read.is_(False), Message.sender_type == other_side(sender_type))
        )
        if sender_type == SENDER_PROFESSIONAL:
            query = query.where(Conversation.professional_id == account.id)
        return (await self.db.execute(query)).scalar_one()
