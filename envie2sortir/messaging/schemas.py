from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConversationCreate(BaseModel):
    subject: Optional[str] = None
    content: Optional[str] = None
    professional_id: Optional[int] = Field(None, alias="professionalId")
    model_config = ConfigDict(populate_by_name=True)


class ConversationStatusUpdate(BaseModel):
    status: Optional[str] = None


class MessageCreate(BaseModel):
    content: Optional[str] = None


class MessageOut(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    sender_type: str
    content: str
    is_read: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ProfessionalContactOut(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    company_name: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class AdminContactOut(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    model_config = ConfigDict(from_attributes=True)


class ConversationOut(BaseModel):
    id: int
    subject: str
    status: str
    professional_id: int
    admin_id: Optional[int] = None
    last_message_at: datetime
    created_at: datetime
    professional: Optional[ProfessionalContactOut] = None
    admin: Optional[AdminContactOut] = None
    model_config = ConfigDict(from_attributes=True)


class ConversationSummary(ConversationOut):
    last_message: Optional[MessageOut] = None
    unread_count: int = 0


class ConversationDetail(ConversationOut):
    messages: List[MessageOut] = []
