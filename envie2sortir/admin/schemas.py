from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EstablishmentActionRequest(BaseModel):
    establishment_id: Optional[int] = Field(None, alias="establishmentId")
    action: Optional[str] = None
    reason: Optional[str] = None
    model_config = ConfigDict(populate_by_name=True)


class AdminActionOut(BaseModel):
    id: int
    admin_id: Optional[int] = None
    establishment_id: int
    action: str
    reason: Optional[str] = None
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    details: Optional[Any] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class OwnerOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    company_name: str
    siret: str
    legal_status: Optional[str] = None
    siret_verified: bool = False
    subscription_plan: str
    model_config = ConfigDict(from_attributes=True)


class AdminEstablishmentOut(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    address: str
    city: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    status: str
    subscription: str
    rejection_reason: Optional[str] = None
    rejected_at: Optional[datetime] = None
    activities: Optional[List[str]] = None
    created_at: datetime
    updated_at: datetime
    owner: Optional[OwnerOut] = None
    model_config = ConfigDict(from_attributes=True)
