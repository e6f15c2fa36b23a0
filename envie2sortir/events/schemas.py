from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from envie2sortir.deals.schemas import to_naive_utc


class EventPayload(BaseModel):
    """Corps de création / modification d'un événement (remplacement complet)."""
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    modality: Optional[str] = None
    start_date: Optional[datetime] = Field(None, alias="startDate")
    end_date: Optional[datetime] = Field(None, alias="endDate")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    price: Optional[float] = Field(None, ge=0)
    price_unit: Optional[str] = Field(None, alias="priceUnit", max_length=50)
    max_capacity: Optional[int] = Field(None, alias="maxCapacity", ge=1)
    is_recurring: bool = Field(False, alias="isRecurring")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("start_date", "end_date")
    @classmethod
    def naive_dates(cls, v):
        return to_naive_utc(v)

    @field_validator("title", "description", "modality", "image_url", "price_unit")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
        return v or None


class EventEstablishmentOut(BaseModel):
    id: int
    name: str
    slug: str
    city: Optional[str] = None
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    model_config = ConfigDict(from_attributes=True)


class EventResponse(BaseModel):
    id: int
    establishment_id: int
    title: str
    description: Optional[str] = None
    modality: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    image_url: Optional[str] = None
    price: Optional[float] = None
    price_unit: Optional[str] = None
    max_capacity: Optional[int] = None
    is_recurring: bool = False
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class UpcomingEventResponse(EventResponse):
    establishment: Optional[EventEstablishmentOut] = None
    engagementScore: int = 0
    engagementCount: int = 0
    gaugePercentage: float = 0
    eventBadge: Optional[dict] = None
    status: str = "upcoming"


class UpcomingEventsResponse(BaseModel):
    events: List[UpcomingEventResponse]
    trending: List[UpcomingEventResponse]
    total: int


class EngageRequest(BaseModel):
    type: Optional[str] = None
