import re
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

HOUR_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class DealFields(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    modality: Optional[str] = None
    original_price: Optional[float] = Field(None, alias="originalPrice", ge=0)
    discounted_price: Optional[float] = Field(None, alias="discountedPrice", ge=0)
    image_url: Optional[str] = Field(None, alias="imageUrl")
    pdf_url: Optional[str] = Field(None, alias="pdfUrl")
    promo_url: Optional[str] = Field(None, alias="promoUrl")
    date_debut: Optional[datetime] = Field(None, alias="dateDebut")
    date_fin: Optional[datetime] = Field(None, alias="dateFin")
    heure_debut: Optional[str] = Field(None, alias="heureDebut")
    heure_fin: Optional[str] = Field(None, alias="heureFin")
    is_active: Optional[bool] = Field(None, alias="isActive")
    is_recurring: Optional[bool] = Field(None, alias="isRecurring")
    recurrence_type: Optional[str] = Field(None, alias="recurrenceType")
    recurrence_days: Optional[List[int]] = Field(None, alias="recurrenceDays")
    recurrence_end_date: Optional[datetime] = Field(None, alias="recurrenceEndDate")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("date_debut", "date_fin", "recurrence_end_date")
    @classmethod
    def naive_dates(cls, v):
        return to_naive_utc(v)

    @field_validator("heure_debut", "heure_fin")
    @classmethod
    def valid_hour(cls, v):
        if v in (None, ""):
            return None
        if not HOUR_RE.match(v):
            raise ValueError("Heure attendue au format HH:MM")
        return v

    @field_validator("recurrence_type")
    @classmethod
    def valid_recurrence(cls, v):
        if v is not None and v not in ("weekly", "monthly"):
            raise ValueError("recurrenceType doit être 'weekly' ou 'monthly'")
        return v

    @field_validator("recurrence_days")
    @classmethod
    def valid_days(cls, v):
        if v is not None and any(day < 1 or day > 7 for day in v):
            raise ValueError("Les jours de récurrence vont de 1 (lundi) à 7 (dimanche)")
        return v


class DealCreate(DealFields):
    establishment_id: Optional[int] = Field(None, alias="establishmentId")


REQUIRED_DEAL_FIELDS = ("establishment_id", "title", "description", "date_debut", "date_fin")


class DealUpdate(DealFields):
    @field_validator("title", "description", "date_debut", "date_fin", "is_active", "is_recurring")
    @classmethod
    def required_not_null(cls, v):
        if v is None:
            raise ValueError("Ce champ ne peut pas être vide")
        return v


class DealEstablishmentOut(BaseModel):
    id: int
    name: str
    slug: str
    address: str
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    activities: Optional[List[str]] = None
    model_config = ConfigDict(from_attributes=True)


class DealResponse(BaseModel):
    id: int
    establishment_id: int
    title: str
    description: str
    modality: Optional[str] = None
    original_price: Optional[float] = None
    discounted_price: Optional[float] = None
    image_url: Optional[str] = None
    pdf_url: Optional[str] = None
    promo_url: Optional[str] = None
    date_debut: datetime
    date_fin: datetime
    heure_debut: Optional[str] = None
    heure_fin: Optional[str] = None
    is_active: bool
    is_recurring: bool
    recurrence_type: Optional[str] = None
    recurrence_days: Optional[List[int]] = None
    recurrence_end_date: Optional[datetime] = None
    created_at: datetime
    discount: int = 0
    time_label: Optional[str] = None
    is_currently_active: Optional[bool] = None
    establishment: Optional[DealEstablishmentOut] = None

    model_config = ConfigDict(from_attributes=True)


class EngagementRequest(BaseModel):
    deal_id: int = Field(..., alias="dealId")
    type: str
    timestamp: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True)
