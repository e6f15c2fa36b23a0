from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TagOut(BaseModel):
    tag: str
    type_tag: str
    poids: int
    model_config = ConfigDict(from_attributes=True)


class ImageOut(BaseModel):
    id: int
    url: str
    is_primary: bool = False
    ordre: int = 0
    model_config = ConfigDict(from_attributes=True)


class EstablishmentSummary(BaseModel):
    id: int
    name: str
    slug: str
    address: str
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    activities: Optional[List[str]] = None
    avg_rating: Optional[float] = None
    total_comments: int = 0
    primary_image: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class EstablishmentResponse(EstablishmentSummary):
    description: Optional[str] = None
    postal_code: Optional[str] = None
    services: Optional[List[str]] = None
    ambiance: Optional[List[str]] = None
    payment_methods: Optional[List[str]] = None
    horaires_ouverture: Optional[Any] = None
    envie_tags: Optional[List[str]] = None
    informations_pratiques: Optional[List[str]] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    tiktok: Optional[str] = None
    the_fork_link: Optional[str] = None
    uber_eats_link: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    price_level: Optional[int] = None
    google_rating: Optional[float] = None
    google_review_count: Optional[int] = None
    enriched: bool = False
    status: str
    rejection_reason: Optional[str] = None
    subscription: str
    owner_id: int
    tags: List[TagOut] = []
    images: List[ImageOut] = []
    created_at: datetime
    updated_at: datetime


class EstablishmentListResponse(BaseModel):
    items: List[EstablishmentSummary]
    total: int
    page: int
    per_page: int
    pages: int


class EstablishmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    activities: Optional[List[str]] = None
    services: Optional[List[str]] = None
    ambiance: Optional[List[str]] = None
    payment_methods: Optional[List[str]] = None
    horaires_ouverture: Optional[Any] = None
    envie_tags: Optional[List[str]] = None
    informations_pratiques: Optional[List[str]] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    tiktok: Optional[str] = None
    the_fork_link: Optional[str] = None
    uber_eats_link: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    price_level: Optional[int] = Field(None, ge=1, le=4)

    @field_validator("name", "address")
    @classmethod
    def not_null(cls, v):
        # Colonnes obligatoires : absentes = inchangées, null = refusé
        if v is None:
            raise ValueError("Ce champ ne peut pas être vide")
        return v


class EnrichmentData(BaseModel):
    types: List[str] = []
    google_place_id: Optional[str] = None
    google_business_url: Optional[str] = None
    google_rating: Optional[float] = Field(None, ge=0, le=5)
    google_review_count: Optional[int] = None
    price_level: Optional[int] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    services: Optional[List[str]] = None
    ambiance: Optional[List[str]] = None
    payment_methods: Optional[List[str]] = None
    horaires_ouverture: Optional[Any] = None
    informations_pratiques: Optional[List[str]] = None
    the_fork_link: Optional[str] = None
    uber_eats_link: Optional[str] = None
