from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProfessionalRegistration(BaseModel):
    """Formulaire d'inscription professionnel (professionnel + établissement)."""
    siret: Optional[str] = None
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    email: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = Field(None, alias="companyName")
    legal_status: Optional[str] = Field(None, alias="legalStatus")

    establishment_name: Optional[str] = Field(None, alias="establishmentName")
    description: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    activities: List[str] = []
    services: List[str] = []
    ambiance: List[str] = []
    payment_methods: List[str] = Field([], alias="paymentMethods")
    horaires_ouverture: Optional[dict] = Field(None, alias="horairesOuverture")
    tags: List[str] = []
    envie_tags: List[str] = Field([], alias="envieTags")
    website: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    price_min: Optional[float] = Field(None, alias="priceMin")
    price_max: Optional[float] = Field(None, alias="priceMax")
    subscription_plan: str = Field("free", alias="subscriptionPlan")

    model_config = ConfigDict(populate_by_name=True)


REQUIRED_REGISTRATION_FIELDS = (
    "siret", "first_name", "last_name", "email", "password", "establishment_name", "address",
)


class SiretVerificationRequest(BaseModel):
    siret: str


class ProfessionalOut(BaseModel):
    id: int
    siret: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    company_name: str
    legal_status: Optional[str] = None
    subscription_plan: str
    siret_verified: bool = False

    model_config = ConfigDict(from_attributes=True)


class UpdateRequestCreate(BaseModel):
    field_name: Optional[str] = Field(None, alias="fieldName")
    new_value: Optional[str] = Field(None, alias="newValue")
    sms_verified: bool = Field(False, alias="smsVerified")

    model_config = ConfigDict(populate_by_name=True)


class ReviewUpdateRequest(BaseModel):
    request_id: Optional[int] = Field(None, alias="requestId")
    action: Optional[str] = None
    rejection_reason: Optional[str] = Field(None, alias="rejectionReason")

    model_config = ConfigDict(populate_by_name=True)


class UpdateRequestProfessionalOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    company_name: str
    siret: str
    model_config = ConfigDict(from_attributes=True)


class UpdateRequestOut(BaseModel):
    id: int
    professional_id: int
    field_name: str
    old_value: Optional[str] = None
    new_value: str
    status: str
    is_email_verified: bool = False
    rejection_reason: Optional[str] = None
    requested_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    professional: Optional[UpdateRequestProfessionalOut] = None
    model_config = ConfigDict(from_attributes=True)
