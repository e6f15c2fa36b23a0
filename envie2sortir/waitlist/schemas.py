import re

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

PHONE_RE = re.compile(r"^(0[67]|\+33[67])[0-9]{8}$")
SIRET_RE = re.compile(r"^[0-9]{14}$")


class WaitlistJoinRequest(BaseModel):
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    email: EmailStr
    phone: str
    siret: str
    password: str
    company_name: str = Field(..., alias="companyName")
    legal_status: str = Field(..., alias="legalStatus")
    establishment_name: str = Field(..., alias="establishmentName")
    accept_terms: bool = Field(False, alias="acceptTerms")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("first_name", "last_name", "company_name", "legal_status", "establishment_name")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Champ requis")
        return v.strip()

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v):
        cleaned = re.sub(r"[\s.-]", "", v or "")
        if not PHONE_RE.match(cleaned):
            raise ValueError("Numéro de téléphone mobile invalide (06 ou 07)")
        return cleaned

    @field_validator("siret")
    @classmethod
    def valid_siret(cls, v):
        cleaned = re.sub(r"\s+", "", v or "")
        if not SIRET_RE.match(cleaned):
            raise ValueError("Le SIRET doit contenir 14 chiffres")
        return cleaned

    @field_validator("password")
    @classmethod
    def valid_password(cls, v):
        if len(v or "") < 8:
            raise ValueError("Le mot de passe doit contenir au moins 8 caractères")
        return v

    @field_validator("accept_terms")
    @classmethod
    def terms_accepted(cls, v):
        if not v:
            raise ValueError("Vous devez accepter les conditions d'utilisation")
        return v
