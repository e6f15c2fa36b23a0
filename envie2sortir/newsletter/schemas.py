from datetime import datetime
from typing import Optional

from email_validator import validate_email, EmailNotValidError
from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_email(value) -> str:
    if not isinstance(value, str):
        raise ValueError("Adresse email invalide")
    value = value.strip().lower()
    if len(value) < 5:
        raise ValueError("Email trop court")
    if len(value) > 255:
        raise ValueError("Email trop long")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise ValueError("Adresse email invalide")
    return value


class NewsletterSubscribe(BaseModel):
    email: str
    consent: bool = Field(False, validate_default=True)

    @field_validator("email", mode="before")
    @classmethod
    def valid_email(cls, v):
        return normalize_email(v)

    @field_validator("consent")
    @classmethod
    def consent_given(cls, v):
        if v is not True:
            raise ValueError("Vous devez accepter de recevoir nos communications")
        return v


class NewsletterUnsubscribe(BaseModel):
    email: str

    @field_validator("email", mode="before")
    @classmethod
    def valid_email(cls, v):
        return normalize_email(v)


class SubscriberOut(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_verified: bool = False
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
