from pydantic import BaseModel, EmailStr, ConfigDict, Field, field_validator, model_validator
from typing import Optional

MIN_PASSWORD_LENGTH = 8


def _check_password(v: str) -> str:
    if len(v) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères")
    return v


class UserRegister(BaseModel):
    email: EmailStr
    password: str
    password_confirm: str = Field(..., alias="passwordConfirm")
    first_name: str = Field(..., alias="firstName", min_length=1)
    last_name: str = Field(..., alias="lastName", min_length=1)
    phone: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()

    @field_validator("password")
    @classmethod
    def password_length(cls, v):
        return _check_password(v)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.password_confirm:
            raise ValueError("Les mots de passe ne correspondent pas")
        return self


class UserLogin(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def email_required(cls, v):
        if not v or v.strip() == "":
            raise ValueError("Email requis")
        return v.strip().lower()


class ForgotPasswordRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class VerifyCodeRequest(BaseModel):
    email: EmailStr
    code: str

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()

    @field_validator("code")
    @classmethod
    def code_required(cls, v):
        if not v or v.strip() == "":
            raise ValueError("Code de vérification requis")
        return v.strip()


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    new_password: str = Field(..., alias="newPassword")
    confirm_password: str = Field(..., alias="confirmPassword")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()

    @field_validator("new_password")
    @classmethod
    def password_length(cls, v):
        return _check_password(v)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Les mots de passe ne correspondent pas")
        return self


class AdminPasswordCheck(BaseModel):
    password: str


class AccountOut(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: str
    user_type: str
    model_config = ConfigDict(from_attributes=True)
