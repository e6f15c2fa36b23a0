from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MenuResponse(BaseModel):
    id: int
    establishment_id: int
    name: str
    description: Optional[str] = None
    file_url: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    ordre: int = 0
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class MenuListResponse(BaseModel):
    menus: List[MenuResponse]


class MenuUpdate(BaseModel):
    """Mise à jour partielle : seuls les champs envoyés sont appliqués."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    ordre: Optional[int] = Field(None, alias="order", ge=0)
    is_active: Optional[bool] = Field(None, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name", "ordre", "is_active")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("Ce champ ne peut pas être vide")
        return v


class TariffPayload(BaseModel):
    label: str = Field(..., min_length=1, max_length=255)
    price: float = Field(..., ge=0)

    @field_validator("label")
    @classmethod
    def strip_label(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Libellé requis")
        return v


class TariffResponse(BaseModel):
    id: int
    establishment_id: int
    label: str
    price: float
    model_config = ConfigDict(from_attributes=True)
