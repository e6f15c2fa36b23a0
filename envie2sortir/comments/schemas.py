from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CommentCreate(BaseModel):
    establishment_id: int = Field(..., alias="establishmentId")
    content: str
    rating: Optional[Any] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("rating")
    @classmethod
    def keep_valid_rating(cls, v):
        # Une note hors 1..5 (ou non entière) est ignorée plutôt que refusée
        if isinstance(v, bool) or not isinstance(v, int):
            return None
        return v if 1 <= v <= 5 else None


class CommentAuthorOut(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class CommentEstablishmentOut(BaseModel):
    id: int
    name: str
    slug: str
    model_config = ConfigDict(from_attributes=True)


class CommentResponse(BaseModel):
    id: int
    user_id: int
    establishment_id: int
    content: str
    rating: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    user: Optional[CommentAuthorOut] = None
    establishment: Optional[CommentEstablishmentOut] = None
    model_config = ConfigDict(from_attributes=True)
