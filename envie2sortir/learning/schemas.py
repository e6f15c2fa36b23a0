from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SuggestRequest(BaseModel):
    name: str = Field(..., min_length=1)
    types: List[str] = []
    description: Optional[str] = ""


class CorrectionRequest(BaseModel):
    name: str
    corrected_type: str = Field(..., alias="correctedType")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name", "corrected_type")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Champ requis")
        return v.strip()


class PatternResponse(BaseModel):
    id: int
    name: str
    detected_type: str
    corrected_type: Optional[str] = None
    google_types: List[str] = []
    keywords: List[str] = []
    confidence: float
    is_corrected: bool
    corrected_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
