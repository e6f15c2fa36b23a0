from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

from envie2sortir.establishments.schemas import EstablishmentSummary


class FavoriteCreate(BaseModel):
    establishment_id: int = Field(..., alias="establishmentId")
    model_config = ConfigDict(populate_by_name=True)


class FavoriteOut(BaseModel):
    id: int
    establishment_id: int
    created_at: datetime
    establishment: EstablishmentSummary
    model_config = ConfigDict(from_attributes=True)
