from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ClickEvent(BaseModel):
    establishment_id: Optional[int] = Field(None, alias="establishmentId")
    element_type: Optional[str] = Field(None, alias="elementType")
    element_id: Optional[str] = Field(None, alias="elementId")
    element_name: Optional[str] = Field(None, alias="elementName")
    action: Optional[str] = None
    section_context: Optional[str] = Field(None, alias="sectionContext")
    user_agent: Optional[str] = Field(None, alias="userAgent")
    referrer: Optional[str] = None
    timestamp: Optional[datetime] = None
    model_config = ConfigDict(populate_by_name=True)


class SearchEvent(BaseModel):
    search_term: str = Field(..., alias="searchTerm", min_length=1, max_length=255)
    result_count: int = Field(0, alias="resultCount", ge=0)
    clicked_establishment_id: Optional[int] = Field(None, alias="clickedEstablishmentId")
    clicked_establishment_name: Optional[str] = Field(None, alias="clickedEstablishmentName")
    city: Optional[str] = None
    timestamp: Optional[datetime] = None
    model_config = ConfigDict(populate_by_name=True)
