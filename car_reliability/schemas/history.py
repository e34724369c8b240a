"""
Pydantic schemas for search history.
"""
from typing import Any, Dict, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class SearchLogResponse(BaseModel):
    """Schema for a single search log entry."""
    id: int = Field(..., description="Search log entry ID")
    year: int
    make: str
    model: str
    mileage: int
    results: Optional[Dict[str, Any]] = Field(None, description="Report returned for this search")
    created_at: datetime = Field(..., description="When the search happened")
    
    class Config:
        from_attributes = True
