"""
Pydantic schemas for saved vehicles.
"""
from typing import Any, Dict, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from car_reliability.schemas.report import VehicleFields


class SaveVehicleRequest(VehicleFields):
    """Request schema for saving a vehicle report."""
    mileage: int = Field(0, ge=0)
    reliability_data: Dict[str, Any] = Field(default_factory=dict)


class SavedVehicleResponse(BaseModel):
    """Schema for a saved vehicle."""
    id: int
    year: int
    make: str
    model: str
    mileage: int
    reliability_data: Dict[str, Any]
    saved_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True


class SavedVehicleListResponse(BaseModel):
    savedVehicles: list[SavedVehicleResponse]
    subscription: Dict[str, Any] = Field(..., description="Entitled plan and listing limit")
