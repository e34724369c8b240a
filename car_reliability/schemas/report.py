"""
Pydantic schemas for reliability report and PDF export endpoints.
"""
from typing import List, Optional, Union
from pydantic import BaseModel, Field


class VehicleFields(BaseModel):
    year: int = Field(..., ge=1886, le=2100)
    make: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    mileage: int = Field(..., ge=0)


class ReliabilityRequest(VehicleFields):
    """Request schema for a reliability report."""
    premium_token: Optional[str] = Field(None, alias="premiumToken")
    user_token: Optional[str] = Field(None, alias="userToken")
    locale: Optional[str] = Field(None, max_length=16)
    
    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "year": 2020,
                "make": "Toyota",
                "model": "Camry",
                "mileage": 45000
            }
        }


Score = Optional[int]
IssueText = Optional[Union[str, int, float]]


class CategoryScores(BaseModel):
    """Category scores; null for categories withheld from the free tier."""
    engine: Score = Field(None, ge=0, le=100)
    transmission: Score = Field(None, ge=0, le=100)
    electrical_system: Score = Field(None, alias="electricalSystem", ge=0, le=100)
    brakes: Score = Field(None, ge=0, le=100)
    suspension: Score = Field(None, ge=0, le=100)
    fuel_system: Score = Field(None, alias="fuelSystem", ge=0, le=100)
    
    class Config:
        populate_by_name = True


class CommonIssue(BaseModel):
    description: str = ""
    cost_to_fix: IssueText = Field(None, alias="costToFix")
    occurrence: IssueText = None
    mileage: IssueText = None
    
    class Config:
        populate_by_name = True


class ReliabilityReport(BaseModel):
    """Report envelope as returned by the report endpoint."""
    overall_score: Score = Field(None, alias="overallScore", ge=0, le=100)
    categories: CategoryScores = Field(default_factory=CategoryScores)
    common_issues: List[CommonIssue] = Field(default_factory=list, alias="commonIssues")
    ai_analysis: Optional[str] = Field(None, alias="aiAnalysis")
    
    class Config:
        populate_by_name = True


class PdfRequest(VehicleFields):
    """Request schema for PDF export."""
    reliability_data: ReliabilityReport
