"""
Pydantic schemas for payment and entitlement endpoints.
"""
from typing import Optional
from pydantic import BaseModel, Field


class CreateCheckoutRequest(BaseModel):
    """Request schema for creating a checkout session."""
    plan: str = Field("premium-monthly", min_length=1, description="Plan name, e.g. 'premium-monthly' or 'professional-yearly'")
    price_id: Optional[str] = Field(None, alias="priceId", description="Explicit Stripe price ID")
    success_url: Optional[str] = Field(None, alias="successUrl")
    cancel_url: Optional[str] = Field(None, alias="cancelUrl")
    
    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "plan": "premium-monthly"
            }
        }


class CreateCheckoutResponse(BaseModel):
    """Response schema for checkout session creation."""
    url: str = Field(..., description="Stripe checkout session URL")
    sessionId: str = Field(..., description="Stripe checkout session ID")


class VerifyPaymentRequest(BaseModel):
    """Request schema for confirming a completed checkout."""
    session_id: str = Field(..., alias="sessionId", min_length=1)
    plan: Optional[str] = Field(None, description="Plan name override when the session carries none")
    
    class Config:
        populate_by_name = True


class VerifyTokenRequest(BaseModel):
    """Request schema for opaque access token checks."""
    token: str = Field(..., min_length=1, description="Premium access token")
