"""
Entitlement query endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from car_reliability.core.auth_dependency import get_db, get_bearer_token
from car_reliability.schemas.billing import VerifyTokenRequest
from car_reliability.services.entitlement_service import resolve_entitlement

router = APIRouter(prefix="/api", tags=["Entitlement"])


@router.post("/verify-token")
def verify_token(request: VerifyTokenRequest, db: Session = Depends(get_db)):
    """Check an opaque access token. Unknown or non-premium tokens get 401."""
    decision = resolve_entitlement(db, access_token=request.token)
    if not decision.is_entitled:
        return JSONResponse(
            status_code=401,
            content={
                "error": "invalid_token",
                "detail": "Invalid or expired premium token",
                "isPremium": False,
            },
        )
    return {
        "isPremium": True,
        "plan": decision.plan,
        "message": "Premium access verified",
    }


@router.get("/entitlement")
def get_entitlement(
    premium_token: Optional[str] = Query(None, alias="premiumToken"),
    session_token: Optional[str] = Depends(get_bearer_token),
    db: Session = Depends(get_db),
):
    decision = resolve_entitlement(db, access_token=premium_token, session_token=session_token)
    record = decision.record
    return {
        "isEntitled": decision.is_entitled,
        "plan": decision.plan,
        "status": decision.status,
        "periodEnd": record.period_end.isoformat() if record is not None and record.period_end else None,
    }
