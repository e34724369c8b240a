import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.orm import Session

from car_reliability.core.auth_dependency import get_db
from car_reliability.core.config import ADMIN_SECRET_KEY
from car_reliability.core.exceptions import AuthorizationError
from car_reliability.services import webhook_log_service
from car_reliability.services.billing_service import process_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Billing Webhook"])


# ✅ STRIPE WEBHOOK (raw body; signature verified before anything is parsed)
@router.post("/webhooks/stripe")
@router.post("/webhook", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db),
):
    payload = await request.body()
    return process_webhook(payload, stripe_signature, db)


def require_admin_key(x_admin_key: Optional[str] = Header(None)) -> None:
    """Admin endpoints are disabled unless ADMIN_SECRET_KEY is set."""
    if not ADMIN_SECRET_KEY or x_admin_key != ADMIN_SECRET_KEY:
        raise AuthorizationError("Admin key required")


@router.get("/webhook-logs", dependencies=[Depends(require_admin_key)])
def list_webhook_logs(
    event_type: Optional[str] = Query(None, alias="type", description="Filter by event type"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(50, ge=1, le=200, description="Items per page"),
    db: Session = Depends(get_db),
):
    return webhook_log_service.list_logs(db, event_type=event_type, page=page, limit=limit)
