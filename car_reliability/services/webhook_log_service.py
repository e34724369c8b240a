"""
Webhook audit trail.

Audit rows are committed as soon as they change so a delivery's trail
survives a rolled-back ledger transaction.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from car_reliability.db.models.webhook_log import WebhookLogEntry, WEBHOOK_RECEIVED, WEBHOOK_COMPLETED

logger = logging.getLogger(__name__)


def record_delivery(db: Session) -> WebhookLogEntry:
    entry = WebhookLogEntry(processing_status=WEBHOOK_RECEIVED)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def mark(
    db: Session,
    entry: WebhookLogEntry,
    status: str,
    *,
    event_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_message: Optional[str] = None,
) -> WebhookLogEntry:
    entry.processing_status = status
    if event_id is not None:
        entry.event_id = event_id
    if event_type is not None:
        entry.event_type = event_type
    if error_message is not None:
        entry.error_message = error_message[:2000]
    db.commit()
    logger.debug(f"Webhook log {entry.id} -> {status}")
    return entry


def is_completed(db: Session, event_id: Optional[str], exclude_id: Optional[int] = None) -> bool:
    """True when an earlier delivery of ``event_id`` completed."""
    if not event_id:
        return False
    query = db.query(WebhookLogEntry).filter(
        WebhookLogEntry.event_id == event_id,
        WebhookLogEntry.processing_status == WEBHOOK_COMPLETED,
    )
    if exclude_id is not None:
        query = query.filter(WebhookLogEntry.id != exclude_id)
    return db.query(query.exists()).scalar()


def list_logs(db: Session, event_type: Optional[str] = None, page: int = 1, limit: int = 50) -> dict:
    """Paginated audit rows, newest first."""
    query = db.query(WebhookLogEntry)
    if event_type:
        query = query.filter(WebhookLogEntry.event_type == event_type)

    total = query.count()
    offset = (page - 1) * limit
    rows = query.order_by(WebhookLogEntry.created_at.desc(), WebhookLogEntry.id.desc()).offset(offset).limit(limit).all()

    return {
        "logs": [row.to_dict() for row in rows],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": (total + limit - 1) // limit if limit else 0,
        },
    }
