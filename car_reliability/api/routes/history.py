"""
Search history endpoint.

Non-entitled users see their 10 most recent searches, entitled users up to 1000.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import desc
from sqlalchemy.orm import Session

from car_reliability.core.auth_dependency import get_db, get_current_user
from car_reliability.core.plans import get_search_history_limit
from car_reliability.db.models.search_log import SearchLogEntry
from car_reliability.db.models.user import User
from car_reliability.schemas.history import SearchLogResponse
from car_reliability.services.entitlement_service import resolve_entitlement

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["History"])


@router.get("/searches", response_model=List[SearchLogResponse])
def get_searches(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    decision = resolve_entitlement(db, user_id=user.id)
    limit = get_search_history_limit(decision.is_entitled)

    entries = db.query(SearchLogEntry).filter(
        SearchLogEntry.user_id == user.id
    ).order_by(desc(SearchLogEntry.created_at), desc(SearchLogEntry.id)).limit(limit).all()

    logger.debug(f"Search history listed: user_id={user.id}, count={len(entries)}, limit={limit}")
    return entries
