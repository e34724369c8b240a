"""
Health check endpoint for deployment monitoring.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from car_reliability.core.config import APP_VERSION
from car_reliability.core.auth_dependency import get_db
from car_reliability.core.timeutils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint for deployment monitoring.
    
    Returns 200 with status "degraded" when the database is not reachable.
    """
    status = "healthy"
    
    # Check database connectivity
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        db.rollback()
        db_status = "error"
        status = "degraded"
    
    return {
        "status": status,
        "timestamp": utcnow().isoformat(),
        "database": db_status,
        "version": APP_VERSION,
    }
