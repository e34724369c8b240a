from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from car_reliability.core.exceptions import AuthenticationError, DatabaseUnavailableError
from car_reliability.core.security import decode_access_token
from car_reliability.db.session import SessionLocal
from car_reliability.db.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    """
    Database session dependency.

    Connection failures surface as 503 instead of empty results.
    """
    db = SessionLocal()
    try:
        yield db
    except OperationalError as e:
        db.rollback()
        raise DatabaseUnavailableError("Database unavailable") from e
    finally:
        db.close()


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """Raw bearer token from the Authorization header, if any."""
    if credentials is None:
        return None
    return credentials.credentials


def get_current_user(
    token: Optional[str] = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> User:
    """Get the authenticated User from the session token."""
    claims = decode_access_token(token)
    user = db.query(User).filter(User.id == claims["user_id"]).first()
    if not user:
        raise AuthenticationError("User not found", code="user_not_found")
    return user
