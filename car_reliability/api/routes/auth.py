import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from car_reliability.core.auth_dependency import get_db, get_bearer_token
from car_reliability.core.exceptions import AuthenticationError, ConflictError
from car_reliability.core.security import hash_password, verify_password, create_access_token, decode_access_token
from car_reliability.db.models.user import User
from car_reliability.schemas.auth import RegisterRequest, LoginRequest
from car_reliability.services import ledger_service
from car_reliability.services.entitlement_service import decision_for_record, serialize_record

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Auth"])


# ✅ USER REGISTRATION (user + default basic entitlement in one transaction)
@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    existing_user = db.query(User).filter(User.email == request.email).first()
    if existing_user:
        raise ConflictError("Email already registered", code="email_exists")

    user = User(email=request.email, password_hash=hash_password(request.password))
    try:
        db.add(user)
        db.flush()
        record = ledger_service.create_default_record(db, user.id)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already registered", code="email_exists")

    db.refresh(user)
    logger.info(f"User registered: user_id={user.id}")

    return {
        "message": "User registered successfully",
        "user": {"id": user.id, "email": user.email},
        "subscription": {"plan": record.plan, "status": record.status},
        "token": create_access_token(user.id, user.email),
    }


# ✅ LOGIN (JSON body)
@router.post("/login")
def login(request: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == request.email).first()

    if not user or not verify_password(request.password, user.password_hash):
        logger.info("Login failed: invalid credentials")
        raise AuthenticationError("Invalid credentials", code="invalid_credentials")

    record = ledger_service.get_current_record(db, user.id)
    decision = decision_for_record(record, user.id)

    return {
        "user": {"id": user.id, "email": user.email},
        "token": create_access_token(user.id, user.email),
        "isPremium": decision.is_entitled,
        "isBasic": decision.is_basic,
        "subscription": serialize_record(record, include_token=True),
    }


@router.get("/verify-session")
def verify_session(token: str = Depends(get_bearer_token)):
    claims = decode_access_token(token)
    return {"valid": True, "userId": claims["user_id"]}
