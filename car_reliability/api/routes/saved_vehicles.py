"""
Saved vehicle endpoints. Every query is scoped to the current user.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import desc
from sqlalchemy.orm import Session

from car_reliability.core.auth_dependency import get_db, get_current_user
from car_reliability.core.exceptions import NotFoundError
from car_reliability.core.plans import PLAN_BASIC, get_saved_vehicle_limit
from car_reliability.db.models.saved_vehicle import SavedVehicle
from car_reliability.db.models.user import User
from car_reliability.schemas.vehicle import SaveVehicleRequest, SavedVehicleResponse, SavedVehicleListResponse
from car_reliability.services.entitlement_service import resolve_entitlement

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/saved-vehicles", tags=["Saved Vehicles"])


def get_owned_vehicle(vehicle_id: int, user: User, db: Session) -> SavedVehicle:
    """Fetch a saved vehicle owned by ``user``; foreign and missing ids look the same."""
    vehicle = db.query(SavedVehicle).filter(
        SavedVehicle.id == vehicle_id,
        SavedVehicle.user_id == user.id,
    ).first()
    if not vehicle:
        raise NotFoundError("Saved vehicle not found")
    return vehicle


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SavedVehicleResponse)
def save_vehicle(
    request: SaveVehicleRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    vehicle = SavedVehicle(
        user_id=user.id,
        year=request.year,
        make=request.make,
        model=request.model,
        mileage=request.mileage,
        reliability_data=request.reliability_data,
    )
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    logger.info(f"Vehicle saved: user_id={user.id}, vehicle_id={vehicle.id}")
    return vehicle


@router.get("", response_model=SavedVehicleListResponse)
def list_saved_vehicles(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Newest first, limited by the entitled plan (basic limit when not entitled)."""
    decision = resolve_entitlement(db, user_id=user.id)
    plan = decision.plan if decision.is_entitled else PLAN_BASIC
    limit = get_saved_vehicle_limit(plan)

    query = db.query(SavedVehicle).filter(
        SavedVehicle.user_id == user.id
    ).order_by(desc(SavedVehicle.saved_at), desc(SavedVehicle.id))
    if limit is not None:
        query = query.limit(limit)

    return {
        "savedVehicles": query.all(),
        "subscription": {"plan": plan, "limit": limit},
    }


@router.get("/{vehicle_id}", response_model=SavedVehicleResponse)
def get_saved_vehicle(vehicle_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_owned_vehicle(vehicle_id, user, db)


@router.delete("/{vehicle_id}")
def delete_saved_vehicle(vehicle_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    vehicle = get_owned_vehicle(vehicle_id, user, db)
    db.delete(vehicle)
    db.commit()
    logger.info(f"Saved vehicle deleted: user_id={user.id}, vehicle_id={vehicle_id}")
    return {"message": "Vehicle deleted successfully", "id": vehicle_id}
