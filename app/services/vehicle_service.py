# app/services/vehicle_service.py
"""
Fleet management: register, look up and deactivate vehicles.
Vehicles are never hard-deleted — bookings keep pointing at them.
"""

from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.vehicle import Vehicle
from app.schemas.vehicle import VehicleCreate
from app.services.errors import Conflict, NotFound, PermissionDenied, ValidationFailed, field_errors
from app.services.storage_service import UploadedFile, VEHICLE_IMAGE_TYPES, validate_upload, upload_file
from app.utils.logger import get_logger

logger = get_logger(__name__)


def normalise_plate(plate: str) -> str:
    return plate.strip().upper()


def lookup_vehicle_by_plate(db: Session, plate: str) -> Optional[Vehicle]:
    """Find a vehicle by plate (case-insensitive input). Returns None if not found."""
    return db.query(Vehicle).filter(Vehicle.plate == normalise_plate(plate)).first()


def plate_exists(db: Session, plate: str) -> bool:
    return lookup_vehicle_by_plate(db, plate) is not None


def list_active_vehicles(db: Session) -> list[Vehicle]:
    return (
        db.query(Vehicle)
        .filter(Vehicle.is_active.is_(True))
        .order_by(Vehicle.created_at.desc(), Vehicle.id.desc())
        .all()
    )


def get_vehicle(db: Session, vehicle_id: int) -> Vehicle:
    vehicle = db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise NotFound("Vehicle not found")
    return vehicle


async def register_vehicle(db: Session, caller, data: dict, image: Optional[UploadedFile] = None) -> Vehicle:
    """Validate, upload the optional photo, then insert. Plate duplicates are a Conflict."""
    if not caller.is_admin:
        raise PermissionDenied("Admin access required")

    try:
        body = VehicleCreate.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed("Invalid data", details=field_errors(e))

    if plate_exists(db, body.plate):
        raise Conflict("License plate is already registered", field="plate")

    image_url = None
    if image is not None:
        validate_upload(image, VEHICLE_IMAGE_TYPES, "image")
        image_url = await upload_file(image, "vehicles", "vehicle")

    vehicle = Vehicle(
        name=body.name.strip(),
        plate=body.plate,
        fuel_type=body.fuel_type,
        year=body.year,
        description=body.description,
        image=image_url,
        is_active=True,
    )
    db.add(vehicle)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"[VEHICLE] Duplicate plate race on {body.plate}")
        raise Conflict("License plate is already registered")

    db.refresh(vehicle)
    logger.info(f"[VEHICLE] Registered {vehicle.plate} ({vehicle.name}) by {caller.id}")
    return vehicle


def deactivate_vehicle(db: Session, caller, vehicle_id: int) -> Vehicle:
    if not caller.is_admin:
        raise PermissionDenied("Admin access required")

    vehicle = get_vehicle(db, vehicle_id)
    if not vehicle.is_active:
        raise Conflict("Vehicle is already inactive")

    vehicle.is_active = False
    db.commit()
    db.refresh(vehicle)
    logger.info(f"[VEHICLE] Deactivated {vehicle.plate} by {caller.id}")
    return vehicle
