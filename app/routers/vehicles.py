# app/routers/vehicles.py
"""Fleet vehicles — register, list, look up and deactivate."""

from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import Caller, get_caller, require_admin, read_upload
from app.schemas.vehicle import VehicleOut, PlateCheckOut
from app.services import vehicle_service
from app.services.errors import invalid

router = APIRouter()


@router.get("/vehicles", response_model=list[VehicleOut], summary="List active vehicles")
def list_vehicles(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return vehicle_service.list_active_vehicles(db)


@router.post("/vehicles", status_code=201, summary="Register a new vehicle")
async def register_vehicle(
    name: str = Form(""),
    plate: str = Form(""),
    fuel_type: str = Form(""),
    year: str = Form(""),
    description: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Multipart form; the optional photo (JPEG/PNG/TIFF, max 5MB) goes to object storage."""
    data = {"name": name, "plate": plate, "fuel_type": fuel_type, "year": year, "description": description or None}
    vehicle = await vehicle_service.register_vehicle(db, caller, data, await read_upload(image))
    return {"message": "Vehicle registered", "vehicle": VehicleOut.model_validate(vehicle)}


@router.get("/vehicles/check-plate", response_model=PlateCheckOut, summary="Is this plate already registered?")
def check_plate(plate: str = "", caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    if not plate.strip():
        raise invalid("plate", "Plate number is required")
    return PlateCheckOut(plate=vehicle_service.normalise_plate(plate), exists=vehicle_service.plate_exists(db, plate))


@router.get("/vehicles/{vehicle_id}", response_model=VehicleOut, summary="Get one vehicle")
def get_vehicle(vehicle_id: int, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return vehicle_service.get_vehicle(db, vehicle_id)


@router.post("/vehicles/{vehicle_id}/deactivate", response_model=VehicleOut, summary="Deactivate a vehicle")
def deactivate_vehicle(vehicle_id: int, caller: Caller = Depends(require_admin), db: Session = Depends(get_db)):
    return vehicle_service.deactivate_vehicle(db, caller, vehicle_id)
