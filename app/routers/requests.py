# app/routers/requests.py
"""
Booking requests from the requester's side: availability, submit, own list,
current usage status, return (checkout) and cancel.
"""

from datetime import date, time
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import Caller, get_caller, read_upload
from app.schemas.availability import AvailabilityOut, VehicleAvailabilityOut
from app.schemas.vehicle import VehicleOut
from app.schemas.vehicle_request import (
    RequestCreate, VehicleRequestOut, MyRequestOut, UserVehicleStatusOut, ReturnOut,
)
from app.services import request_service
from app.services.availability_service import TimeWindow, resolve_availability
from app.services.errors import ValidationFailed, field_errors

router = APIRouter()


@router.get("/requests/availability", response_model=AvailabilityOut, summary="Which vehicles are free for a window")
def get_availability(
    start_date: Optional[date] = None,
    start_time: Optional[time] = None,
    end_time: Optional[time] = None,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """
    All three query parameters (local date, local HH:MM start/end) select a window.
    Without them only vehicles that were never returned are reported unavailable.
    """
    window = None
    if start_date and start_time and end_time:
        window = TimeWindow.from_local(start_date, start_time, end_time)

    request_service.expire_stale_requests(db)
    items = resolve_availability(db, caller, window)
    return AvailabilityOut(data=[
        VehicleAvailabilityOut(
            **VehicleOut.model_validate(item.vehicle).model_dump(),
            is_available=item.is_available,
            is_overlapping=item.is_overlapping,
            bookings=item.bookings,
            pending_count=item.pending_count,
        )
        for item in items
    ])


@router.post("/requests", status_code=201, response_model=VehicleRequestOut, summary="Submit a booking request")
async def create_request(
    vehicle_id: str = Form(""),
    destination: str = Form(""),
    start_date: str = Form(""),
    end_date: str = Form(""),
    start_time: str = Form(""),
    end_time: str = Form(""),
    requester_id: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """Multipart form. Dates are YYYY-MM-DD and times HH:MM, local time. The document is mandatory."""
    try:
        payload = RequestCreate.model_validate({
            "vehicle_id": vehicle_id,
            "destination": destination,
            "start_date": start_date,
            "end_date": end_date,
            "start_time": start_time,
            "end_time": end_time,
            "requester_id": requester_id or None,
        })
    except ValidationError as e:
        raise ValidationFailed("Invalid data", details=field_errors(e))

    req = await request_service.create_request(db, caller, payload, await read_upload(document))
    return VehicleRequestOut.from_request(req)


@router.get("/requests/mine", response_model=list[MyRequestOut], summary="Caller's own requests")
def my_requests(
    status: Optional[str] = None,
    date_range: Optional[str] = None,
    sort_order: str = "desc",
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    return request_service.list_user_requests(db, caller, status, date_range, sort_order)


@router.get("/requests/status", response_model=UserVehicleStatusOut, summary="Is the caller using or overdue with a vehicle")
def my_vehicle_status(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return request_service.get_user_vehicle_status(db, caller)


@router.post("/requests/{request_id}/return", response_model=ReturnOut, summary="Return the vehicle (self-service checkout)")
def return_vehicle(request_id: int, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    req = request_service.checkout_request(db, caller, request_id, self_service=True)
    return ReturnOut(message=f"Vehicle {req.vehicle.plate} returned", data=VehicleRequestOut.from_request(req))


@router.post("/requests/{request_id}/cancel", response_model=VehicleRequestOut, summary="Cancel a pending request")
def cancel_request(request_id: int, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return VehicleRequestOut.from_request(request_service.cancel_request(db, caller, request_id))
