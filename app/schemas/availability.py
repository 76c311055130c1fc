# app/schemas/availability.py
from pydantic import BaseModel
from app.schemas.vehicle import VehicleOut


class BookingWindowOut(BaseModel):
    start_date_time: str     # local HH:MM
    end_date_time: str


class VehicleAvailabilityOut(VehicleOut):
    is_available: bool
    is_overlapping: bool
    bookings: list[BookingWindowOut]
    pending_count: int


class AvailabilityOut(BaseModel):
    data: list[VehicleAvailabilityOut]
