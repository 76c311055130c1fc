# app/schemas/vehicle.py
import re
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional
from app.models.vehicle import FuelType

PLATE_PATTERN = re.compile(r"^[A-Z0-9\s]+$")


class VehicleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    plate: str = Field(min_length=1, max_length=20)
    fuel_type: FuelType
    year: str = Field(pattern=r"^\d{4}$")
    description: Optional[str] = None

    @field_validator("plate", mode="before")
    @classmethod
    def normalise_plate(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("plate")
    @classmethod
    def plate_charset(cls, v: str) -> str:
        if not PLATE_PATTERN.match(v):
            raise ValueError("License plate must contain only uppercase letters, numbers, and spaces")
        return v

    @field_validator("fuel_type", mode="before")
    @classmethod
    def upper_fuel_type(cls, v):
        return v.upper() if isinstance(v, str) else v


class VehicleBrief(BaseModel):
    id: int
    name: str
    plate: str
    fuel_type: FuelType
    image: Optional[str]

    class Config:
        from_attributes = True


class VehicleOut(BaseModel):
    id: int
    name: str
    plate: str
    fuel_type: FuelType
    year: str
    description: Optional[str]
    image: Optional[str]
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PlateCheckOut(BaseModel):
    plate: str
    exists: bool
