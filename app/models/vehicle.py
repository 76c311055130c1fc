# app/models/vehicle.py
"""
Fleet vehicles table.
Plates are unique and stored upper-case. Vehicles are never hard-deleted;
admins deactivate them by clearing is_active.
"""

import enum
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, Enum
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.timeutils import utcnow


class FuelType(str, enum.Enum):
    GAS = "GAS"
    DIESEL = "DIESEL"
    ELECTRIC = "ELECTRIC"


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    plate = Column(String(20), unique=True, nullable=False, index=True)
    fuel_type = Column(Enum(FuelType, native_enum=False, length=20), nullable=False)
    year = Column(String(4), nullable=False)
    description = Column(Text)
    image = Column(String(500))                 # object storage URL
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    requests = relationship("VehicleRequest", back_populates="vehicle")

    def __repr__(self):
        return f"<Vehicle {self.plate} name={self.name} active={self.is_active}>"
