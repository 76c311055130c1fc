# app/models/vehicle_request.py
"""
Booking requests table.

Lifecycle: PENDING -> APPROVED | REJECTED | CANCELLED, APPROVED -> COMPLETED
(checkout). OVERDUE is never stored; it is derived at read time for APPROVED
requests whose end has passed without a checkout.
Times are naive UTC.
"""

import enum
from sqlalchemy import Column, Integer, String, DateTime, Text, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.timeutils import utcnow


class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


OVERDUE = "OVERDUE"


class VehicleRequest(Base):
    __tablename__ = "vehicle_requests"
    __table_args__ = (
        CheckConstraint("end_date_time > start_date_time", name="ck_vehicle_requests_window"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    destination = Column(Text, nullable=False)
    start_date_time = Column(DateTime, nullable=False, index=True)
    end_date_time = Column(DateTime, nullable=False, index=True)
    status = Column(Enum(RequestStatus, native_enum=False, length=20),
                    default=RequestStatus.PENDING, nullable=False, index=True)
    rejection_reason = Column(Text)
    approved_at = Column(DateTime)
    rejected_at = Column(DateTime)
    check_out_at = Column(DateTime)
    document_url = Column(String(500))
    deleted_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    vehicle = relationship("Vehicle", back_populates="requests")
    requester = relationship("User", back_populates="vehicle_requests", foreign_keys=[requester_id])
    created_by = relationship("User", back_populates="created_requests", foreign_keys=[created_by_id])

    def display_status(self, now=None) -> str:
        """Persisted status, or OVERDUE for an unreturned approval past its end."""
        now = now or utcnow()
        if self.status == RequestStatus.APPROVED and self.check_out_at is None and now >= self.end_date_time:
            return OVERDUE
        return self.status.value

    def __repr__(self):
        return f"<VehicleRequest {self.id} vehicle={self.vehicle_id} status={self.status}>"
