# app/schemas/vehicle_request.py
from pydantic import BaseModel, Field
from datetime import date, datetime, time
from typing import Optional
from app.schemas.user import UserBrief
from app.schemas.vehicle import VehicleBrief


class RequestCreate(BaseModel):
    vehicle_id: int
    destination: str = Field(min_length=1)
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    requester_id: Optional[int] = None      # admins may submit on behalf of another user


class RejectIn(BaseModel):
    reason: str = Field(min_length=1)


class VehicleRequestOut(BaseModel):
    id: int
    vehicle_id: int
    requester_id: int
    created_by_id: int
    destination: str
    start_date_time: datetime
    end_date_time: datetime
    status: str
    display_status: str
    rejection_reason: Optional[str]
    approved_at: Optional[datetime]
    rejected_at: Optional[datetime]
    check_out_at: Optional[datetime]
    document_url: Optional[str]
    created_at: datetime
    updated_at: datetime
    vehicle: Optional[VehicleBrief] = None
    requester: Optional[UserBrief] = None

    @classmethod
    def from_request(cls, req, now: Optional[datetime] = None, **extra):
        return cls(
            id=req.id,
            vehicle_id=req.vehicle_id,
            requester_id=req.requester_id,
            created_by_id=req.created_by_id,
            destination=req.destination,
            start_date_time=req.start_date_time,
            end_date_time=req.end_date_time,
            status=req.status.value,
            display_status=req.display_status(now),
            rejection_reason=req.rejection_reason,
            approved_at=req.approved_at,
            rejected_at=req.rejected_at,
            check_out_at=req.check_out_at,
            document_url=req.document_url,
            created_at=req.created_at,
            updated_at=req.updated_at,
            vehicle=VehicleBrief.model_validate(req.vehicle) if req.vehicle else None,
            requester=UserBrief.model_validate(req.requester) if req.requester else None,
            **extra,
        )


class MyRequestOut(VehicleRequestOut):
    button_status: Optional[str] = None      # on_time | over_time | warning
    is_idle: bool = True


class PaginationOut(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    limit: int
    has_next_page: bool
    has_prev_page: bool


class AdminRequestPage(BaseModel):
    data: list[VehicleRequestOut]
    pagination: PaginationOut


class UsageOut(BaseModel):
    id: int
    vehicle_name: str
    vehicle_plate: str
    start_date_time: str     # local YYYY-MM-DD HH:MM:SS
    end_date_time: str
    destination: str


class OverdueUsageOut(UsageOut):
    minutes_overdue: int


class UserVehicleStatusOut(BaseModel):
    is_using_vehicle: bool
    is_overdue: bool
    current_usage: Optional[UsageOut] = None
    overdue_usage: Optional[OverdueUsageOut] = None


class ReturnOut(BaseModel):
    message: str
    data: VehicleRequestOut
