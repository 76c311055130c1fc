# app/services/availability_service.py
"""
Vehicle availability for a requested time window.

For every active vehicle:
  - an APPROVED request that was never checked out means the vehicle is still
    physically out: unavailable, is_overlapping=True, no booking list
  - otherwise APPROVED requests overlapping the window make it unavailable and
    are listed as local HH:MM windows
  - PENDING requests overlapping the window never block, they are only counted

Without a window only the unreturned-vehicle rule applies and every live
PENDING request of the vehicle is counted.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy.orm import Session

from app.models.vehicle import Vehicle
from app.models.vehicle_request import VehicleRequest, RequestStatus
from app.services.errors import AuthenticationRequired, invalid
from app.utils.logger import get_logger
from app.utils.timeutils import local_to_utc, format_local

logger = get_logger(__name__)

BOOKING_TIME_FORMAT = "%H:%M"


@dataclass(frozen=True)
class TimeWindow:
    """Half-open [start, end) in naive UTC."""
    start: datetime
    end: datetime

    @classmethod
    def from_local(cls, day: date, start_time: time, end_time: time) -> "TimeWindow":
        window = cls(local_to_utc(day, start_time), local_to_utc(day, end_time))
        if window.end <= window.start:
            raise invalid("end_time", "End time must be after start time")
        return window


@dataclass
class VehicleAvailability:
    vehicle: Vehicle
    is_available: bool = True
    is_overlapping: bool = False
    bookings: list[dict] = field(default_factory=list)
    pending_count: int = 0


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval overlap; touching endpoints do not overlap."""
    return start_a < end_b and end_a > start_b


def overlapping(query, window: TimeWindow):
    """Restrict a VehicleRequest query to rows whose interval overlaps `window`."""
    return query.filter(
        VehicleRequest.start_date_time < window.end,
        VehicleRequest.end_date_time > window.start,
    )


def _live_requests(db: Session, status: RequestStatus):
    return db.query(VehicleRequest).filter(
        VehicleRequest.status == status,
        VehicleRequest.deleted_at.is_(None),
    )


def unreturned_vehicle_ids(db: Session) -> set[int]:
    """Vehicles with an APPROVED request that has no checkout — still physically out."""
    rows = (
        _live_requests(db, RequestStatus.APPROVED)
        .filter(VehicleRequest.check_out_at.is_(None))
        .with_entities(VehicleRequest.vehicle_id)
        .distinct()
        .all()
    )
    return {vehicle_id for (vehicle_id,) in rows}


def resolve_availability(db: Session, caller, window: Optional[TimeWindow] = None) -> list[VehicleAvailability]:
    if caller is None:
        raise AuthenticationRequired("Unauthorized")

    vehicles = (
        db.query(Vehicle)
        .filter(Vehicle.is_active.is_(True))
        .order_by(Vehicle.created_at.desc(), Vehicle.id.desc())
        .all()
    )
    unreturned = unreturned_vehicle_ids(db)

    booked: dict[int, list[VehicleRequest]] = defaultdict(list)
    pending_q = _live_requests(db, RequestStatus.PENDING)
    if window is not None:
        approved_q = overlapping(_live_requests(db, RequestStatus.APPROVED), window)
        for req in approved_q.order_by(VehicleRequest.start_date_time.asc()).all():
            booked[req.vehicle_id].append(req)
        pending_q = overlapping(pending_q, window)

    pending_counts: dict[int, int] = defaultdict(int)
    for (vehicle_id,) in pending_q.with_entities(VehicleRequest.vehicle_id).all():
        pending_counts[vehicle_id] += 1

    result = []
    for vehicle in vehicles:
        item = VehicleAvailability(vehicle=vehicle, pending_count=pending_counts[vehicle.id])
        if vehicle.id in unreturned:
            item.is_available = False
            item.is_overlapping = True
        elif booked[vehicle.id]:
            item.is_available = False
            item.bookings = [
                {
                    "start_date_time": format_local(req.start_date_time, BOOKING_TIME_FORMAT),
                    "end_date_time": format_local(req.end_date_time, BOOKING_TIME_FORMAT),
                }
                for req in booked[vehicle.id]
            ]
        result.append(item)

    available = sum(1 for item in result if item.is_available)
    logger.info(
        f"[AVAILABILITY] caller={caller.id} window={window.start if window else '-'}→"
        f"{window.end if window else '-'} | {available}/{len(result)} available"
    )
    return result
