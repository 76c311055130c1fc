# app/services/request_service.py
"""
Booking request lifecycle.

  create    → PENDING             (document upload + per-division daily quota)
  expire    PENDING → CANCELLED   (end already passed; check-on-read sweep)
  approve   PENDING → APPROVED    (admin; re-checks overlapping approvals)
  reject    PENDING → REJECTED    (admin; reason required)
  cancel    PENDING → CANCELLED   (requester or admin)
  checkout  APPROVED → COMPLETED  (requester self-service or admin; single use)

OVERDUE is never written: it is derived for APPROVED requests whose end has
passed without a checkout (VehicleRequest.display_status, user status).
Every operation takes the caller explicitly.
"""

import math
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.config import settings
from app.models.user import User
from app.models.vehicle import Vehicle
from app.models.vehicle_request import VehicleRequest, RequestStatus
from app.schemas.vehicle_request import (
    RequestCreate, VehicleRequestOut, MyRequestOut, AdminRequestPage, PaginationOut,
    UsageOut, OverdueUsageOut, UserVehicleStatusOut,
)
from app.services.availability_service import overlapping, TimeWindow
from app.services.errors import (
    AuthenticationRequired, PermissionDenied, NotFound, Conflict, invalid,
)
from app.services.storage_service import (
    UploadedFile, DOCUMENT_TYPES, validate_upload, upload_file, discard_upload,
)
from app.utils.logger import get_logger
from app.utils.timeutils import (
    utcnow, local_to_utc, utc_to_local, local_day_bounds, local_range_bounds, format_local,
)

logger = get_logger(__name__)

QUOTA_ERROR_CODE = "MAX_REQUEST_PER_DAY"
USAGE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

SORTABLE_COLUMNS = {
    "created_at": VehicleRequest.created_at,
    "start_date_time": VehicleRequest.start_date_time,
    "end_date_time": VehicleRequest.end_date_time,
}


# ── Helpers ──────────────────────────────────────────────────────────────────

def _require_caller(caller):
    if caller is None:
        raise AuthenticationRequired("Unauthorized")


def _require_admin(caller):
    _require_caller(caller)
    if not caller.is_admin:
        raise PermissionDenied("Admin access required")


def _get_request(db: Session, request_id: int, lock: bool = False) -> VehicleRequest:
    q = db.query(VehicleRequest).filter(
        VehicleRequest.id == request_id,
        VehicleRequest.deleted_at.is_(None),
    )
    if lock:
        q = q.with_for_update()
    req = q.first()
    if not req:
        raise NotFound("Request not found")
    return req


def _require_status(req: VehicleRequest, status: RequestStatus, action: str):
    if req.status != status:
        raise Conflict(
            f"Only {status.value.lower()} requests can be {action} (current status: {req.status.value})",
            error_code="INVALID_STATUS",
        )


def _parse_status(status: Optional[str]) -> Optional[RequestStatus]:
    if not status:
        return None
    try:
        return RequestStatus(status.upper())
    except ValueError:
        raise invalid("status", f"Unknown status '{status}'")


# ── Expiry sweep ─────────────────────────────────────────────────────────────

def expire_stale_requests(db: Session, now: Optional[datetime] = None) -> int:
    """
    Flip PENDING requests whose end has already passed to CANCELLED.
    Idempotent: only rows still matching the stale-PENDING predicate change.
    """
    now = now or utcnow()
    count = (
        db.query(VehicleRequest)
        .filter(
            VehicleRequest.status == RequestStatus.PENDING,
            VehicleRequest.end_date_time <= now,
            VehicleRequest.deleted_at.is_(None),
        )
        .update(
            {VehicleRequest.status: RequestStatus.CANCELLED, VehicleRequest.updated_at: now},
            synchronize_session=False,
        )
    )
    db.commit()
    if count:
        logger.info(f"[EXPIRY] {count} stale pending request(s) cancelled")
    return count


# ── Create ───────────────────────────────────────────────────────────────────

def count_division_requests_today(db: Session, requester: User, now: Optional[datetime] = None) -> int:
    """Requests created during the current local day by the requester's division."""
    day_start, day_end = local_day_bounds(now=now)
    q = (
        db.query(func.count(VehicleRequest.id))
        .join(User, VehicleRequest.requester_id == User.id)
        .filter(
            VehicleRequest.created_at >= day_start,
            VehicleRequest.created_at < day_end,
            VehicleRequest.deleted_at.is_(None),
        )
    )
    if requester.division:
        q = q.filter(func.lower(User.division) == requester.division.lower())
    else:
        # No division on file: the requester is their own quota group
        q = q.filter(VehicleRequest.requester_id == requester.id)
    return q.scalar() or 0


async def create_request(db: Session, caller, payload: RequestCreate,
                         document: Optional[UploadedFile], now: Optional[datetime] = None) -> VehicleRequest:
    _require_caller(caller)
    now = now or utcnow()

    requester_id = payload.requester_id or caller.id
    if requester_id != caller.id and not caller.is_admin:
        raise PermissionDenied("Only admins can submit requests on behalf of another user")

    requester = db.get(User, requester_id)
    if not requester or not requester.is_active or requester.deleted_at is not None:
        raise NotFound("Requester not found")

    vehicle = db.get(Vehicle, payload.vehicle_id)
    if not vehicle or not vehicle.is_active:
        raise NotFound("Vehicle not found")

    destination = payload.destination.strip()
    if not destination:
        raise invalid("destination", "Destination is required")

    start = local_to_utc(payload.start_date, payload.start_time)
    end = local_to_utc(payload.end_date, payload.end_time)
    if end <= start:
        raise invalid("end_time", "End time must be after start time")

    if document is None:
        raise invalid("document", "Supporting document is required")
    validate_upload(document, DOCUMENT_TYPES, "document")

    used = count_division_requests_today(db, requester, now)
    if used >= settings.MAX_REQUEST_PER_DAY:
        logger.warning(
            f"[REQUEST] Quota reached for division={requester.division or '-'} "
            f"({used}/{settings.MAX_REQUEST_PER_DAY}) — requester={requester.id}"
        )
        raise Conflict(
            f"Maximum requests per division for today has been reached ({settings.MAX_REQUEST_PER_DAY})",
            error_code=QUOTA_ERROR_CODE,
        )

    document_url = await upload_file(document, "documents", f"request-{requester.id}")

    req = VehicleRequest(
        vehicle_id=vehicle.id,
        requester_id=requester.id,
        created_by_id=caller.id,
        destination=destination,
        start_date_time=start,
        end_date_time=end,
        status=RequestStatus.PENDING,
        document_url=document_url,
        created_at=now,
        updated_at=now,
    )
    db.add(req)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(f"[REQUEST] Insert failed for requester={requester.id}, discarding {document_url}")
        discard_upload(document_url)
        raise
    db.refresh(req)
    logger.info(
        f"[REQUEST] #{req.id} created | vehicle={vehicle.plate} requester={requester.id} "
        f"by={caller.id} {start:%Y-%m-%d %H:%M}→{end:%Y-%m-%d %H:%M} UTC"
    )
    return req


# ── Admin transitions ────────────────────────────────────────────────────────

def approve_request(db: Session, caller, request_id: int, now: Optional[datetime] = None) -> VehicleRequest:
    _require_admin(caller)
    now = now or utcnow()
    req = _get_request(db, request_id, lock=True)
    _require_status(req, RequestStatus.PENDING, "approved")

    # Serialise approvals per vehicle, then re-check inside the same transaction
    db.query(Vehicle).filter(Vehicle.id == req.vehicle_id).with_for_update().one()
    clash = (
        overlapping(db.query(VehicleRequest), TimeWindow(req.start_date_time, req.end_date_time))
        .filter(
            VehicleRequest.vehicle_id == req.vehicle_id,
            VehicleRequest.id != req.id,
            VehicleRequest.status == RequestStatus.APPROVED,
            VehicleRequest.deleted_at.is_(None),
        )
        .first()
    )
    if clash:
        db.rollback()
        raise Conflict(
            f"Vehicle is already booked by request #{clash.id} for an overlapping window",
            error_code="VEHICLE_ALREADY_BOOKED",
        )

    req.status = RequestStatus.APPROVED
    req.approved_at = now
    req.rejection_reason = None
    req.updated_at = now
    db.commit()
    db.refresh(req)
    logger.info(f"[REQUEST] #{req.id} approved by {caller.id}")
    return req


def reject_request(db: Session, caller, request_id: int, reason: str,
                   now: Optional[datetime] = None) -> VehicleRequest:
    _require_admin(caller)
    reason = (reason or "").strip()
    if not reason:
        raise invalid("reason", "Rejection reason is required")

    now = now or utcnow()
    req = _get_request(db, request_id, lock=True)
    _require_status(req, RequestStatus.PENDING, "rejected")

    req.status = RequestStatus.REJECTED
    req.rejected_at = now
    req.rejection_reason = reason
    req.updated_at = now
    db.commit()
    db.refresh(req)
    logger.info(f"[REQUEST] #{req.id} rejected by {caller.id}: {reason}")
    return req


def cancel_request(db: Session, caller, request_id: int, now: Optional[datetime] = None) -> VehicleRequest:
    _require_caller(caller)
    now = now or utcnow()
    req = _get_request(db, request_id, lock=True)
    if req.requester_id != caller.id and not caller.is_admin:
        raise PermissionDenied("You do not have access to cancel this request")
    _require_status(req, RequestStatus.PENDING, "cancelled")

    req.status = RequestStatus.CANCELLED
    req.updated_at = now
    db.commit()
    db.refresh(req)
    logger.info(f"[REQUEST] #{req.id} cancelled by {caller.id}")
    return req


def checkout_request(db: Session, caller, request_id: int, self_service: bool = True,
                     now: Optional[datetime] = None) -> VehicleRequest:
    """Return the vehicle: APPROVED → COMPLETED, stamping check_out_at once."""
    _require_caller(caller)
    if not self_service:
        _require_admin(caller)

    now = now or utcnow()
    req = _get_request(db, request_id, lock=True)
    if self_service and req.requester_id != caller.id:
        raise PermissionDenied("You do not have access to return this vehicle")

    if req.check_out_at is not None:
        raise Conflict("Vehicle has already been returned", error_code="ALREADY_CHECKED_OUT")
    _require_status(req, RequestStatus.APPROVED, "checked out")

    req.status = RequestStatus.COMPLETED
    req.check_out_at = now
    req.updated_at = now
    db.commit()
    db.refresh(req)
    logger.info(f"[REQUEST] #{req.id} checked out ({'self' if self_service else 'admin'}) by {caller.id}")
    return req


# ── Reads ────────────────────────────────────────────────────────────────────

def _usage_fields(req: VehicleRequest) -> dict:
    return {
        "id": req.id,
        "vehicle_name": req.vehicle.name,
        "vehicle_plate": req.vehicle.plate,
        "start_date_time": format_local(req.start_date_time, USAGE_TIME_FORMAT),
        "end_date_time": format_local(req.end_date_time, USAGE_TIME_FORMAT),
        "destination": req.destination,
    }


def get_user_vehicle_status(db: Session, caller, now: Optional[datetime] = None) -> UserVehicleStatusOut:
    """
    Scan the caller's unreturned approvals, earliest first. The first one that
    is either in progress ([start, end)) or past its end decides the answer.
    """
    _require_caller(caller)
    now = now or utcnow()
    approved = (
        db.query(VehicleRequest)
        .options(joinedload(VehicleRequest.vehicle))
        .filter(
            VehicleRequest.requester_id == caller.id,
            VehicleRequest.status == RequestStatus.APPROVED,
            VehicleRequest.check_out_at.is_(None),
            VehicleRequest.deleted_at.is_(None),
        )
        .order_by(VehicleRequest.start_date_time.asc())
        .all()
    )

    status = UserVehicleStatusOut(is_using_vehicle=False, is_overdue=False)
    for req in approved:
        if req.start_date_time <= now < req.end_date_time:
            status.is_using_vehicle = True
            status.current_usage = UsageOut(**_usage_fields(req))
            break
        if now >= req.end_date_time:
            minutes = int((now - req.end_date_time).total_seconds() // 60)
            status.is_overdue = True
            status.overdue_usage = OverdueUsageOut(**_usage_fields(req), minutes_overdue=minutes)
            break
    return status


def button_status(req: VehicleRequest, now: datetime) -> Optional[str]:
    """Return-button hint for an unreturned approval, judged on the local calendar."""
    if req.status != RequestStatus.APPROVED or req.check_out_at is not None:
        return None
    if utc_to_local(now).date() != utc_to_local(req.end_date_time).date():
        return "warning"
    if now < req.start_date_time:
        return None
    if now > req.end_date_time:
        return "over_time"
    return "on_time"


def list_user_requests(db: Session, caller, status: Optional[str] = None, date_range: Optional[str] = None,
                       sort_order: str = "desc", now: Optional[datetime] = None) -> list[MyRequestOut]:
    _require_caller(caller)
    now = now or utcnow()
    expire_stale_requests(db, now)

    q = (
        db.query(VehicleRequest)
        .options(joinedload(VehicleRequest.vehicle))
        .filter(VehicleRequest.requester_id == caller.id, VehicleRequest.deleted_at.is_(None))
    )
    wanted = _parse_status(status)
    if wanted:
        q = q.filter(VehicleRequest.status == wanted)
    if date_range:
        bounds = local_range_bounds(date_range, now)
        if bounds is None:
            raise invalid("date_range", f"Unknown date range '{date_range}'")
        q = q.filter(VehicleRequest.start_date_time >= bounds[0], VehicleRequest.start_date_time < bounds[1])

    order = VehicleRequest.created_at.asc() if sort_order == "asc" else VehicleRequest.created_at.desc()
    requests = q.order_by(order, VehicleRequest.id).all()

    # Vehicles from the caller's approvals that another user has not returned yet
    approved_vehicle_ids = {r.vehicle_id for r in requests if r.status == RequestStatus.APPROVED}
    held = set()
    if approved_vehicle_ids:
        rows = (
            db.query(VehicleRequest.vehicle_id)
            .filter(
                VehicleRequest.requester_id != caller.id,
                VehicleRequest.status == RequestStatus.APPROVED,
                VehicleRequest.check_out_at.is_(None),
                VehicleRequest.deleted_at.is_(None),
                VehicleRequest.vehicle_id.in_(approved_vehicle_ids),
            )
            .all()
        )
        held = {vehicle_id for (vehicle_id,) in rows}

    return [
        MyRequestOut.from_request(
            req, now,
            button_status=button_status(req, now),
            is_idle=req.vehicle_id not in held,
        )
        for req in requests
    ]


def list_requests(db: Session, caller, status: Optional[str] = None, is_today: bool = False,
                  is_overdue: bool = False, sort_by: str = "created_at", sort_order: str = "desc",
                  page: Optional[int] = None, limit: Optional[int] = None,
                  now: Optional[datetime] = None) -> AdminRequestPage:
    """Admin view of all requests, with filters and pagination metadata."""
    _require_admin(caller)
    now = now or utcnow()
    expire_stale_requests(db, now)

    if sort_by not in SORTABLE_COLUMNS:
        raise invalid("sort_by", f"Cannot sort by '{sort_by}'")
    if page is not None and page < 1:
        raise invalid("page", "Page must be at least 1")
    if limit is not None and limit < 1:
        raise invalid("limit", "Limit must be at least 1")

    q = db.query(VehicleRequest).filter(VehicleRequest.deleted_at.is_(None))
    wanted = _parse_status(status)
    if wanted:
        q = q.filter(VehicleRequest.status == wanted)
    if is_today:
        q = q.filter(VehicleRequest.start_date_time >= local_day_bounds(now=now)[0])
    if is_overdue:
        q = q.filter(VehicleRequest.end_date_time < now)

    total_count = q.count()

    column = SORTABLE_COLUMNS[sort_by]
    q = q.options(joinedload(VehicleRequest.vehicle), joinedload(VehicleRequest.requester))
    q = q.order_by(column.asc() if sort_order == "asc" else column.desc(), VehicleRequest.id)
    page_number = page or 1
    if limit:
        q = q.offset((page_number - 1) * limit).limit(limit)
    requests = q.all()

    limit_number = limit or len(requests)
    total_pages = math.ceil(total_count / limit_number) if limit_number else 0
    return AdminRequestPage(
        data=[VehicleRequestOut.from_request(req, now) for req in requests],
        pagination=PaginationOut(
            current_page=page_number,
            total_pages=total_pages,
            total_count=total_count,
            limit=limit_number,
            has_next_page=page_number < total_pages,
            has_prev_page=page_number > 1,
        ),
    )
