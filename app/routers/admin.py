# app/routers/admin.py
"""Admin side: request review (approve / reject / checkout), export, user moderation."""

from datetime import date
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, Response
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import Caller, require_admin
from app.schemas.user import UserOut
from app.schemas.vehicle_request import AdminRequestPage, RejectIn, VehicleRequestOut
from app.services import request_service, user_service
from app.services.export_service import export_requests
from app.services.notification_service import build_approval_email, send_approval_email

router = APIRouter()


@router.get("/admin/requests", response_model=AdminRequestPage, summary="All requests — filterable, paginated")
def list_requests(
    status: Optional[str] = None,
    is_today: bool = False,
    is_overdue: bool = False,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return request_service.list_requests(
        db, caller, status=status, is_today=is_today, is_overdue=is_overdue,
        sort_by=sort_by, sort_order=sort_order, page=page, limit=limit,
    )


@router.post("/admin/requests/{request_id}/approve", response_model=VehicleRequestOut, summary="Approve a pending request")
def approve_request(
    request_id: int,
    background_tasks: BackgroundTasks,
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """The approval is committed first; the confirmation email goes out in the background."""
    req = request_service.approve_request(db, caller, request_id)
    email = build_approval_email(req)
    if email:
        background_tasks.add_task(send_approval_email, email)
    return VehicleRequestOut.from_request(req)


@router.post("/admin/requests/{request_id}/reject", response_model=VehicleRequestOut, summary="Reject a pending request")
def reject_request(request_id: int, body: RejectIn, caller: Caller = Depends(require_admin),
                   db: Session = Depends(get_db)):
    return VehicleRequestOut.from_request(request_service.reject_request(db, caller, request_id, body.reason))


@router.post("/admin/requests/{request_id}/checkout", response_model=VehicleRequestOut, summary="Check a vehicle back in")
def checkout_request(request_id: int, caller: Caller = Depends(require_admin), db: Session = Depends(get_db)):
    return VehicleRequestOut.from_request(
        request_service.checkout_request(db, caller, request_id, self_service=False)
    )


@router.get("/admin/export/vehicle-requests", summary="Download requests as XLSX")
def export_vehicle_requests(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    export = export_requests(db, caller, start_date, end_date)
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


@router.put("/admin/users/{user_id}", summary="Deactivate or soft-delete a user")
def modify_user(user_id: int, data: dict = Body(...), caller: Caller = Depends(require_admin),
                db: Session = Depends(get_db)):
    user = user_service.modify_user(db, caller, user_id, data)
    message = "User deactivated" if data.get("action") == "deactivate" else "User deleted"
    return {"message": message, "user": UserOut.model_validate(user)}
