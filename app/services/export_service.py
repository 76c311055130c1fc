# app/services/export_service.py
"""
Admin report: booking requests created in a local-date range rendered to an
XLSX workbook. Read-only; never touches request state.
"""

from dataclasses import dataclass
from datetime import date, time, timedelta
from io import BytesIO
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from sqlalchemy.orm import Session, joinedload

from app.models.vehicle_request import VehicleRequest
from app.services.errors import PermissionDenied, invalid
from app.utils.logger import get_logger
from app.utils.timeutils import local_to_utc, format_local, utcnow

logger = get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SHEET_TITLE = "Vehicle Requests"

DATE_FMT = "%d/%m/%Y"
TIME_FMT = "%H:%M"
DATETIME_FMT = "%d/%m/%Y %H:%M"

# (header, width)
COLUMNS = [
    ("No", 5),
    ("Request ID", 12),
    ("Requester Name", 20),
    ("Requester Employee ID", 15),
    ("Requester Email", 25),
    ("Division", 8),
    ("Vehicle Name", 20),
    ("Plate", 12),
    ("Fuel Type", 12),
    ("Destination", 30),
    ("Start Date", 12),
    ("Start Time", 10),
    ("End Date", 12),
    ("End Time", 10),
    ("Status", 12),
    ("Approved At", 18),
    ("Rejected At", 18),
    ("Rejection Reason", 25),
    ("Check Out At", 18),
    ("Created By", 20),
    ("Creator Employee ID", 15),
    ("Created At", 18),
    ("Updated At", 18),
]


@dataclass
class ExportFile:
    filename: str
    content: bytes
    row_count: int
    media_type: str = XLSX_MEDIA_TYPE


def _row(index: int, req: VehicleRequest) -> list:
    return [
        index,
        req.id,
        req.requester.name,
        req.requester.employee_id or "-",
        req.requester.email,
        req.requester.division or "-",
        req.vehicle.name,
        req.vehicle.plate,
        req.vehicle.fuel_type.value,
        req.destination,
        format_local(req.start_date_time, DATE_FMT),
        format_local(req.start_date_time, TIME_FMT),
        format_local(req.end_date_time, DATE_FMT),
        format_local(req.end_date_time, TIME_FMT),
        req.status.value,
        format_local(req.approved_at, DATETIME_FMT),
        format_local(req.rejected_at, DATETIME_FMT),
        req.rejection_reason or "-",
        format_local(req.check_out_at, DATETIME_FMT),
        req.created_by.name,
        req.created_by.employee_id or "-",
        format_local(req.created_at, DATETIME_FMT),
        format_local(req.updated_at, DATETIME_FMT),
    ]


def _append_text_safe(ws, values: list):
    """Append a row; strings stay literal text even when they start with '='."""
    ws.append(values)
    for cell in ws[ws.max_row]:
        if isinstance(cell.value, str):
            cell.data_type = "s"


def export_filename(start_date: Optional[date], end_date: Optional[date]) -> str:
    name = f"vehicle_requests_{format_local(utcnow(), '%Y%m%d_%H%M%S')}"
    if start_date and end_date:
        name += f"_{start_date.isoformat()}_to_{end_date.isoformat()}"
    elif start_date:
        name += f"_from_{start_date.isoformat()}"
    elif end_date:
        name += f"_until_{end_date.isoformat()}"
    return f"{name}.xlsx"


def export_requests(db: Session, caller, start_date: Optional[date] = None,
                    end_date: Optional[date] = None) -> ExportFile:
    if not caller.is_admin:
        raise PermissionDenied("Admin access required")
    if start_date and end_date and end_date < start_date:
        raise invalid("end_date", "End date must not be before start date")

    q = (
        db.query(VehicleRequest)
        .options(
            joinedload(VehicleRequest.requester),
            joinedload(VehicleRequest.created_by),
            joinedload(VehicleRequest.vehicle),
        )
        .filter(VehicleRequest.deleted_at.is_(None))
    )
    if start_date:
        q = q.filter(VehicleRequest.created_at >= local_to_utc(start_date, time.min))
    if end_date:
        # The whole end date is included
        q = q.filter(VehicleRequest.created_at < local_to_utc(end_date + timedelta(days=1), time.min))
    requests = q.order_by(VehicleRequest.created_at.desc(), VehicleRequest.id.desc()).all()

    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    _append_text_safe(ws, [header for header, _ in COLUMNS])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for i, (_, width) in enumerate(COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width
    for index, req in enumerate(requests, start=1):
        _append_text_safe(ws, _row(index, req))

    buffer = BytesIO()
    wb.save(buffer)

    filename = export_filename(start_date, end_date)
    logger.info(f"[EXPORT] {len(requests)} request(s) → {filename} by {caller.id}")
    return ExportFile(filename=filename, content=buffer.getvalue(), row_count=len(requests))
