# app/services/notification_service.py
"""
Approval e-mail to the requester.

The approval itself is committed first; routers hand send_approval_email to
FastAPI BackgroundTasks. Sending never raises — a mail failure is logged and
the approval stands.
"""

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from html import escape
from pathlib import Path
from string import Template
from typing import Optional

from app.config import settings
from app.models.vehicle_request import VehicleRequest
from app.utils.logger import get_logger
from app.utils.timeutils import format_local

logger = get_logger(__name__)

TEMPLATE_PATH = Path(__file__).resolve().parent.parent / "templates" / "approval_email.html"
APPROVAL_SUBJECT = "Vehicle Request - Approved"


@dataclass
class ApprovalEmail:
    request_id: int
    to: str
    subject: str
    html: str


def _template() -> Template:
    return Template(TEMPLATE_PATH.read_text(encoding="utf-8"))


def build_approval_email(req: VehicleRequest) -> Optional[ApprovalEmail]:
    """Render the message while the ORM session is still open. None if the template is unreadable."""
    try:
        template = _template()
    except OSError as e:
        logger.error(f"[MAIL] Cannot read approval template {TEMPLATE_PATH}: {e}")
        return None

    requester = req.requester
    fields = {
        "nip": requester.employee_id or "",
        "name": requester.name,
        "mobile_number": requester.phone or "-",
        "date": format_local(req.start_date_time, "%d/%m/%Y"),
        "start_time": format_local(req.start_date_time, "%H:%M"),
        "end_time": format_local(req.end_date_time, "%H:%M"),
        "destination": req.destination,
        "vehicle_name": req.vehicle.name,
        "vehicle_plate": req.vehicle.plate,
    }
    html = template.safe_substitute({k: escape(str(v)) for k, v in fields.items()})
    return ApprovalEmail(request_id=req.id, to=requester.email, subject=APPROVAL_SUBJECT, html=html)


def _deliver(message: EmailMessage):
    smtp_cls = smtplib.SMTP_SSL if settings.SMTP_SECURE else smtplib.SMTP
    with smtp_cls(settings.SMTP_HOST, settings.SMTP_PORT, timeout=15) as smtp:
        if not settings.SMTP_SECURE:
            smtp.starttls()
        if settings.SMTP_USER:
            smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD or "")
        smtp.send_message(message)


def send_approval_email(email: ApprovalEmail) -> bool:
    """Best-effort delivery. Returns True when the relay accepted the message."""
    if not settings.MAIL_ENABLED:
        logger.warning(f"[MAIL] SMTP not configured — approval email for request {email.request_id} skipped")
        return False

    message = EmailMessage()
    message["From"] = settings.MAIL_FROM
    message["To"] = email.to
    message["Reply-To"] = settings.MAIL_REPLY_TO
    message["Subject"] = email.subject
    message.set_content("Your vehicle request has been approved.")
    message.add_alternative(email.html, subtype="html")

    try:
        _deliver(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"[MAIL] Approval email for request {email.request_id} to {email.to} failed: {e}")
        return False

    logger.info(f"[MAIL] Approval email sent for request {email.request_id} to {email.to}")
    return True
