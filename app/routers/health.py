# app/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + upload storage + mail relay configuration.
"""

import os
import requests
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from app.database import get_db
from app.config import settings
from app.utils.timeutils import utcnow

router = APIRouter()


def _storage_status() -> str:
    if settings.STORAGE_BACKEND == "cloudinary":
        if not settings.CLOUDINARY_CLOUD_NAME:
            return "not_configured"
        try:
            resp = requests.get(f"https://res.cloudinary.com/{settings.CLOUDINARY_CLOUD_NAME}", timeout=3)
            return "ok" if resp.status_code < 500 else f"http_{resp.status_code}"
        except requests.exceptions.ConnectionError:
            return "unreachable"
        except requests.exceptions.RequestException as e:
            return f"error: {e}"

    return "ok" if os.access(settings.UPLOAD_DIR, os.W_OK) else "not_writable"


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Storage reachability (Cloudinary ping or local upload dir writable)
    - Whether SMTP is configured
    """
    result = {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "storage": _storage_status(),
        "mail": "configured" if settings.MAIL_ENABLED else "disabled",
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except SQLAlchemyError as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    if result["storage"] not in ("ok", "not_configured"):
        result["status"] = "degraded"

    return result
