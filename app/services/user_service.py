# app/services/user_service.py
"""
Account management: registration, profile, password rules and the admin
deactivate → soft-delete flow.
"""

from typing import Optional

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from app.config import settings
from app.models.user import User, UserRole
from app.models.vehicle_request import VehicleRequest
from app.schemas.user import (
    UserRegister, AdminRegister, ProfileUpdate, PasswordChange, PasswordSettingsUpdate,
    UserModification, UserWithCountsOut,
)
from app.services.errors import (
    Conflict, NotFound, PermissionDenied, ValidationFailed, field_errors, invalid,
)
from app.utils.logger import get_logger
from app.utils.timeutils import utcnow

logger = get_logger(__name__)


def _validate(schema, data: dict):
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed("Invalid data", details=field_errors(e))


def _require_admin(caller):
    if not caller.is_admin:
        raise PermissionDenied("Admin access required")


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def hash_password(password: str) -> str:
    return generate_password_hash(password)


# ── Registration ─────────────────────────────────────────────────────────────

def register_user(db: Session, data: dict) -> User:
    """Self-registration. role=ADMIN additionally needs the admin secret key."""
    if str(data.get("role", "")).upper() == UserRole.ADMIN.value:
        body = _validate(AdminRegister, data)
        if not settings.ADMIN_SECRET_KEY or body.secret_key != settings.ADMIN_SECRET_KEY:
            raise invalid("secret_key", "Invalid secret key")
        role, division = UserRole.ADMIN, None
    else:
        body = _validate(UserRegister, data)
        role, division = UserRole.USER, body.division

    email = body.email.lower()
    if db.query(User).filter(func.lower(User.email) == email).first():
        raise Conflict("Email is already registered", field="email")
    if db.query(User).filter(User.employee_id == body.employee_id).first():
        raise Conflict("Employee ID is already registered", field="employee_id")

    user = User(
        name=body.name,
        email=email,
        employee_id=body.employee_id,
        phone=body.phone or None,
        password_hash=hash_password(body.password),
        role=role,
        division=division,
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"[USER] Duplicate registration race for {email}")
        raise Conflict("Email or Employee ID is already registered")

    db.refresh(user)
    logger.info(f"[USER] Registered {user.email} role={user.role.value}")
    return user


# ── Admin views ──────────────────────────────────────────────────────────────

def _with_counts(db: Session, user: User) -> UserWithCountsOut:
    requested = db.query(func.count(VehicleRequest.id)).filter(VehicleRequest.requester_id == user.id).scalar()
    submitted = db.query(func.count(VehicleRequest.id)).filter(VehicleRequest.created_by_id == user.id).scalar()
    out = UserWithCountsOut.model_validate(user)
    out.vehicle_requests_count = requested or 0
    out.created_requests_count = submitted or 0
    return out


def list_users(db: Session, caller) -> list[UserWithCountsOut]:
    """Active, non-deleted USER accounts, newest first."""
    _require_admin(caller)
    users = (
        db.query(User)
        .filter(User.role == UserRole.USER, User.is_active.is_(True), User.deleted_at.is_(None))
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    return [_with_counts(db, u) for u in users]


def get_user(db: Session, caller, user_id: int) -> UserWithCountsOut:
    _require_admin(caller)
    return _with_counts(db, _get_user(db, user_id))


def update_password_settings(db: Session, caller, user_id: int, data: dict) -> UserWithCountsOut:
    """Toggle enable_password_changes and reset the password to a default."""
    _require_admin(caller)
    body = _validate(PasswordSettingsUpdate, data)
    user = _get_user(db, user_id)
    if user.is_admin:
        raise PermissionDenied("Cannot change password settings of an admin")

    user.enable_password_changes = body.enable_password_changes
    user.password_hash = hash_password(body.default_password)
    db.commit()
    db.refresh(user)
    logger.info(
        f"[USER] Password changes {'enabled' if body.enable_password_changes else 'disabled'} "
        f"for {user.email} by {caller.id}"
    )
    return _with_counts(db, user)


def modify_user(db: Session, caller, user_id: int, data: dict) -> User:
    """deactivate → is_active=False; delete → deleted_at (only once inactive)."""
    _require_admin(caller)
    body = _validate(UserModification, data)
    user = _get_user(db, user_id)
    if user.id == caller.id:
        raise PermissionDenied("Cannot modify your own account")

    if body.action == "deactivate":
        user.is_active = False
    else:
        if user.is_active:
            raise Conflict("User must be deactivated before being deleted")
        if user.deleted_at is not None:
            raise Conflict("User is already deleted")
        user.deleted_at = utcnow()

    db.commit()
    db.refresh(user)
    logger.info(f"[USER] {body.action} {user.email} by {caller.id}")
    return user


# ── Self-service ─────────────────────────────────────────────────────────────

def get_profile(db: Session, caller) -> User:
    return _get_user(db, caller.id)


def update_profile(db: Session, caller, data: dict) -> User:
    body = _validate(ProfileUpdate, data)
    user = _get_user(db, caller.id)
    user.name = body.name
    user.phone = body.phone or None
    user.division = body.division
    db.commit()
    db.refresh(user)
    logger.info(f"[USER] Profile updated for {user.email}")
    return user


def change_password(db: Session, caller, data: dict) -> None:
    """Allowed when an admin enabled it for the account (or for admins); one-shot."""
    body = _validate(PasswordChange, data)
    user = _get_user(db, caller.id)
    if not user.enable_password_changes and not user.is_admin:
        raise PermissionDenied("Password changes are not enabled for your account. Contact an administrator.")

    user.password_hash = hash_password(body.new_password)
    user.enable_password_changes = False
    db.commit()
    logger.info(f"[USER] Password changed for {user.email}")


def find_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.email) == email.lower()).first()
