# app/services/auth_service.py
"""Credentials login. The router stores the returned user's id in the session cookie."""

from pydantic import ValidationError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash

from app.models.user import User
from app.schemas.user import LoginIn
from app.services.errors import AuthenticationRequired, ValidationFailed, field_errors
from app.services.user_service import find_by_email
from app.utils.logger import get_logger

logger = get_logger(__name__)


def authenticate(db: Session, data: dict) -> User:
    try:
        body = LoginIn.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed("Invalid data", error_code="VALIDATION_ERROR", details=field_errors(e))

    user = find_by_email(db, body.email)
    if not user or user.deleted_at is not None:
        logger.info(f"[AUTH] Login failed for {body.email}: unknown email")
        raise AuthenticationRequired("Email not found", error_code="USER_NOT_FOUND")

    if not user.is_active:
        logger.info(f"[AUTH] Login refused for {body.email}: inactive account")
        raise AuthenticationRequired("Your account is not active. Contact an administrator.",
                                     error_code="USER_NOT_ACTIVE")

    if not check_password_hash(user.password_hash, body.password):
        logger.info(f"[AUTH] Login failed for {body.email}: wrong password")
        raise AuthenticationRequired("Wrong password", error_code="INVALID_PASSWORD")

    logger.info(f"[AUTH] {user.email} logged in (role={user.role.value})")
    return user
