# app/dependencies.py
"""
Caller identity for route handlers.
The session cookie only carries a user id; it is resolved here into an
explicit Caller that routers pass into every service call.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request, UploadFile
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User, UserRole, ADMIN_ROLES
from app.services.errors import AuthenticationRequired, PermissionDenied
from app.services.storage_service import UploadedFile

SESSION_USER_KEY = "user_id"


@dataclass(frozen=True)
class Caller:
    id: int
    role: UserRole
    name: str
    email: str
    division: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @classmethod
    def from_user(cls, user: User) -> "Caller":
        return cls(id=user.id, role=user.role, name=user.name, email=user.email, division=user.division)


def get_caller(request: Request, db: Session = Depends(get_db)) -> Caller:
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        raise AuthenticationRequired("Unauthorized")

    user = db.get(User, user_id)
    if not user or not user.is_active or user.deleted_at is not None:
        request.session.clear()
        raise AuthenticationRequired("Unauthorized")
    return Caller.from_user(user)


def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise PermissionDenied("Admin access required")
    return caller


async def read_upload(file: Optional[UploadFile]) -> Optional[UploadedFile]:
    """Read a multipart file into memory; an empty file field counts as missing."""
    if file is None or not file.filename:
        return None
    return UploadedFile(
        filename=file.filename,
        content_type=file.content_type or "application/octet-stream",
        content=await file.read(),
    )
