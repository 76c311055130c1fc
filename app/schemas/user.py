# app/schemas/user.py
from pydantic import BaseModel, EmailStr, Field, StrictBool, field_validator, ValidationInfo
from datetime import datetime
from typing import Literal, Optional
from app.models.user import UserRole

Division = Literal["A", "B", "C", "D", "E", "F", "G", "H", "I", "J", "K"]


class UserRegister(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    employee_id: str = Field(min_length=1, max_length=50)
    phone: Optional[str] = None
    division: Optional[Division] = None
    password: str = Field(min_length=5, max_length=20)
    confirm_password: str = Field(min_length=1)

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, v: str, info: ValidationInfo) -> str:
        if "password" in info.data and v != info.data["password"]:
            raise ValueError("Passwords do not match")
        return v


class AdminRegister(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    employee_id: str = Field(min_length=1, max_length=50)
    phone: Optional[str] = None
    password: str = Field(min_length=8, max_length=32)
    secret_key: str = Field(min_length=6, max_length=6)


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=5, max_length=20)


class ProfileUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    phone: Optional[str] = None
    division: Division


class PasswordChange(BaseModel):
    new_password: str = Field(min_length=5, max_length=20)


class PasswordSettingsUpdate(BaseModel):
    enable_password_changes: StrictBool
    default_password: str = Field(min_length=5, max_length=20)


class UserModification(BaseModel):
    action: Literal["deactivate", "delete"]


class UserBrief(BaseModel):
    id: int
    name: str
    email: str
    employee_id: Optional[str]
    division: Optional[str]

    class Config:
        from_attributes = True


class UserOut(BaseModel):
    id: int
    email: str
    name: str
    employee_id: Optional[str]
    phone: Optional[str]
    role: UserRole
    division: Optional[str]
    is_active: bool
    enable_password_changes: bool
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserWithCountsOut(UserOut):
    vehicle_requests_count: int = 0
    created_requests_count: int = 0
