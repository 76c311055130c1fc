# app/routers/users.py
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import Caller, require_admin
from app.schemas.user import UserWithCountsOut
from app.services import user_service

router = APIRouter()


@router.get("/users", response_model=list[UserWithCountsOut], summary="Active non-admin users")
def list_users(caller: Caller = Depends(require_admin), db: Session = Depends(get_db)):
    return user_service.list_users(db, caller)


@router.get("/users/{user_id}", response_model=UserWithCountsOut, summary="Get one user")
def get_user(user_id: int, caller: Caller = Depends(require_admin), db: Session = Depends(get_db)):
    return user_service.get_user(db, caller, user_id)


@router.put("/users/{user_id}", summary="Enable/disable password changes and reset to a default password")
def update_password_settings(user_id: int, data: dict = Body(...), caller: Caller = Depends(require_admin),
                             db: Session = Depends(get_db)):
    user = user_service.update_password_settings(db, caller, user_id, data)
    state = "enabled" if user.enable_password_changes else "disabled"
    return {"message": f"Password changes {state} for {user.name}", "user": user}
