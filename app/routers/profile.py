# app/routers/profile.py
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import Caller, get_caller
from app.schemas.user import UserOut
from app.services import user_service

router = APIRouter()


@router.get("/profile", response_model=UserOut, summary="Own profile")
def get_profile(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return user_service.get_profile(db, caller)


@router.put("/profile", response_model=UserOut, summary="Update name, phone and division")
def update_profile(data: dict = Body(...), caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return user_service.update_profile(db, caller, data)


@router.put("/profile/password", summary="Change own password (when enabled by an admin)")
def change_password(data: dict = Body(...), caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    user_service.change_password(db, caller, data)
    return {"message": "Password changed"}
