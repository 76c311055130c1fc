# app/routers/auth.py
"""Registration, credentials login and the session cookie."""

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import Caller, get_caller, SESSION_USER_KEY
from app.schemas.user import UserOut
from app.services import auth_service, user_service

router = APIRouter()


@router.post("/register", status_code=201, summary="Register a user (or an admin with the secret key)")
def register(data: dict = Body(...), db: Session = Depends(get_db)):
    user = user_service.register_user(db, data)
    return {"message": "User registered", "user": UserOut.model_validate(user)}


@router.post("/auth/login", summary="Log in with email + password")
def login(request: Request, data: dict = Body(...), db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, data)
    request.session.clear()
    request.session[SESSION_USER_KEY] = user.id
    return {"message": "Logged in", "user": UserOut.model_validate(user)}


@router.post("/auth/logout", summary="Clear the session")
def logout(request: Request):
    request.session.clear()
    return {"message": "Logged out"}


@router.get("/auth/me", response_model=UserOut, summary="Current caller")
def me(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return user_service.get_profile(db, caller)
