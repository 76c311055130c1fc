# tests/conftest.py
"""Shared fixtures: in-memory SQLite session and small row factories."""

import sys
import os
import tempfile
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before anything imports app.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="tamvems-uploads-")
os.environ["STORAGE_BACKEND"] = "local"
os.environ["SMTP_HOST"] = ""
os.environ["ADMIN_SECRET_KEY"] = "ABC123"
os.environ["MAX_REQUEST_PER_DAY"] = "2"

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.dependencies import Caller
from app.models.user import User, UserRole
from app.models.vehicle import Vehicle, FuelType
from app.models.vehicle_request import VehicleRequest, RequestStatus
from app.services.storage_service import UploadedFile
from werkzeug.security import generate_password_hash

# 2025-01-06 10:00 local (Asia/Jakarta, UTC+7), a Monday
NOW = datetime(2025, 1, 6, 3, 0)


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def now():
    return NOW


def make_user(db, email="user@tamvems.id", role=UserRole.USER, division="A", password="secret1", **kwargs):
    user = User(
        email=email,
        name=kwargs.pop("name", email.split("@")[0].title()),
        employee_id=kwargs.pop("employee_id", email.split("@")[0].upper()),
        password_hash=generate_password_hash(password),
        role=role,
        division=division,
        **kwargs,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_vehicle(db, plate="B 1234 XYZ", name="Avanza", **kwargs):
    vehicle = Vehicle(
        name=name,
        plate=plate,
        fuel_type=kwargs.pop("fuel_type", FuelType.GAS),
        year=kwargs.pop("year", "2021"),
        **kwargs,
    )
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    return vehicle


def make_request(db, vehicle, requester, start, end, status=RequestStatus.PENDING, **kwargs):
    req = VehicleRequest(
        vehicle_id=vehicle.id,
        requester_id=requester.id,
        created_by_id=kwargs.pop("created_by_id", requester.id),
        destination=kwargs.pop("destination", "Balai Kota"),
        start_date_time=start,
        end_date_time=end,
        status=status,
        created_at=kwargs.pop("created_at", NOW),
        **kwargs,
    )
    db.add(req)
    db.commit()
    db.refresh(req)
    return req


def caller_for(user):
    return Caller.from_user(user)


def pdf_upload(content=b"%PDF-1.4 test"):
    return UploadedFile(filename="surat.pdf", content_type="application/pdf", content=content)


@pytest.fixture
def user(db):
    return make_user(db)


@pytest.fixture
def admin(db):
    return make_user(db, email="admin@tamvems.id", role=UserRole.ADMIN, division=None)


@pytest.fixture
def vehicle(db):
    return make_vehicle(db)


def hours(n):
    return timedelta(hours=n)
