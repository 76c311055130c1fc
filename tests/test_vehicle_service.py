# tests/test_vehicle_service.py
"""Unit tests for fleet management."""

import pytest
from unittest.mock import AsyncMock, patch
from app.models.vehicle import FuelType
from app.services import vehicle_service
from app.services.errors import Conflict, NotFound, PermissionDenied, ValidationFailed
from app.services.storage_service import UploadedFile
from conftest import make_vehicle, caller_for


def vehicle_form(**overrides):
    data = {"name": "Innova", "plate": " b 1 tam ", "fuel_type": "diesel", "year": "2022"}
    data.update(overrides)
    return data


class TestRegisterVehicle:
    @pytest.mark.asyncio
    async def test_plate_and_fuel_are_normalised(self, db, admin):
        vehicle = await vehicle_service.register_vehicle(db, caller_for(admin), vehicle_form())
        assert vehicle.plate == "B 1 TAM"
        assert vehicle.fuel_type == FuelType.DIESEL
        assert vehicle.image is None

    @pytest.mark.asyncio
    async def test_requires_admin(self, db, user):
        with pytest.raises(PermissionDenied):
            await vehicle_service.register_vehicle(db, caller_for(user), vehicle_form())

    @pytest.mark.asyncio
    async def test_plate_charset(self, db, admin):
        with pytest.raises(ValidationFailed):
            await vehicle_service.register_vehicle(db, caller_for(admin), vehicle_form(plate="B-1-TAM"))

    @pytest.mark.asyncio
    async def test_year_must_be_four_digits(self, db, admin):
        with pytest.raises(ValidationFailed):
            await vehicle_service.register_vehicle(db, caller_for(admin), vehicle_form(year="22"))

    @pytest.mark.asyncio
    async def test_duplicate_plate(self, db, admin):
        make_vehicle(db, plate="B 1 TAM")
        with pytest.raises(Conflict) as exc:
            await vehicle_service.register_vehicle(db, caller_for(admin), vehicle_form())
        assert exc.value.field == "plate"

    @pytest.mark.asyncio
    async def test_image_is_uploaded(self, db, admin):
        image = UploadedFile(filename="car.png", content_type="image/png", content=b"\x89PNG")
        with patch("app.services.vehicle_service.upload_file", new_callable=AsyncMock) as mock_upload:
            mock_upload.return_value = "https://cdn.example/vehicles/car.png"
            vehicle = await vehicle_service.register_vehicle(db, caller_for(admin), vehicle_form(), image)
        assert vehicle.image == "https://cdn.example/vehicles/car.png"

    @pytest.mark.asyncio
    async def test_pdf_is_not_a_vehicle_photo(self, db, admin):
        image = UploadedFile(filename="car.pdf", content_type="application/pdf", content=b"%PDF")
        with pytest.raises(ValidationFailed):
            await vehicle_service.register_vehicle(db, caller_for(admin), vehicle_form(), image)


class TestLookup:
    def test_plate_lookup_is_case_insensitive(self, db, vehicle):
        assert vehicle_service.plate_exists(db, "b 1234 xyz")
        assert not vehicle_service.plate_exists(db, "B 0000 XYZ")

    def test_get_unknown_vehicle(self, db):
        with pytest.raises(NotFound):
            vehicle_service.get_vehicle(db, 42)

    def test_deactivate(self, db, admin, vehicle):
        assert vehicle_service.deactivate_vehicle(db, caller_for(admin), vehicle.id).is_active is False
        assert vehicle_service.list_active_vehicles(db) == []
        with pytest.raises(Conflict):
            vehicle_service.deactivate_vehicle(db, caller_for(admin), vehicle.id)
