# tests/test_user_service.py
"""Unit tests for registration, login and account management."""

import pytest
from werkzeug.security import check_password_hash
from app.models.user import User, UserRole
from app.services import user_service
from app.services.auth_service import authenticate
from app.services.errors import (
    AuthenticationRequired, Conflict, NotFound, PermissionDenied, ValidationFailed,
)
from conftest import make_user, make_vehicle, make_request, caller_for, NOW, hours


def registration(**overrides):
    data = {
        "name": "Budi Santoso",
        "email": "Budi@Tamvems.id",
        "employee_id": "198801012010",
        "phone": "08123456789",
        "division": "C",
        "password": "rahasia1",
        "confirm_password": "rahasia1",
    }
    data.update(overrides)
    return data


class TestRegistration:
    def test_registers_user_with_lowercase_email(self, db):
        user = user_service.register_user(db, registration())
        assert user.email == "budi@tamvems.id"
        assert user.role == UserRole.USER
        assert user.division == "C"
        assert check_password_hash(user.password_hash, "rahasia1")

    def test_password_confirmation_must_match(self, db):
        with pytest.raises(ValidationFailed) as exc:
            user_service.register_user(db, registration(confirm_password="different"))
        assert exc.value.details[0]["field"] == "confirm_password"

    def test_unknown_division_rejected(self, db):
        with pytest.raises(ValidationFailed):
            user_service.register_user(db, registration(division="Z"))

    def test_duplicate_email(self, db):
        user_service.register_user(db, registration())
        with pytest.raises(Conflict) as exc:
            user_service.register_user(db, registration(employee_id="other"))
        assert exc.value.field == "email"

    def test_duplicate_employee_id(self, db):
        user_service.register_user(db, registration())
        with pytest.raises(Conflict) as exc:
            user_service.register_user(db, registration(email="another@tamvems.id"))
        assert exc.value.field == "employee_id"

    def test_admin_registration_needs_secret_key(self, db):
        data = registration(role="ADMIN", password="rahasia123", secret_key="WRONG1")
        with pytest.raises(ValidationFailed) as exc:
            user_service.register_user(db, data)
        assert exc.value.details[0]["field"] == "secret_key"

    def test_admin_registration_with_secret_key(self, db):
        data = registration(role="admin", password="rahasia123", secret_key="ABC123")
        user = user_service.register_user(db, data)
        assert user.role == UserRole.ADMIN
        assert user.division is None


class TestAuthenticate:
    def test_valid_login(self, db, user):
        assert authenticate(db, {"email": "USER@tamvems.id", "password": "secret1"}).id == user.id

    def test_unknown_email(self, db):
        with pytest.raises(AuthenticationRequired) as exc:
            authenticate(db, {"email": "ghost@tamvems.id", "password": "secret1"})
        assert exc.value.error_code == "USER_NOT_FOUND"

    def test_inactive_account(self, db):
        make_user(db, email="sleepy@tamvems.id", is_active=False)
        with pytest.raises(AuthenticationRequired) as exc:
            authenticate(db, {"email": "sleepy@tamvems.id", "password": "secret1"})
        assert exc.value.error_code == "USER_NOT_ACTIVE"

    def test_wrong_password(self, db, user):
        with pytest.raises(AuthenticationRequired) as exc:
            authenticate(db, {"email": user.email, "password": "wrong-one"})
        assert exc.value.error_code == "INVALID_PASSWORD"

    def test_malformed_body(self, db):
        with pytest.raises(ValidationFailed) as exc:
            authenticate(db, {"email": "not-an-email"})
        assert exc.value.error_code == "VALIDATION_ERROR"


class TestAdminUserManagement:
    def test_list_users_only_active_plain_users(self, db, user, admin):
        make_user(db, email="gone@tamvems.id", is_active=False)
        users = user_service.list_users(db, caller_for(admin))
        assert [u.email for u in users] == [user.email]

    def test_list_users_counts_requests(self, db, user, admin):
        vehicle = make_vehicle(db)
        make_request(db, vehicle, user, NOW, NOW + hours(1))
        make_request(db, vehicle, user, NOW + hours(2), NOW + hours(3), created_by_id=admin.id)
        out = user_service.get_user(db, caller_for(admin), user.id)
        assert out.vehicle_requests_count == 2
        assert out.created_requests_count == 1

    def test_list_users_requires_admin(self, db, user):
        with pytest.raises(PermissionDenied):
            user_service.list_users(db, caller_for(user))

    def test_get_unknown_user(self, db, admin):
        with pytest.raises(NotFound):
            user_service.get_user(db, caller_for(admin), 404)

    def test_password_settings_reset_password(self, db, user, admin):
        out = user_service.update_password_settings(
            db, caller_for(admin), user.id, {"enable_password_changes": True, "default_password": "mulai123"}
        )
        assert out.enable_password_changes is True
        assert check_password_hash(db.get(User, user.id).password_hash, "mulai123")

    def test_password_settings_need_strict_bool(self, db, user, admin):
        with pytest.raises(ValidationFailed):
            user_service.update_password_settings(
                db, caller_for(admin), user.id, {"enable_password_changes": "yes", "default_password": "mulai123"}
            )

    def test_password_settings_not_for_admins(self, db, admin):
        other_admin = make_user(db, email="admin2@tamvems.id", role=UserRole.ADMIN)
        with pytest.raises(PermissionDenied):
            user_service.update_password_settings(
                db, caller_for(admin), other_admin.id, {"enable_password_changes": True, "default_password": "mulai123"}
            )

    def test_deactivate_then_delete(self, db, user, admin):
        user_service.modify_user(db, caller_for(admin), user.id, {"action": "deactivate"})
        deleted = user_service.modify_user(db, caller_for(admin), user.id, {"action": "delete"})
        assert deleted.is_active is False
        assert deleted.deleted_at is not None

    def test_delete_requires_deactivation(self, db, user, admin):
        with pytest.raises(Conflict):
            user_service.modify_user(db, caller_for(admin), user.id, {"action": "delete"})

    def test_cannot_modify_self(self, db, admin):
        with pytest.raises(PermissionDenied):
            user_service.modify_user(db, caller_for(admin), admin.id, {"action": "deactivate"})

    def test_unknown_action(self, db, user, admin):
        with pytest.raises(ValidationFailed):
            user_service.modify_user(db, caller_for(admin), user.id, {"action": "ban"})


class TestProfile:
    def test_update_profile(self, db, user):
        updated = user_service.update_profile(db, caller_for(user), {"name": "New Name", "phone": "0811", "division": "K"})
        assert updated.name == "New Name"
        assert updated.division == "K"

    def test_password_change_needs_permission(self, db, user):
        with pytest.raises(PermissionDenied):
            user_service.change_password(db, caller_for(user), {"new_password": "baru123"})

    def test_password_change_is_one_shot(self, db):
        user = make_user(db, email="allowed@tamvems.id", enable_password_changes=True)
        user_service.change_password(db, caller_for(user), {"new_password": "baru123"})
        refreshed = db.get(User, user.id)
        assert check_password_hash(refreshed.password_hash, "baru123")
        assert refreshed.enable_password_changes is False
