# app/services/errors.py
"""
Service-layer error taxonomy.
Services raise these; app.main maps each class to an HTTP status and a JSON
body of the form {"detail": ..., "error_code": ..., "details": [...]}.
"""

from typing import Optional

from pydantic import ValidationError


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, error_code: Optional[str] = None,
                 details: Optional[list[dict]] = None, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details
        self.field = field

    def to_dict(self) -> dict:
        body = {"detail": self.message}
        if self.error_code:
            body["error_code"] = self.error_code
        if self.field:
            body["field"] = self.field
        if self.details:
            body["details"] = self.details
        return body


class ValidationFailed(ServiceError):
    status_code = 400


class AuthenticationRequired(ServiceError):
    status_code = 401


class PermissionDenied(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    status_code = 409


class UpstreamError(ServiceError):
    status_code = 502


def field_errors(exc: ValidationError) -> list[dict]:
    """Flatten a pydantic ValidationError into [{"field", "message"}]."""
    return [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]


def invalid(field: str, message: str) -> ValidationFailed:
    return ValidationFailed("Invalid data", details=[{"field": field, "message": message}])
