# investdesk/errors.py
"""
Service-level errors.

Services raise these; the HTTP layer (see ``investdesk.register_error_handlers``)
turns each one into a JSON response. None of them is fatal: every error is a
rejected operation that leaves stored state untouched.
"""

from __future__ import annotations

from typing import Any, Mapping


class ServiceError(Exception):
    status_code = 400
    message = "The request could not be completed."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message}


class ValidationError(ServiceError):
    """Field-level validation failure. ``errors`` maps field -> list of messages."""

    status_code = 422
    message = "The given data was invalid."

    def __init__(
        self,
        errors: Mapping[str, list[str]],
        *,
        old: Mapping[str, Any] | None = None,
        message: str | None = None,
    ):
        super().__init__(message)
        self.errors = {k: list(v) for k, v in errors.items()}
        # Never echo secrets back to the form.
        self.old = {k: v for k, v in (old or {}).items() if "password" not in k}

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "errors": self.errors, "old": self.old}


class AuthorizationError(ServiceError):
    status_code = 403
    message = "This action is unauthorized."


class NotFoundError(ServiceError):
    status_code = 404
    message = "Record not found."

    @classmethod
    def for_entity(cls, entity: str) -> "NotFoundError":
        return cls(f"{entity} not found.")


class AllocationFailed(ServiceError):
    status_code = 409
    message = "Investments could not be recorded. No changes were saved; please retry."
