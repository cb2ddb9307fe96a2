from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class for errors that are reported to API clients."""

    status_code = 500
    message = "Something went wrong"

    def __init__(self, message: str | None = None, *, errors: list[dict] | None = None):
        self.message = message or type(self).message
        self.errors = errors or []
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(AppError):
    status_code = 400
    message = "Validation failed"


class AuthenticationError(AppError):
    status_code = 401
    message = "Authentication failed"


class AuthorizationError(AppError):
    status_code = 403
    message = "You do not have permission to perform this action"


class NotFoundError(AppError):
    status_code = 404
    message = "Entry not found"


class ConflictError(AppError):
    status_code = 409
    message = "Resource already exists"


class IdentifierExhausted(AppError):
    status_code = 503
    message = "Could not assign an application number. Please retry your submission."


class StorageUnavailable(AppError):
    status_code = 503
    message = "Storage is temporarily unavailable. Please try again later."


class TemplateMissing(AppError):
    status_code = 500
    message = "Form template is not available"


class RenderIOError(AppError):
    status_code = 500
    message = "Failed to generate the form"


class IdentifierCollision(Exception):
    """Raised when an insert loses on the entry_id unique index."""

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"entry_id {entry_id} already taken")
