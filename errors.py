"""
Application errors

Every failure a route can report is one of these. main.py turns them into
``{"message": ...}`` responses with the matching status code.
"""
from typing import Optional


class AppError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Not authenticated"

    def __init__(self, message: Optional[str] = None, reason: str = "invalid"):
        super().__init__(message)
        # one of: missing, invalid, expired, credentials
        self.reason = reason


class AuthorizationError(AppError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 400
    default_message = "Conflict"


class InternalError(AppError):
    status_code = 500
    default_message = "Server error"
