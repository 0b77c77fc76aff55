"""
Application error taxonomy
Each error carries the HTTP status it is reported with
"""

from typing import Dict, Optional


class AppError(Exception):
    """Base class for errors mapped to a `{success: false, message}` response"""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class ValidationError(AppError):
    """Missing or malformed input"""
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(AppError):
    """Missing, invalid or expired credentials"""
    status_code = 401
    default_message = "Could not validate credentials"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(AppError):
    """Role or ownership mismatch"""
    status_code = 403
    default_message = "Not enough permissions"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(AppError):
    """Duplicate unique key"""
    status_code = 400
    default_message = "Resource already exists"
