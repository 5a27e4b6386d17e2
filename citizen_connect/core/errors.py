"""
Error taxonomy for CitizenConnect.

Services raise these; the handlers registered in main.py turn them into the
JSON envelope {success: false, message, apiVersion}. Each class carries the
HTTP status it maps to so routes never translate errors by hand.
"""

from typing import Any, Dict, Optional


class CitizenConnectError(Exception):
    """Base class for every error the API reports to clients."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)


class ValidationError(CitizenConnectError):
    """Missing or malformed required fields."""
    status_code = 400
    default_message = "Validation failed"


class Unauthorized(CitizenConnectError):
    """Missing, invalid or expired identity."""
    status_code = 401
    default_message = "Authentication required"


class Forbidden(CitizenConnectError):
    """Valid identity without the role or ownership the operation needs."""
    status_code = 403
    default_message = "Access denied"


class NotFound(CitizenConnectError):
    """Resource absent, or hidden from a caller who may not read it."""
    status_code = 404
    default_message = "Resource not found"


class Conflict(CitizenConnectError):
    """Duplicate email on registration."""
    status_code = 400
    default_message = "Resource already exists"


class InvalidTransition(CitizenConnectError):
    """Status change not present in the transition table."""
    status_code = 400
    default_message = "Invalid status transition"


class StoreUnavailable(CitizenConnectError):
    """Backing store timed out or refused the connection. Safe to retry."""
    status_code = 503
    default_message = "Data store unavailable, please retry"


class AuthError(Unauthorized):
    """Session token could not be accepted."""
    default_message = "Invalid or expired token"


class InvalidToken(AuthError):
    default_message = "Invalid token"


class ExpiredToken(AuthError):
    default_message = "Token has expired"


class InvalidOrExpiredResetToken(ValidationError):
    default_message = "Invalid or expired reset token"


class ConfigError(RuntimeError):
    """Configuration problem detected at startup. Never reaches a client."""
