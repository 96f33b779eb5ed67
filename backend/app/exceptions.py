"""
API error taxonomy

Every failure a handler reports is an APIError carrying an HTTP status, a
stable machine-readable code and a human-readable message. The exception
handlers in main.py render them as {"success": false, "error", "code"}.
"""
from typing import Any, Dict, Optional

from fastapi import status


class APIError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None, **extra: Any):
        self.message = message or self.message
        if code:
            self.code = code
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"success": False, "error": self.message, "code": self.code}
        body.update(self.extra)
        return body


class ValidationError(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"
    message = "Invalid request"


class AuthError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    message = "Authentication required"


class InvalidToken(AuthError):
    code = "invalid_token"
    message = "Invalid or missing token"


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    message = "Incorrect username or password"


class Forbidden(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "Access denied"


class NotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    message = "Not found"


class ConflictError(APIError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    message = "Resource already exists"


class UpstreamError(APIError):
    code = "upstream_error"
    message = "Upstream service failure"


# OTP verification outcomes

class OTPError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "otp_error"


class OTPNotFound(OTPError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "otp_not_found"
    message = "OTP not found or expired. Please request a new one."


class OTPExpired(OTPError):
    code = "otp_expired"
    message = "OTP has expired. Please request a new one."


class OTPTooManyAttempts(OTPError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "otp_too_many_attempts"
    message = "Too many attempts. OTP invalidated."


class OTPMismatch(OTPError):
    code = "otp_mismatch"

    def __init__(self, attempts: int):
        super().__init__(f"Invalid OTP. Attempts: {attempts}", attempts=attempts)
        self.attempts = attempts
