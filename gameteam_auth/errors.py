"""
Error taxonomy for the session engine.

Server errors follow RFC 7807 Problem Details: ``{code, title, status, detail}``.
"""

from typing import Any, Optional


class GameTeamError(Exception):
    """Base class for every error raised by the engine."""
    pass


class NetworkError(GameTeamError):
    """Transport failure. Never retried automatically."""
    pass


class HttpError(GameTeamError):
    """Non-2xx response carrying the status code and the parsed body."""

    def __init__(self, status: int, payload: Any = None, message: Optional[str] = None):
        self.status = status
        self.payload = payload
        problem = payload if isinstance(payload, dict) else {}
        self.code: str = problem.get("code") or f"HTTP-{status}"
        self.title: Optional[str] = problem.get("title")
        self.detail: Optional[str] = problem.get("detail") or problem.get("message")
        super().__init__(message or self.detail or self.title or f"Request failed with status {status}")


class SessionExpiredError(GameTeamError):
    """Refresh failed. The credential has been cleared."""

    def __init__(self, message: str = "Session expired. Please login again."):
        super().__init__(message)


class ValidationError(GameTeamError):
    """Malformed phone, code, profile field or pending-action payload."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class InvalidCredentialsError(HttpError):
    """Wrong OTP code."""
    pass


class CodeExpiredError(HttpError):
    """OTP code past its validity window."""
    pass


class RateLimitedError(HttpError):
    """Too many OTP requests or attempts."""
    pass


class OtpStepError(GameTeamError):
    """OTP operation invoked from a step that does not allow it."""

    def __init__(self, operation: str, step: str):
        self.operation = operation
        self.step = step
        super().__init__(f"{operation} is not allowed in step {step}")


FRIENDLY_ERROR_MESSAGES = {
    "MVP-AUTH-001": "The OTP code you entered is incorrect. Please try again.",
    "MVP-AUTH-002": "This OTP has expired. Please request a new one.",
    "MVP-AUTH-003": "Too many attempts. Please request a new OTP.",
    "MVP-AUTH-004": "Too many OTP requests. Please wait 10 minutes.",
    "MVP-AUTH-006": "Please enter a valid phone number.",
    "MVP-AUTH-010": "Only the match captain can perform this action.",
    "MVP-AUTH-011": "Please login to continue.",
    "MVP-MATCH-001": "Match not found.",
    "MVP-MATCH-002": "This match is full. Try requesting as emergency player.",
    "MVP-MATCH-003": "This match has already been completed.",
    "MVP-MATCH-005": "Cannot perform this action on a completed or cancelled match.",
    "MVP-INVITE-001": "This invite link is invalid or has been deleted.",
    "MVP-INVITE-002": "This invite link has expired.",
    "MVP-EMERGENCY-001": "Emergency request not found.",
    "MVP-EMERGENCY-002": "You already have a pending emergency request.",
    "MVP-EMERGENCY-003": "This emergency request has expired.",
    "MVP-EMERGENCY-004": "Emergency requests are not enabled for this match.",
    "MVP-EMERGENCY-005": "This request has already been processed.",
    "MVP-PARTICIPANT-001": "Participant not found.",
}

DEFAULT_ERROR_MESSAGE = "Something went wrong. Please try again."
NETWORK_ERROR_MESSAGE = "Network error. Please check your connection."

_INVALID_CODES = {"MVP-AUTH-001"}
_EXPIRED_CODES = {"MVP-AUTH-002"}
_RATE_LIMIT_CODES = {"MVP-AUTH-003", "MVP-AUTH-004"}
_VALIDATION_CODES = {"MVP-AUTH-006"}


def friendly_message(error: BaseException) -> str:
    if isinstance(error, HttpError):
        return FRIENDLY_ERROR_MESSAGES.get(error.code) or error.detail or str(error)
    if isinstance(error, NetworkError):
        return NETWORK_ERROR_MESSAGE
    return str(error) or DEFAULT_ERROR_MESSAGE


def classify_auth_error(error: HttpError) -> GameTeamError:
    """Map a generic OTP endpoint failure onto the specific error type."""
    code = error.code
    if code in _INVALID_CODES:
        return InvalidCredentialsError(error.status, error.payload)
    if code in _EXPIRED_CODES:
        return CodeExpiredError(error.status, error.payload)
    if code in _RATE_LIMIT_CODES or error.status == 429:
        return RateLimitedError(error.status, error.payload)
    if code in _VALIDATION_CODES:
        return ValidationError(FRIENDLY_ERROR_MESSAGES[code], field="phone")
    if error.status in (400, 422) and code.startswith("HTTP-"):
        return ValidationError(error.detail or str(error))
    return error
