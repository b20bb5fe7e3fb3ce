"""
Error taxonomy shared by the authentication, authorization and assessment services.

Every caller-correctable failure is a ``SmartEduError`` subclass carrying a
stable ``code`` and the HTTP status it surfaces as. Anything that is not a
``SmartEduError`` is an unexpected failure and maps to 500.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FieldError:
    """One invalid input field."""
    field: str
    message: str
    code: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class SmartEduError(Exception):
    """Base class for all domain errors."""

    code: str = "ERROR"
    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[FieldError]] = None):
        self.message = message or self.default_message
        self.errors: List[FieldError] = list(errors or [])
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
        }
        if self.errors:
            body["details"] = [e.to_dict() for e in self.errors]
        return body


# ============= Input =============

class ValidationError(SmartEduError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Validation failed"


class WeakPassword(SmartEduError):
    code = "WEAK_PASSWORD"
    status_code = 400
    default_message = "New password is too weak"


# ============= Authentication =============

class InvalidCredentials(SmartEduError):
    code = "INVALID_CREDENTIALS"
    status_code = 401
    default_message = "Invalid email or password"


class AccountDeactivated(SmartEduError):
    code = "ACCOUNT_DEACTIVATED"
    status_code = 403
    default_message = "Account is deactivated"


class EmailExists(SmartEduError):
    code = "EMAIL_EXISTS"
    status_code = 409
    default_message = "Email already exists"


class InvalidSession(SmartEduError):
    code = "INVALID_SESSION"
    status_code = 401
    default_message = "Invalid or expired session"


class InvalidRefreshToken(SmartEduError):
    code = "INVALID_REFRESH_TOKEN"
    status_code = 401
    default_message = "Invalid or expired refresh token"


class InvalidCurrentPassword(SmartEduError):
    code = "INVALID_CURRENT_PASSWORD"
    status_code = 400
    default_message = "Current password is incorrect"


class TokenError(SmartEduError):
    """Base for JWT verification failures."""
    code = "INVALID_TOKEN"
    status_code = 401
    default_message = "Invalid token"


class TokenExpired(TokenError):
    code = "TOKEN_EXPIRED"
    default_message = "Token expired"


class InvalidToken(TokenError):
    code = "INVALID_TOKEN"
    default_message = "Invalid token"


class TokenClaimsMismatch(TokenError):
    code = "TOKEN_CLAIMS_MISMATCH"
    default_message = "Token issuer or audience mismatch"


# ============= Authorization / lookup =============

class Unauthorized(SmartEduError):
    code = "UNAUTHORIZED"
    status_code = 403
    default_message = "Not allowed to access this resource"


class NotFound(SmartEduError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


# ============= Attempt lifecycle =============

class NotPublished(SmartEduError):
    code = "NOT_PUBLISHED"
    status_code = 400
    default_message = "Assessment is not published"


class MaxAttemptsExceeded(SmartEduError):
    code = "MAX_ATTEMPTS_EXCEEDED"
    status_code = 400
    default_message = "Maximum attempts exceeded"


class ActiveAttemptExists(SmartEduError):
    code = "ACTIVE_ATTEMPT_EXISTS"
    status_code = 409
    default_message = "You already have an active attempt for this assessment"


class AttemptNotActive(SmartEduError):
    code = "ATTEMPT_NOT_ACTIVE"
    status_code = 400
    default_message = "Assessment attempt is not active"


# ============= Internal =============

class HashingError(SmartEduError):
    code = "HASHING_ERROR"
    status_code = 500
    default_message = "Password hashing failed"


class ConfigurationError(SmartEduError):
    code = "CONFIGURATION_ERROR"
    status_code = 500
    default_message = "Invalid configuration"


class InternalError(SmartEduError):
    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "An internal error occurred"
