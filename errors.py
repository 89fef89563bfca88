"""
Domain errors for the ReLive API
================================

Services raise these; ``main.py`` maps them to JSON responses of the form
``{"detail": message, "code": code}`` with the class's ``status_code``.

Usage:
    from errors import NotFoundError

    if request is None:
        raise NotFoundError("Request not found")
"""
from typing import Any, Dict


class ReliveError(Exception):
    """Base exception for all ReLive errors"""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Server error"):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class InternalError(ReliveError):
    """Anything unexpected; the message never carries exception details"""

    status_code = 500
    code = "INTERNAL_ERROR"


# ============================================
# Input
# ============================================

class ValidationError(ReliveError):
    """Malformed, missing or non-positive input"""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message)


# ============================================
# Authentication & Authorization
# ============================================

class AuthError(ReliveError):
    status_code = 401
    code = "AUTH_FAILED"

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message)


class InvalidTokenError(AuthError):
    code = "INVALID_TOKEN"

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class TokenNotFoundError(AuthError):
    """Refresh token is well-formed but has no stored record"""

    code = "TOKEN_NOT_FOUND"

    def __init__(self, message: str = "Refresh token not recognized"):
        super().__init__(message)


class AuthorizationError(ReliveError):
    status_code = 403
    code = "NOT_AUTHORIZED"

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


# ============================================
# Lookup
# ============================================

class NotFoundError(ReliveError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class ProfileNotFoundError(NotFoundError):
    """Principal has no profile row for its role"""

    code = "PROFILE_NOT_FOUND"

    def __init__(self, role: str = "user"):
        super().__init__(f"{role.capitalize()} profile not found")


# ============================================
# State conflicts
# ============================================

class ConflictError(ReliveError):
    status_code = 400
    code = "CONFLICT"


class EmailTakenError(ConflictError):
    status_code = 409
    code = "EMAIL_TAKEN"

    def __init__(self, message: str = "Email already registered"):
        super().__init__(message)


class AlreadyFulfilledError(ConflictError):
    code = "ALREADY_FULFILLED"

    def __init__(self, message: str = "Request is already fulfilled"):
        super().__init__(message)


class UnitMismatchError(ConflictError):
    code = "UNIT_MISMATCH"

    def __init__(self, expected: str, got: str):
        super().__init__(
            f"Unit mismatch: request expects '{expected}', got '{got}'"
        )


class NotOpenError(ConflictError):
    code = "NOT_OPEN"

    def __init__(self, message: str = "Opportunity is not open"):
        super().__init__(message)


class AlreadyFullError(ConflictError):
    code = "ALREADY_FULL"

    def __init__(self, message: str = "Opportunity is already full"):
        super().__init__(message)


class AlreadyAppliedError(ConflictError):
    code = "ALREADY_APPLIED"

    def __init__(self, message: str = "You have already applied to this opportunity"):
        super().__init__(message)
