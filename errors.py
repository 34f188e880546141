"""
Application error types

Services raise these; the exception handlers in main.py turn them into the
standard error envelope with the matching HTTP status.
"""
from typing import Any, List, Optional


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation failed", details: Any = None, code: Optional[str] = None):
        super().__init__(message, code=code, details=details)

    @classmethod
    def from_errors(cls, errors: List[str]) -> "ValidationError":
        return cls(", ".join(errors), details=list(errors))


class BusinessRuleError(AppError):
    status_code = 400
    code = "BUSINESS_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message, code=code)


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION_REQUIRED"

    def __init__(self, message: str = "Authentication required", code: Optional[str] = None):
        super().__init__(message, code=code)

    @classmethod
    def missing_token(cls):
        return cls("Authentication token is missing", "MISSING_TOKEN")

    @classmethod
    def invalid_token(cls):
        return cls("Invalid authentication token", "INVALID_TOKEN")

    @classmethod
    def token_expired(cls):
        return cls("Authentication token has expired", "TOKEN_EXPIRED")


class AuthorizationError(AppError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Access denied", code: Optional[str] = None):
        super().__init__(message, code=code)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", code: Optional[str] = None):
        super().__init__(f"{resource} not found", code=code)
        self.resource = resource


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"

    def __init__(self, message: str = "Resource already exists", code: Optional[str] = None):
        super().__init__(message, code=code)

    @classmethod
    def email_exists(cls):
        return cls("Email already exists", "EMAIL_EXISTS")


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: int = 60):
        super().__init__("Too many requests. Please try again later.", details={"retryAfter": retry_after})
        self.retry_after = retry_after


class DatabaseError(AppError):
    code = "DATABASE_ERROR"

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(message)


class InternalError(AppError):
    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)
