from typing import Any, Dict, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class Unauthorized(AppException):
    """Actor/role is not permitted to act on this goal in its current state. Never retried."""
    def __init__(self, message: str = "You are not allowed to perform this action", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=403,
            error_code="Unauthorized",
            details=details
        )

class InvalidTransition(AppException):
    """A guard condition failed; the caller must change its input."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="InvalidTransition",
            details=details
        )

class StateConflict(AppException):
    """Lost a race against another transition. Safe to retry with fresh state."""
    def __init__(self, message: str = "Goal was modified concurrently, reload and retry", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="StateConflict",
            details={"retryable": True, **(details or {})}
        )

class InvalidInput(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="InvalidInput",
            details=details
        )

class NotFound(AppException):
    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=404,
            error_code="NotFound",
            details=details
        )

class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )
