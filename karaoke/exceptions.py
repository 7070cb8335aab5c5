"""
Application exceptions

Every error raised by the services carries an HTTP status code and a
machine readable error code so the blueprints can render it as JSON.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes returned to API clients"""
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_ID = "INVALID_ID"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    PRICE_NOT_CONFIGURED = "PRICE_NOT_CONFIGURED"
    CONFLICT = "CONFLICT"
    GIFT_OUT_OF_STOCK = "GIFT_OUT_OF_STOCK"
    PRINT_FAILED = "PRINT_FAILED"


class BaseAppException(Exception):
    """
    Base class for all application exceptions.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "message": self.message,
                "code": self.error_code.value,
                "details": self.details,
                "type": self.__class__.__name__
            }
        }

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', error_code='{self.error_code.value}')"


class NotFoundError(BaseAppException):
    """A requested record (schedule, room, price, bill...) does not exist"""

    def __init__(
        self,
        resource_type: str = "Resource",
        resource_id: Optional[Any] = None,
        message: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND
    ):
        if not message:
            message = f"{resource_type} not found"
            if resource_id is not None:
                message += f" (ID: {resource_id})"

        details = {
            "resource_type": resource_type,
            "resource_id": str(resource_id) if resource_id is not None else None
        }
        super().__init__(message, error_code, details, 404)


class BadRequestError(BaseAppException):
    """Malformed ids, invalid date ranges, missing fields"""

    def __init__(
        self,
        message: str = "Invalid request",
        error_code: ErrorCode = ErrorCode.INVALID_REQUEST,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details, 400)


class ConflictError(BaseAppException):
    """Concurrent update lost the race"""

    def __init__(
        self,
        message: str = "Conflicting update",
        error_code: ErrorCode = ErrorCode.CONFLICT,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details, 409)


class InternalError(BaseAppException):
    """Unexpected store or collaborator failure"""

    def __init__(
        self,
        message: str = "Internal server error",
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details, 500)


def parse_id(value: Any, name: str = "id") -> int:
    """Parse a record id coming from a URL or request body."""
    if isinstance(value, bool):
        raise BadRequestError(f"Invalid {name} format", ErrorCode.INVALID_ID, {name: value})
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise BadRequestError(f"Invalid {name} format", ErrorCode.INVALID_ID, {name: value})
    if parsed <= 0:
        raise BadRequestError(f"Invalid {name} format", ErrorCode.INVALID_ID, {name: value})
    return parsed
