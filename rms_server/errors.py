"""
rms_server/errors.py
Centralized error taxonomy

Every component failure is resolved to one ErrorKind before it crosses the
HTTP boundary. Only a short human-readable message and an optional details
string leave the process; stack traces and driver errors stay in the log.

ERROR RESPONSE STRUCTURE:
{
    "error": "Human-readable description",
    "code": "conflict",
    "details": "optional string"
}

HTTP STATUS CODE DISCIPLINE:
- 400: invalid input
- 401: no session / wrong setup token
- 403: authenticated but not allowed
- 404: unknown API path
- 409: resource already exists
- 500: internal failure (never caused by user input)
- 503: feature not configured
"""
import logging
import uuid
from typing import Optional, Dict, Any

from fastapi import status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorKind:
    """Machine-readable failure kinds"""

    INVALID = "invalid"
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"
    INTERNAL = "internal"


STATUS_BY_KIND: Dict[str, int] = {
    ErrorKind.INVALID: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ServiceError(Exception):
    """Base failure raised by registry, bootstrap and provisioning services"""

    kind: str = ErrorKind.INTERNAL

    def __init__(self, message: str, details: Optional[str] = None, kind: Optional[str] = None):
        if kind:
            self.kind = kind
        self.message = message
        self.details = details
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        result = {"error": self.message, "code": self.kind}
        if self.details:
            result["details"] = self.details
        return result

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class InvalidError(ServiceError):
    """400 - payload failed validation"""
    kind = ErrorKind.INVALID


class UnauthenticatedError(ServiceError):
    """401 - no resolvable session"""
    kind = ErrorKind.UNAUTHENTICATED

    def __init__(self, message: str = "Authentication required", details: Optional[str] = None):
        super().__init__(message, details)


class UnauthorizedError(ServiceError):
    """401 - shared secret did not match"""
    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(ServiceError):
    """403 - caller lacks the required role"""
    kind = ErrorKind.FORBIDDEN

    def __init__(self, message: str = "Admin access required", details: Optional[str] = None):
        super().__init__(message, details)


class NotFoundError(ServiceError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(ServiceError):
    """409 - resource already exists"""
    kind = ErrorKind.CONFLICT


class UnavailableError(ServiceError):
    """503 - feature not configured on this installation"""
    kind = ErrorKind.UNAVAILABLE


class InternalError(ServiceError):
    """500 - use only for true internal failures"""
    kind = ErrorKind.INTERNAL

    def __init__(self, message: str = "An internal error occurred", details: Optional[str] = None):
        super().__init__(message, details)


def internal_error_response(error: Exception, context: str = "") -> JSONResponse:
    """Log an unexpected exception under a short id and return a safe 500"""
    log_id = str(uuid.uuid4())[:8]
    logger.error(f"[{log_id}] Internal error in {context}: {type(error).__name__}: {str(error)}")
    return InternalError(details=f"log id {log_id}").to_response()


def format_validation_error(exc) -> str:
    """Flatten a pydantic ValidationError into one human-readable line."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        message = error.get("msg", "invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)
