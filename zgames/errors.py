"""
zgames/errors.py
Centralized API error handling for the scoring service.

CORE PRINCIPLES:
- All errors follow one structure
- No 500 errors caused by user input
- Errors are user-safe (no stack traces) and machine-readable

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional)
}

HTTP STATUS CODE DISCIPLINE:
- 200: Successful, valid request
- 400: Invalid input / malformed request / bad delta item
- 404: Tournament or game does not resolve
- 409: Concurrency conflict surfaced without retry
- 422: Validation error (Pydantic)
- 429: Rate limit exceeded
- 503: Score recording failed after retries
- 500: NEVER caused by user input (internal only)
"""

import logging
import uuid
from typing import Optional, Dict, Any
from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from zgames.exceptions import ZGamesException

logger = logging.getLogger(__name__)


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    NOT_FOUND = "NOT_FOUND"

    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    SCORE_RECORDING_FAILED = "SCORE_RECORDING_FAILED"

    RATE_LIMITED = "RATE_LIMITED"

    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_MAPPING = {
    400: "Bad Request",
    404: "Not Found",
    409: "Conflict",
    422: "Validation Error",
    429: "Too Many Requests",
    500: "Internal Error",
    503: "Service Unavailable",
}


class ErrorResponse(BaseModel):
    """Standard error response model"""
    success: bool = False
    error: str
    message: str
    code: str
    details: Optional[Dict[str, Any]] = None


class APIError(Exception):
    """Base API exception with consistent structure"""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    @classmethod
    def from_domain(cls, exc: ZGamesException) -> "APIError":
        """Map a domain exception onto the API contract."""
        return cls(
            status_code=exc.status_code,
            error=ERROR_MAPPING.get(exc.status_code, "Error"),
            message=exc.message,
            code=exc.code,
            details=exc.details
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "success": False,
            "error": self.error,
            "message": self.message,
            "code": self.code
        }
        if self.details:
            result["details"] = self.details
        return result

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse"""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class BadRequestError(APIError):
    """400 Bad Request - Invalid input"""
    def __init__(self, message: str, code: str = ErrorCode.INVALID_INPUT, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Bad Request",
            message=message,
            code=code,
            details=details
        )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    logger.warning(f"API error on {request.url.path}: {exc.code} - {exc.message}")
    return exc.to_response()


async def domain_error_handler(request: Request, exc: ZGamesException) -> JSONResponse:
    api_error = APIError.from_domain(exc)
    if api_error.status_code >= 500:
        log_id = str(uuid.uuid4())[:8]
        logger.error(f"[{log_id}] {type(exc).__name__} on {request.url.path}: {exc.message}")
        api_error.details = {**(api_error.details or {}), "log_id": log_id}
    else:
        logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return api_error.to_response()


def register_error_handlers(app) -> None:
    """Attach the structured error handlers to a FastAPI app."""
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(ZGamesException, domain_error_handler)
