"""
Secure Error Handler - Safe error handling without exposing internal details

This module provides:
- Error codes mapped to user-friendly messages
- Trace ID generation for log correlation
- Handler translating lifecycle errors into HTTP responses
- Global FastAPI exception handler

Usage:
    from helpdesk.security.error_handler import register_exception_handlers

    register_exception_handlers(app)
"""

import uuid
import logging
from typing import Optional, Dict, Any
from datetime import datetime
from fastapi import FastAPI, Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from helpdesk.lifecycle.errors import LifecycleError, StateConflictError

logger = logging.getLogger(__name__)


# Error codes mapped to user-friendly messages
# These messages are safe to show to end users
ERROR_CODES: Dict[str, str] = {
    "E001": "An internal server error occurred. Please try again later.",
    "E002": "Database connection error. Our team has been notified.",
    "E004": "Invalid request format. Please check your input.",
    "E005": "Authentication failed. Please check your credentials.",
    "E006": "You don't have permission to access this resource.",
    "E007": "The requested resource was not found.",
    "E008": "Too many requests. Please wait before trying again.",
    "E009": "Validation error. Please check the provided data.",
    "E010": "Service temporarily unavailable. Please try again later.",
    "E013": "The ticket changed since you loaded it. Refresh and try again.",
}


def generate_trace_id() -> str:
    """
    Generate a unique trace ID for error correlation.

    Returns:
        A unique trace ID string (UUID4)
    """
    return str(uuid.uuid4())


def _error_body(code: str, message: str, trace_id: str, **extra: Any) -> Dict[str, Any]:
    error = {
        "code": code,
        "message": message,
        "trace_id": trace_id,
        "timestamp": datetime.utcnow().isoformat(),
    }
    error.update(extra)
    return {"success": False, "error": error}


async def lifecycle_exception_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    """
    Translate a rejected ticket operation into an HTTP response.

    Lifecycle messages are written for end users, so they are returned as-is.
    State conflicts also carry the ticket state the decision was made
    against, letting clients refresh without another round trip.
    """
    trace_id = generate_trace_id()

    logger.warning(
        f"{type(exc).__name__} [{exc.code}] trace_id={trace_id}: {exc.message}",
        extra={
            "trace_id": trace_id,
            "status_code": exc.status_code,
            "path": str(request.url.path),
            "method": request.method,
            "context": exc.context,
        }
    )

    extra: Dict[str, Any] = {}
    if isinstance(exc, StateConflictError) and exc.ticket is not None:
        extra["current_state"] = jsonable_encoder(exc.ticket)

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message, trace_id, **extra),
    )


async def secure_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for FastAPI that never exposes internal details.

    Register with: app.add_exception_handler(Exception, secure_exception_handler)

    Args:
        request: FastAPI request
        exc: Exception that was raised

    Returns:
        Secure JSONResponse
    """
    if isinstance(exc, LifecycleError):
        return await lifecycle_exception_handler(request, exc)

    # Handle FastAPI/Starlette HTTPException
    if isinstance(exc, (HTTPException, StarletteHTTPException)):
        trace_id = generate_trace_id()
        code = _http_status_to_error_code(exc.status_code)

        logger.warning(
            f"HTTPException [{code}] trace_id={trace_id}: {exc.detail}",
            extra={
                "trace_id": trace_id,
                "status_code": exc.status_code,
                "path": str(request.url.path),
                "method": request.method,
            }
        )

        message = exc.detail if _is_safe_message(str(exc.detail)) else ERROR_CODES.get(code, ERROR_CODES["E001"])
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(code, message, trace_id),
            headers=getattr(exc, "headers", None),
        )

    # Handle unexpected exceptions - never expose details
    trace_id = generate_trace_id()

    logger.error(
        f"Unhandled exception trace_id={trace_id}",
        extra={
            "trace_id": trace_id,
            "exception_type": type(exc).__name__,
            "path": str(request.url.path),
            "method": request.method,
        },
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content=_error_body("E001", ERROR_CODES["E001"], trace_id),
    )


def _http_status_to_error_code(status_code: int) -> str:
    """Map HTTP status codes to our error codes."""
    mapping = {
        400: "E004",
        401: "E005",
        403: "E006",
        404: "E007",
        409: "E013",
        422: "E009",
        429: "E008",
        500: "E001",
        503: "E010",
    }
    return mapping.get(status_code, "E001")


def _is_safe_message(message: str) -> bool:
    """
    Check if an error message is safe to expose to clients.

    Unsafe patterns include stack traces, file paths, internal errors, etc.
    """
    unsafe_patterns = [
        "Traceback",
        "File \"",
        "line ",
        "Exception:",
        "Error:",
        "at 0x",
        "/usr/",
        "/home/",
        "/var/",
        "pymongo",
        "motor",
        "asyncio",
        "mongodb",
        "localhost",
        "127.0.0.1",
        ".py",
    ]

    message_lower = message.lower()
    return not any(pattern.lower() in message_lower for pattern in unsafe_patterns)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the lifecycle, HTTP and catch-all handlers to ``app``"""
    app.add_exception_handler(LifecycleError, lifecycle_exception_handler)
    app.add_exception_handler(StarletteHTTPException, secure_exception_handler)
    app.add_exception_handler(Exception, secure_exception_handler)


__all__ = [
    'ERROR_CODES',
    'generate_trace_id',
    'lifecycle_exception_handler',
    'secure_exception_handler',
    'register_exception_handlers',
]
