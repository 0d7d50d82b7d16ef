"""
Security Module - error handling that never leaks internal details
"""
from .error_handler import (
    ERROR_CODES,
    generate_trace_id,
    lifecycle_exception_handler,
    secure_exception_handler,
    register_exception_handlers,
)

__all__ = [
    "ERROR_CODES",
    "generate_trace_id",
    "lifecycle_exception_handler",
    "secure_exception_handler",
    "register_exception_handlers",
]
