"""
Lifecycle error taxonomy

Every rejected transition raises one of these. They carry the HTTP status
and the public error code used by ``helpdesk.security.error_handler`` so the
transport layer can translate them without knowing the rules.
"""
from typing import Any, Dict, Optional


class LifecycleError(Exception):
    """Base class for rejected ticket operations"""

    code = "E001"
    status_code = 500

    def __init__(
        self,
        message: str,
        ticket: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.ticket = ticket
        self.context = context or {}


class ValidationError(LifecycleError):
    """Malformed input (empty text, unknown enum value, bad target)"""

    code = "E009"
    status_code = 422


class AuthorizationError(LifecycleError):
    """The actor's role or identity does not permit the operation"""

    code = "E006"
    status_code = 403


class StateConflictError(LifecycleError):
    """
    The ticket's current state does not admit the transition.

    ``ticket`` holds the state the decision was made against so callers can
    refresh and offer valid choices. Re-read before retrying.
    """

    code = "E013"
    status_code = 409


class NotFoundError(LifecycleError):
    """A referenced ticket, user or comment does not exist"""

    code = "E007"
    status_code = 404


__all__ = [
    "LifecycleError",
    "ValidationError",
    "AuthorizationError",
    "StateConflictError",
    "NotFoundError",
]
