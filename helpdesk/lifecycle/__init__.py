"""
Ticket lifecycle: pure transition engine, authorization matrix and the
async service that persists transitions
"""
from . import engine
from .engine import Transition
from .errors import (
    LifecycleError,
    ValidationError,
    AuthorizationError,
    StateConflictError,
    NotFoundError,
)
from .permissions import Operation, Rule, Scope, PERMISSIONS, authorize, get_rule, is_allowed

__all__ = [
    "engine",
    "Transition",
    "LifecycleError",
    "ValidationError",
    "AuthorizationError",
    "StateConflictError",
    "NotFoundError",
    "Operation",
    "Rule",
    "Scope",
    "PERMISSIONS",
    "authorize",
    "get_rule",
    "is_allowed",
]
