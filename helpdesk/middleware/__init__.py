"""
Middleware for authentication, authorization and request handling
"""
from .auth import get_current_actor, require_roles
from .rate_limiter import get_rate_limit_key, RATE_LIMITS, get_rate_limit, limiter
from .cors import get_cors_origins

__all__ = [
    # Authentication
    "get_current_actor",
    "require_roles",
    # Rate Limiting
    "get_rate_limit_key",
    "RATE_LIMITS",
    "get_rate_limit",
    "limiter",
    # CORS
    "get_cors_origins",
]
