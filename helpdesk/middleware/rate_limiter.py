"""
Rate Limiting

Fingerprint-based keys combine IP, User-Agent and a prefix of the bearer
token, so several users behind one proxy don't share a bucket.
"""
import hashlib
import logging
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)


# Rate limits by operation type
RATE_LIMITS = {
    "default": "60/minute",
    "read": "120/minute",       # Listing and fetching tickets
    "write": "30/minute",       # Ticket transitions and comments
    "auth": "10/minute",        # Login/register (brute-force protection)
    "admin": "20/minute",       # User management
    "critical": "5/minute",     # Hard deletes
}


def get_rate_limit_key(request: Request) -> str:
    """
    Generate a rate limit key based on client fingerprint.

    Combines:
    - IP address (primary identifier)
    - User-Agent (first 50 chars)
    - Bearer token tail (last 16 chars, the signature part)

    Args:
        request: FastAPI request object

    Returns:
        MD5 hash of the combined fingerprint
    """
    ip = get_remote_address(request)
    user_agent = request.headers.get("User-Agent", "")[:50]
    token = request.headers.get("Authorization", "")[-16:]

    fingerprint = f"{ip}:{user_agent}:{token}"
    hashed_key = hashlib.md5(fingerprint.encode()).hexdigest()

    logger.debug(f"Rate limit key generated for IP {ip}: {hashed_key[:8]}...")

    return hashed_key


def get_rate_limit(operation_type: str) -> str:
    """
    Get the rate limit string for a specific operation type.

    Args:
        operation_type: Type of operation (e.g., 'read', 'write', 'auth')

    Returns:
        Rate limit string (e.g., '30/minute')
    """
    return RATE_LIMITS.get(operation_type, RATE_LIMITS["default"])


# Shared by every router; main.py registers it on app.state
limiter = Limiter(key_func=get_rate_limit_key, default_limits=[RATE_LIMITS["default"]])
