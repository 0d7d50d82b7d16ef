"""
CORS Configuration

Production drops localhost origins so a leftover development entry in
CORS_ALLOWED_ORIGINS can't open the API to a local page.
"""
import logging
from typing import List

from helpdesk.config import settings

logger = logging.getLogger(__name__)

_LOCAL_MARKERS = ("localhost", "127.0.0.1", "0.0.0.0")


def _is_local(origin: str) -> bool:
    lowered = origin.lower()
    return any(marker in lowered for marker in _LOCAL_MARKERS)


def get_cors_origins() -> List[str]:
    """
    Allowed CORS origins for the current environment

    Origins are normalized (no trailing slash, no duplicates). Outside
    production they are returned as configured.

    Raises:
        ValueError: Production with only local origins configured
    """
    origins: List[str] = []
    for origin in settings.cors_allowed_origins:
        origin = origin.strip().rstrip("/")
        if origin and origin not in origins:
            origins.append(origin)

    if settings.environment != "production":
        return origins

    remote = [origin for origin in origins if not _is_local(origin)]
    if not remote:
        raise ValueError(
            "No valid CORS origins for production. "
            "Configure the helpdesk frontend domain(s) in CORS_ALLOWED_ORIGINS."
        )

    dropped = sorted(set(origins) - set(remote))
    if dropped:
        logger.warning(f"CORS: ignoring local origins in production: {dropped}")

    return remote
