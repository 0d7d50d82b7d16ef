"""
JWT token handler for API authentication
"""
import jwt
from datetime import datetime, timedelta
from typing import Optional
from helpdesk.config import settings
import logging

logger = logging.getLogger(__name__)


def create_jwt_token(
    user_id: str,
    email: str,
    role: str,
    name: Optional[str] = None,
) -> str:
    """
    Create JWT token for API authentication

    Args:
        user_id: User ID
        email: User email
        role: User role (admin, manager, agent, customer)
        name: User's display name (optional)

    Returns:
        JWT token string
    """
    now = datetime.utcnow()
    payload = {
        "user_id": user_id,
        "email": email,
        "name": name or email,
        "role": getattr(role, "value", role),
        "exp": now + timedelta(hours=settings.jwt_expiration_hours),
        "iat": now,
    }

    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    logger.info(f"JWT token created for user {user_id}")
    return token


def verify_jwt_token(token: str) -> Optional[dict]:
    """
    Verify and decode JWT token

    Args:
        token: JWT token string

    Returns:
        Decoded payload if valid, None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
        logger.debug(f"JWT token verified for user {payload.get('user_id')}")
        return payload
    except jwt.ExpiredSignatureError:
        logger.warning("JWT token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid JWT token: {str(e)}")
        return None


def refresh_jwt_token(token: str) -> Optional[str]:
    """
    Refresh JWT token if still valid

    Args:
        token: Current JWT token

    Returns:
        New JWT token if valid, None if invalid
    """
    payload = verify_jwt_token(token)
    if not payload:
        return None

    return create_jwt_token(
        user_id=payload["user_id"],
        email=payload["email"],
        role=payload["role"],
        name=payload.get("name"),
    )
