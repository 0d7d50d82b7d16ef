"""
JWT Bearer Authentication

Turns the Authorization header into the ``Actor`` every ticket operation
receives. The user record is re-read on each request so deactivated users
and role changes take effect without waiting for the token to expire.
"""
from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import logging

from helpdesk.database import user_operations
from helpdesk.models import Actor, Role
from helpdesk.utils.jwt_handler import verify_jwt_token
from helpdesk.utils.monitoring import set_user_context

logger = logging.getLogger(__name__)

# Define bearer scheme
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    """
    Validates the bearer token and returns the authenticated actor.

    Args:
        credentials: Parsed Authorization header

    Returns:
        Actor for the token's user

    Raises:
        HTTPException 401: Missing, invalid or expired token, or unknown user
        HTTPException 403: Account deactivated
    """
    if credentials is None or not credentials.credentials:
        logger.warning("API request without bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing token. Include an Authorization: Bearer header.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_jwt_token(credentials.credentials)
    if not payload or "user_id" not in payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await user_operations.find_user_by_id(payload["user_id"])
    if user is None:
        logger.warning(f"Token for unknown user: {payload['user_id']}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User no longer exists",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        logger.warning(f"Inactive user attempted access: {user.user_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    set_user_context(user.user_id, user.role.value)
    return user.to_actor()


def require_roles(*roles: Role) -> Callable:
    """
    Dependency factory restricting a route to some roles

    Usage:
        @router.get("/", dependencies=[Depends(require_roles(Role.ADMIN))])
    """
    allowed = frozenset(roles)

    async def _check(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed:
            logger.warning(f"Role {actor.role.value} denied for user {actor.user_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return actor

    return _check
