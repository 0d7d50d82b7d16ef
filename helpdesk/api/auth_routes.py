"""
Authentication endpoints: registration, login, profile and token refresh
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials

from helpdesk.database import user_operations
from helpdesk.middleware.auth import bearer_scheme, get_current_actor
from helpdesk.middleware.rate_limiter import get_rate_limit, limiter
from helpdesk.models import (
    Actor,
    LoginRequest,
    PasswordChangeRequest,
    ProfileUpdate,
    RegisterRequest,
    Role,
    User,
)
from helpdesk.utils.jwt_handler import create_jwt_token, refresh_jwt_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _token_response(user: User, message: str) -> Dict[str, Any]:
    token = create_jwt_token(
        user_id=user.user_id,
        email=user.email,
        role=user.role,
        name=user.name,
    )
    return {
        "success": True,
        "message": message,
        "token": token,
        "token_type": "bearer",
        "user": user.public_dict(),
    }


async def _current_user(actor: Actor) -> User:
    user = await user_operations.find_user_by_id(actor.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.post("/register", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("auth"))
async def register(request: Request, data: RegisterRequest) -> Dict[str, Any]:
    """
    Self-service sign-up

    Always creates a customer; staff accounts are created by an admin or
    manager through ``/api/users``.
    """
    if await user_operations.find_user_by_email(data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists with this email"
        )

    user = await user_operations.insert_user(User(
        email=data.email,
        password_hash=User.hash_password(data.password),
        name=data.name.strip(),
        role=Role.CUSTOMER,
        department=data.department,
        phone=data.phone,
    ))
    logger.info(f"User registered: {user.user_id}")

    return _token_response(user, "Registration successful")


@router.post("/login", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("auth"))
async def login(request: Request, credentials: LoginRequest) -> Dict[str, Any]:
    """
    Exchange email and password for a bearer token

    Raises:
        401: Unknown email or wrong password (same message for both)
        403: Account deactivated
    """
    user = await user_operations.find_user_by_email(credentials.email)
    if not user or not User.verify_password(credentials.password, user.password_hash):
        logger.warning("Failed login attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if not user.is_active:
        logger.warning(f"Login refused for inactive user {user.user_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated"
        )

    await user_operations.touch_last_login(user.user_id)
    logger.info(f"User logged in: {user.user_id}")

    return _token_response(user, "Login successful")


@router.get("/me", response_model=Dict[str, Any])
async def get_me(actor: Actor = Depends(get_current_actor)) -> Dict[str, Any]:
    user = await _current_user(actor)
    return {"success": True, "user": user.public_dict()}


@router.put("/me", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("write"))
async def update_me(
    request: Request,
    update: ProfileUpdate,
    actor: Actor = Depends(get_current_actor),
) -> Dict[str, Any]:
    """Update own name, department and phone (never role or email)"""
    fields = update.model_dump(exclude_unset=True, exclude_none=True)
    user = await _current_user(actor)

    if fields:
        await user_operations.update_user(actor.user_id, fields)
        user = user.model_copy(update=fields)
        logger.info(f"Profile updated for {actor.user_id}: {sorted(fields)}")

    return {"success": True, "message": "Profile updated successfully", "user": user.public_dict()}


@router.put("/password", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("auth"))
async def change_password(
    request: Request,
    data: PasswordChangeRequest,
    actor: Actor = Depends(get_current_actor),
) -> Dict[str, Any]:
    user = await _current_user(actor)

    if not User.verify_password(data.current_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    await user_operations.update_user(actor.user_id, {"password_hash": User.hash_password(data.new_password)})
    logger.info(f"Password changed for {actor.user_id}")

    return {"success": True, "message": "Password changed successfully"}


@router.post("/refresh", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("auth"))
async def refresh_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    actor: Actor = Depends(get_current_actor),
) -> Dict[str, Any]:
    """Issue a fresh token for a still-valid one"""
    token = refresh_jwt_token(credentials.credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {"success": True, "token": token, "token_type": "bearer"}
