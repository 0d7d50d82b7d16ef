"""
User management endpoints (admin/manager)

Managers only manage agents and customers: they can't see, create, edit or
promote admins and managers.
"""
import logging
import math
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from helpdesk.database import user_operations
from helpdesk.middleware.auth import require_roles
from helpdesk.middleware.rate_limiter import get_rate_limit, limiter
from helpdesk.models import Actor, Role, User, UserCreate, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])

require_user_admin = require_roles(Role.ADMIN, Role.MANAGER)

# Roles a manager may manage or hand out
MANAGER_MANAGED_ROLES = frozenset({Role.AGENT, Role.CUSTOMER})


def _check_manageable(actor: Actor, user: User) -> None:
    if actor.role == Role.MANAGER and user.role not in MANAGER_MANAGED_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Managers can only manage agents and customers"
        )


async def _load_user(user_id: str) -> User:
    user = await user_operations.find_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")
    return user


@router.get("/stats", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("read"))
async def get_user_stats(
    request: Request,
    actor: Actor = Depends(require_user_admin),
) -> Dict[str, Any]:
    """User counts by role and active flag"""
    stats = await user_operations.count_users_by_role()
    return {"success": True, "stats": stats}


@router.get("/agents", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("read"))
async def list_agents(
    request: Request,
    actor: Actor = Depends(require_user_admin),
) -> Dict[str, Any]:
    """Active agents, for assignment pickers"""
    agents = await user_operations.list_active_agents()
    return {
        "success": True,
        "agents": [
            {
                "user_id": agent.user_id,
                "name": agent.name,
                "email": agent.email,
                "department": agent.department,
            }
            for agent in agents
        ],
        "count": len(agents),
    }


@router.get("", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("read"))
async def list_users(
    request: Request,
    role: Optional[Role] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(require_user_admin),
) -> Dict[str, Any]:
    query = user_operations.build_user_query(role=role, is_active=is_active, search=search)

    if actor.role == Role.MANAGER:
        if role is not None and role not in MANAGER_MANAGED_ROLES:
            query["role"] = {"$in": []}
        elif role is None:
            query["role"] = {"$in": sorted(r.value for r in MANAGER_MANAGED_ROLES)}

    users, total = await user_operations.list_users(query, page=page, limit=limit)
    return {
        "success": True,
        "users": [user.public_dict() for user in users],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


@router.post("", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("admin"))
async def create_user(
    request: Request,
    data: UserCreate,
    actor: Actor = Depends(require_user_admin),
) -> Dict[str, Any]:
    """
    Create a user with any role (admin) or an agent/customer (manager)
    """
    if actor.role == Role.MANAGER and data.role not in MANAGER_MANAGED_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Managers can only create agents and customers"
        )

    if await user_operations.find_user_by_email(data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists with this email"
        )

    user = await user_operations.insert_user(User(
        email=data.email,
        password_hash=User.hash_password(data.password),
        name=data.name.strip(),
        role=data.role,
        department=data.department,
        phone=data.phone,
    ))
    logger.info(f"User {user.user_id} ({user.role.value}) created by {actor.user_id}")

    return {"success": True, "message": "User created successfully", "user": user.public_dict()}


@router.get("/{user_id}", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("read"))
async def get_user(
    request: Request,
    user_id: str,
    actor: Actor = Depends(require_user_admin),
) -> Dict[str, Any]:
    user = await _load_user(user_id)
    _check_manageable(actor, user)
    return {"success": True, "user": user.public_dict()}


@router.put("/{user_id}", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("admin"))
async def update_user(
    request: Request,
    user_id: str,
    update: UserUpdate,
    actor: Actor = Depends(require_user_admin),
) -> Dict[str, Any]:
    """
    Update a user's profile, role or active flag

    Raises:
        403: Changing your own role, or a manager touching staff accounts
             or handing out admin/manager roles
        404: User not found
    """
    user = await _load_user(user_id)
    _check_manageable(actor, user)

    fields = update.model_dump(exclude_unset=True, exclude_none=True)

    if "role" in fields and fields["role"] != user.role:
        if user_id == actor.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You cannot change your own role"
            )
        if actor.role == Role.MANAGER and fields["role"] not in MANAGER_MANAGED_ROLES:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Managers cannot assign admin or manager roles"
            )

    if fields:
        await user_operations.update_user(user_id, fields)
        user = user.model_copy(update=fields)
        logger.info(f"User {user_id} updated by {actor.user_id}: {sorted(fields)}")

    return {"success": True, "message": "User updated successfully", "user": user.public_dict()}


@router.delete("/{user_id}", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("critical"))
async def delete_user(
    request: Request,
    user_id: str,
    actor: Actor = Depends(require_roles(Role.ADMIN)),
) -> Dict[str, Any]:
    """Delete a user (admin only, never yourself)"""
    if user_id == actor.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account"
        )

    await _load_user(user_id)
    await user_operations.delete_user(user_id)
    logger.info(f"User {user_id} deleted by {actor.user_id}")

    return {"success": True, "message": "User deleted successfully"}
