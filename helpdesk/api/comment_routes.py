"""
Ticket comment endpoints
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from helpdesk.api.dependencies import get_lifecycle_service
from helpdesk.config import settings
from helpdesk.database import comment_operations
from helpdesk.lifecycle.service import TicketLifecycleService
from helpdesk.middleware.auth import get_current_actor
from helpdesk.middleware.rate_limiter import get_rate_limit, limiter
from helpdesk.models import Actor, Comment, CommentCreate, CommentUpdate, Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/comments", tags=["comments"])


async def _load_visible_comment(
    comment_id: str,
    actor: Actor,
    service: TicketLifecycleService,
) -> Comment:
    """Comment the actor may see (ticket visibility plus internal filter)"""
    comment = await comment_operations.find_comment(comment_id)
    if not comment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Comment {comment_id} not found"
        )

    await service.get_ticket(actor, comment.ticket_id)

    if comment.is_internal and actor.role == Role.CUSTOMER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    return comment


def _comment_dict(comment: Comment) -> Dict[str, Any]:
    data = comment.model_dump(mode="json")
    data["is_edited"] = comment.is_edited
    return data


@router.get("/ticket/{ticket_id}", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("read"))
async def list_ticket_comments(
    request: Request,
    ticket_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    """
    Comments on a ticket, oldest first

    Internal comments are left out for customers.
    """
    await service.get_ticket(actor, ticket_id)

    comments, total = await comment_operations.list_comments(
        ticket_id,
        include_internal=actor.is_staff,
        page=page,
        limit=limit,
    )
    return {
        "success": True,
        "comments": [_comment_dict(comment) for comment in comments],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


@router.post("/ticket/{ticket_id}", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("write"))
async def create_comment(
    request: Request,
    ticket_id: str,
    comment_data: CommentCreate,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    await service.get_ticket(actor, ticket_id)

    if comment_data.is_internal and actor.role == Role.CUSTOMER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Customers cannot create internal comments"
        )

    content = comment_data.content.strip()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Comment content is required"
        )

    comment = await comment_operations.insert_comment(Comment(
        ticket_id=ticket_id,
        author_id=actor.user_id,
        content=content,
        is_internal=comment_data.is_internal,
    ))
    logger.info(f"Comment {comment.comment_id} added to ticket {ticket_id} by {actor.user_id}")

    return {
        "success": True,
        "message": "Comment created successfully",
        "comment": _comment_dict(comment),
    }


@router.get("/{comment_id}", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("read"))
async def get_comment(
    request: Request,
    comment_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    comment = await _load_visible_comment(comment_id, actor, service)
    return {"success": True, "comment": _comment_dict(comment)}


@router.put("/{comment_id}", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("write"))
async def update_comment(
    request: Request,
    comment_id: str,
    update: CommentUpdate,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    """
    Edit a comment

    Only the author may edit, and only within the edit window after posting.
    """
    comment = await _load_visible_comment(comment_id, actor, service)

    if comment.author_id != actor.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    now = datetime.utcnow()
    window = timedelta(minutes=settings.comment_edit_window_minutes)
    if comment.created_at < now - window:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Comments can only be edited within {settings.comment_edit_window_minutes} minutes"
        )

    content = update.content.strip()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Comment content is required"
        )

    fields = {"content": content, "edited_at": now, "edited_by": actor.user_id}
    await comment_operations.update_comment(comment_id, fields)
    updated = comment.model_copy(update=fields)

    return {
        "success": True,
        "message": "Comment updated successfully",
        "comment": _comment_dict(updated),
    }


@router.delete("/{comment_id}", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("write"))
async def delete_comment(
    request: Request,
    comment_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    """Delete a comment (author or admin)"""
    comment = await _load_visible_comment(comment_id, actor, service)

    if actor.role != Role.ADMIN and comment.author_id != actor.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    await comment_operations.delete_comment(comment_id)
    logger.info(f"Comment {comment_id} deleted by {actor.user_id}")

    return {"success": True, "message": "Comment deleted successfully"}
