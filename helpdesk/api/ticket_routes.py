"""
Ticket endpoints

Every write goes through ``TicketLifecycleService``; lifecycle errors are
turned into HTTP responses by the registered exception handlers.
"""
import logging
import math
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from helpdesk.api.dependencies import get_lifecycle_service
from helpdesk.lifecycle.engine import Transition
from helpdesk.lifecycle.service import TicketLifecycleService
from helpdesk.middleware.auth import get_current_actor
from helpdesk.middleware.rate_limiter import get_rate_limit, limiter
from helpdesk.models import (
    Actor,
    AssignTicketRequest,
    RejectTicketRequest,
    StatusUpdateRequest,
    TicketCategory,
    TicketContentUpdate,
    TicketCreate,
    TicketPriority,
    TicketStatus,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tickets", tags=["tickets"])

SORT_FIELDS = "^(created_at|updated_at|priority|status|title|due_date)$"


def _transition_response(transition: Transition, message: str) -> Dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "ticket": transition.ticket.model_dump(mode="json"),
        "effects": [effect.model_dump(mode="json") for effect in transition.effects],
    }


@router.post("", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("write"))
async def create_ticket(
    request: Request,
    ticket_data: TicketCreate,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    """
    Create a new ticket

    Any authenticated user may open a ticket. It starts open and unassigned.
    """
    transition = await service.create_ticket(actor, ticket_data)
    return _transition_response(transition, "Ticket created successfully")


@router.get("", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("read"))
async def list_tickets(
    request: Request,
    ticket_status: Optional[TicketStatus] = Query(None, alias="status"),
    priority: Optional[TicketPriority] = None,
    category: Optional[TicketCategory] = None,
    assigned_to: Optional[str] = None,
    unassigned: bool = False,
    search: Optional[str] = Query(None, max_length=100),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = Query("created_at", pattern=SORT_FIELDS),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    """
    List tickets with optional filters

    Customers only ever see tickets they created.
    """
    tickets, total = await service.list_tickets(
        actor,
        status=ticket_status,
        priority=priority,
        category=category,
        assigned_to=assigned_to,
        unassigned=unassigned,
        search=search,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {
        "success": True,
        "tickets": [ticket.model_dump(mode="json") for ticket in tickets],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


@router.get("/stats", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("read"))
async def get_ticket_stats(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    """Ticket counts for the caller's scope"""
    stats = await service.ticket_stats(actor)
    return {"success": True, "stats": stats}


@router.get("/{ticket_id}", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("read"))
async def get_ticket(
    request: Request,
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    ticket = await service.get_ticket(actor, ticket_id)
    return {"success": True, "ticket": ticket.model_dump(mode="json")}


@router.put("/{ticket_id}", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("write"))
async def update_ticket(
    request: Request,
    ticket_id: str,
    update: TicketContentUpdate,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    """
    Edit ticket content

    Status and assignment have their own endpoints and can't be changed here.
    """
    transition = await service.update_content(actor, ticket_id, update.model_dump(exclude_unset=True))
    message = "Ticket updated successfully" if transition.changed else "No changes"
    return _transition_response(transition, message)


@router.delete("/{ticket_id}", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("critical"))
async def delete_ticket(
    request: Request,
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    """Delete a ticket and its comments (admin only)"""
    await service.delete_ticket(actor, ticket_id)
    return {"success": True, "message": "Ticket deleted successfully", "ticket_id": ticket_id}


@router.put("/{ticket_id}/assign", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("write"))
async def assign_ticket(
    request: Request,
    ticket_id: str,
    assignment: AssignTicketRequest,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    """
    Assign a ticket to an agent, or unassign it with ``agent_id: null``

    Admin/manager only. The agent has to accept before working on it.
    """
    transition = await service.assign(actor, ticket_id, assignment.agent_id)
    message = "Ticket assigned successfully" if assignment.agent_id else "Ticket unassigned successfully"
    return _transition_response(transition, message)


@router.put("/{ticket_id}/self-assign", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("write"))
async def self_assign_ticket(
    request: Request,
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    """Agent picks up an open, unassigned ticket"""
    transition = await service.self_assign(actor, ticket_id)
    return _transition_response(transition, "Ticket assigned to you")


@router.put("/{ticket_id}/accept", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("write"))
async def accept_ticket(
    request: Request,
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    transition = await service.accept(actor, ticket_id)
    return _transition_response(transition, "Ticket accepted")


@router.put("/{ticket_id}/reject", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("write"))
async def reject_ticket(
    request: Request,
    ticket_id: str,
    rejection: RejectTicketRequest,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    """Assigned agent declines the ticket, releasing it to the queue"""
    transition = await service.reject(actor, ticket_id, rejection.reason)
    return _transition_response(transition, "Ticket rejected")


@router.put("/{ticket_id}/status", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("write"))
async def update_ticket_status(
    request: Request,
    ticket_id: str,
    status_update: StatusUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    """
    Move a ticket through open, in_progress, resolved and closed

    Agents may only step forward on tickets they accepted; admins and
    managers may set any status.
    """
    transition = await service.update_status(actor, ticket_id, status_update.status)
    message = "Status updated successfully" if transition.changed else "Status unchanged"
    return _transition_response(transition, message)


@router.get("/{ticket_id}/audit", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("read"))
async def get_ticket_audit(
    request: Request,
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    """Complete audit trail for a ticket (staff only)"""
    audit_logs = await service.audit_trail(actor, ticket_id)
    return {
        "success": True,
        "ticket_id": ticket_id,
        "audit_logs": [log.model_dump(mode="json") for log in audit_logs],
        "count": len(audit_logs),
    }


@router.get("/{ticket_id}/rejections", response_model=Dict[str, Any])
@limiter.limit(get_rate_limit("read"))
async def get_rejection_history(
    request: Request,
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
) -> Dict[str, Any]:
    rejections = await service.rejection_history(actor, ticket_id)
    return {
        "success": True,
        "ticket_id": ticket_id,
        "rejections": rejections,
        "count": len(rejections),
    }
