"""
Ticket lifecycle service

Loads tickets, asks the engine for a decision and persists the result with
a compare-and-swap on ``lock_version``. A lost race re-reads the ticket and
decides again; it never replays the old decision.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from helpdesk.config import settings
from helpdesk.database import comment_operations, ticket_operations, user_operations
from helpdesk.lifecycle import engine
from helpdesk.lifecycle.effects import serialize_effects
from helpdesk.lifecycle.engine import Transition
from helpdesk.lifecycle.errors import AuthorizationError, NotFoundError, StateConflictError
from helpdesk.lifecycle.permissions import Operation, authorize
from helpdesk.models import (
    Actor,
    AuditLog,
    AuditOperation,
    Role,
    Ticket,
    TicketCreate,
    TicketPriority,
    TicketStatus,
)
from helpdesk.utils.monitoring import capture_exception
from helpdesk.utils.notifier import TicketNotifier, describe

logger = logging.getLogger(__name__)

Decision = Callable[[Ticket], Transition]

# Audit snapshot of the lifecycle fields
_SNAPSHOT_FIELDS = ("status", "assigned_to", "acceptance_status", "rejection_reason", "assigned_by", "resolved_at")


def _snapshot(ticket: Ticket) -> Dict[str, Any]:
    data = ticket.model_dump(include=set(_SNAPSHOT_FIELDS))
    return {field: data.get(field) for field in _SNAPSHOT_FIELDS}


def can_view(actor: Actor, ticket: Ticket) -> bool:
    """Customers see their own tickets; staff see everything"""
    if actor.role == Role.CUSTOMER:
        return ticket.created_by == actor.user_id
    return True


class TicketLifecycleService:
    """Async front door for every ticket operation"""

    def __init__(self, notifier: Optional[TicketNotifier] = None, max_retries: Optional[int] = None):
        self.notifier = notifier or TicketNotifier()
        self.max_retries = max_retries or settings.max_transition_retries

    # ============================================================
    # Reads
    # ============================================================

    async def _load(self, ticket_id: str) -> Ticket:
        ticket = await ticket_operations.find_ticket(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found", context={"ticket_id": ticket_id})
        return ticket

    async def get_ticket(self, actor: Actor, ticket_id: str) -> Ticket:
        """
        Fetch a ticket the actor is allowed to see

        Raises:
            NotFoundError: Ticket doesn't exist
            AuthorizationError: Customer asking for someone else's ticket
        """
        ticket = await self._load(ticket_id)
        if not can_view(actor, ticket):
            raise AuthorizationError("Access denied", context={"ticket_id": ticket_id})
        return ticket

    async def list_tickets(
        self,
        actor: Actor,
        status: Optional[TicketStatus] = None,
        priority: Optional[TicketPriority] = None,
        category: Optional[str] = None,
        assigned_to: Optional[str] = None,
        unassigned: bool = False,
        search: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[Ticket], int]:
        """List tickets visible to ``actor``, with optional filters"""
        query = ticket_operations.build_ticket_query(
            status=status,
            priority=priority,
            category=category,
            assigned_to=assigned_to,
            unassigned=unassigned,
            created_by=actor.user_id if actor.role == Role.CUSTOMER else None,
            search=search,
            date_from=date_from,
            date_to=date_to,
        )
        return await ticket_operations.list_tickets(query, page, limit, sort_by, sort_order)

    async def ticket_stats(self, actor: Actor) -> Dict[str, Any]:
        """Counts scoped to the actor: own tickets, assigned tickets, or all"""
        if actor.role == Role.CUSTOMER:
            match = {"created_by": actor.user_id}
        elif actor.role == Role.AGENT:
            match = {"assigned_to": actor.user_id}
        else:
            match = {}
        return await ticket_operations.ticket_stats(match)

    async def audit_trail(self, actor: Actor, ticket_id: str) -> List[AuditLog]:
        """Full audit history (staff only)"""
        if not actor.is_staff:
            raise AuthorizationError("Access denied", context={"ticket_id": ticket_id})
        await self._load(ticket_id)
        return await ticket_operations.find_audit_logs(ticket_id)

    async def rejection_history(self, actor: Actor, ticket_id: str) -> List[Dict[str, Any]]:
        """Every rejection recorded for a ticket, oldest first"""
        await self.get_ticket(actor, ticket_id)
        logs = await ticket_operations.find_audit_logs(ticket_id, AuditOperation.REJECT)
        return [
            {
                "rejected_by": log.actor_id,
                "reason": (log.after or {}).get("rejection_reason"),
                "rejected_at": log.timestamp,
            }
            for log in logs
        ]

    # ============================================================
    # Writes
    # ============================================================

    async def create_ticket(self, actor: Actor, data: TicketCreate) -> Transition:
        transition = engine.create(
            actor,
            title=data.title,
            description=data.description,
            priority=data.priority,
            category=data.category,
            tags=data.tags,
            due_date=data.due_date,
        )
        ticket = await ticket_operations.insert_ticket(transition.ticket)
        await self._record(actor, AuditOperation.CREATE_TICKET, None, ticket, transition.effects)
        logger.info(f"Ticket {ticket.ticket_id} created by {actor.user_id}")
        await self._notify(ticket, transition.effects)
        return transition

    async def assign(self, actor: Actor, ticket_id: str, agent_id: Optional[str]) -> Transition:
        target = None
        if agent_id:
            # Role check precedes the agent lookup
            authorize(actor, Operation.ASSIGN)
            target = await user_operations.find_user_by_id(agent_id)
            if target is None:
                raise NotFoundError(f"Agent {agent_id} not found", context={"agent_id": agent_id})

        operation = AuditOperation.ASSIGN if agent_id else AuditOperation.UNASSIGN
        return await self._apply(actor, ticket_id, operation, lambda t: engine.assign(actor, t, target))

    async def self_assign(self, actor: Actor, ticket_id: str) -> Transition:
        return await self._apply(actor, ticket_id, AuditOperation.SELF_ASSIGN, lambda t: engine.self_assign(actor, t))

    async def accept(self, actor: Actor, ticket_id: str) -> Transition:
        return await self._apply(actor, ticket_id, AuditOperation.ACCEPT, lambda t: engine.accept(actor, t))

    async def reject(self, actor: Actor, ticket_id: str, reason: str) -> Transition:
        return await self._apply(actor, ticket_id, AuditOperation.REJECT, lambda t: engine.reject(actor, t, reason))

    async def update_status(self, actor: Actor, ticket_id: str, new_status: TicketStatus) -> Transition:
        return await self._apply(
            actor, ticket_id, AuditOperation.UPDATE_STATUS,
            lambda t: engine.update_status(actor, t, new_status),
        )

    async def update_content(self, actor: Actor, ticket_id: str, changes: Dict[str, Any]) -> Transition:
        return await self._apply(
            actor, ticket_id, AuditOperation.UPDATE_CONTENT,
            lambda t: engine.update_content(actor, t, changes),
        )

    async def delete_ticket(self, actor: Actor, ticket_id: str) -> None:
        """Admin-only hard delete, comments included"""
        ticket = await self._load(ticket_id)
        engine.delete(actor, ticket)

        await ticket_operations.delete_ticket(ticket_id)
        removed = await comment_operations.delete_ticket_comments(ticket_id)
        await self._record(actor, AuditOperation.DELETE_TICKET, ticket, None, [])
        logger.info(f"Ticket {ticket_id} deleted by {actor.user_id} ({removed} comments removed)")

    async def _apply(
        self,
        actor: Actor,
        ticket_id: str,
        operation: AuditOperation,
        decide: Decision,
    ) -> Transition:
        """
        Run ``decide`` against fresh state and persist the result

        Raises:
            LifecycleError: Rejected by the engine, or lost the write race
                ``max_retries`` times in a row
        """
        ticket = None
        for attempt in range(1, self.max_retries + 1):
            ticket = await self._load(ticket_id)
            if not can_view(actor, ticket):
                raise AuthorizationError("Access denied", context={"ticket_id": ticket_id})

            transition = decide(ticket)
            if not transition.changed:
                return transition

            won = await ticket_operations.replace_ticket_if_unchanged(transition.ticket, ticket.lock_version)
            if won:
                saved = transition.ticket.model_copy(update={"lock_version": ticket.lock_version + 1})
                await self._record(actor, operation, ticket, saved, transition.effects)
                logger.info(
                    f"Ticket {ticket_id} {operation.value} by {actor.user_id}",
                    extra={"effects": describe(transition.effects)},
                )
                await self._notify(saved, transition.effects)
                return Transition(saved, transition.effects)

            logger.warning(
                f"Concurrent update on ticket {ticket_id} during {operation.value} "
                f"(attempt {attempt}/{self.max_retries})"
            )

        raise StateConflictError(
            "Ticket was modified by someone else. Reload and try again.",
            ticket=ticket,
            context={"ticket_id": ticket_id, "attempts": self.max_retries},
        )

    async def _record(
        self,
        actor: Actor,
        operation: AuditOperation,
        before: Optional[Ticket],
        after: Optional[Ticket],
        effects: List[Any],
    ) -> None:
        ticket_id = (after or before).ticket_id
        await ticket_operations.insert_audit_log(
            ticket_id=ticket_id,
            actor_id=actor.user_id,
            operation=operation,
            before=_snapshot(before) if before else None,
            after=_snapshot(after) if after else None,
            effects=serialize_effects(effects),
        )

    async def _notify(self, ticket: Ticket, effects: List[Any]) -> None:
        try:
            await self.notifier.dispatch(ticket, effects)
        except Exception as e:
            logger.error(f"Notification dispatch failed for ticket {ticket.ticket_id}: {e}", exc_info=True)
            capture_exception(e, tags={"component": "notifier"}, extra={"ticket_id": ticket.ticket_id})
