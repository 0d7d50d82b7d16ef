"""
Ticket lifecycle engine

Pure decision functions over (ticket, actor, input). Each operation returns
a ``Transition`` with the new ticket and the side effects to publish, or
raises a ``LifecycleError``. Nothing here touches storage and the input
ticket is never modified.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from helpdesk.lifecycle import effects
from helpdesk.lifecycle.errors import AuthorizationError, StateConflictError, ValidationError
from helpdesk.lifecycle.permissions import Operation, authorize
from helpdesk.models.ticket import (
    Accepted,
    PendingAcceptance,
    Rejected,
    Ticket,
    TicketCategory,
    TicketPriority,
    TicketStatus,
    Unassigned,
)
from helpdesk.models.user import Actor, Role, User

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000
REASON_MAX_LENGTH = 500
TAG_MAX_LENGTH = 50
MAX_TAGS = 10

E = TypeVar("E", bound=Enum)


@dataclass
class Transition:
    """Result of an accepted operation"""
    ticket: Ticket
    effects: List[Any] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.effects)


# ============================================================
# Input validation
# ============================================================

def _require_text(value: Optional[str], field_name: str, max_length: int) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field_name.capitalize()} is required", context={"field": field_name})
    if len(text) > max_length:
        raise ValidationError(
            f"{field_name.capitalize()} cannot exceed {max_length} characters",
            context={"field": field_name},
        )
    return text


def _coerce_enum(enum_cls: Type[E], value: Any, field_name: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"{field_name.capitalize()} must be one of: {allowed}",
            context={"field": field_name, "value": str(value)},
        )


def _normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    normalized: List[str] = []
    for tag in tags or []:
        text = str(tag).strip()
        if not text:
            continue
        if len(text) > TAG_MAX_LENGTH:
            raise ValidationError(
                f"Tags cannot exceed {TAG_MAX_LENGTH} characters",
                context={"field": "tags"},
            )
        if text not in normalized:
            normalized.append(text)
    if len(normalized) > MAX_TAGS:
        raise ValidationError(f"Maximum {MAX_TAGS} tags allowed", context={"field": "tags"})
    return normalized


def _check_fields(actor: Actor, rule_fields, provided: Iterable[str], ticket: Optional[Ticket] = None) -> None:
    if rule_fields is None:
        return
    forbidden = sorted(set(provided) - set(rule_fields))
    if forbidden:
        raise AuthorizationError(
            f"Role '{actor.role.value}' cannot set: {', '.join(forbidden)}",
            ticket=ticket,
            context={"fields": forbidden},
        )


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.utcnow()


# ============================================================
# Operations
# ============================================================

def create(
    actor: Actor,
    title: str,
    description: str,
    priority: Optional[Any] = None,
    category: Optional[Any] = None,
    tags: Optional[Iterable[str]] = None,
    due_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Transition:
    """Open a new, unassigned ticket owned by ``actor``"""
    rule = authorize(actor, Operation.CREATE)
    provided = [name for name, value in (("due_date", due_date),) if value is not None]
    _check_fields(actor, rule.fields, provided)

    now = _now(now)
    ticket = Ticket(
        title=_require_text(title, "title", TITLE_MAX_LENGTH),
        description=_require_text(description, "description", DESCRIPTION_MAX_LENGTH),
        priority=_coerce_enum(TicketPriority, priority, "priority") if priority is not None else TicketPriority.MEDIUM,
        category=_coerce_enum(TicketCategory, category, "category") if category is not None else TicketCategory.GENERAL,
        tags=_normalize_tags(tags),
        due_date=due_date,
        status=TicketStatus.OPEN,
        assignment=Unassigned(),
        created_by=actor.user_id,
        created_at=now,
        updated_at=now,
    )
    return Transition(ticket, [effects.TicketCreated(ticket_id=ticket.ticket_id)])


def assign(
    actor: Actor,
    ticket: Ticket,
    target: Optional[User],
    now: Optional[datetime] = None,
) -> Transition:
    """
    Assign ``ticket`` to ``target`` (an agent), or unassign it when None.

    Any previous acceptance decision is discarded: the new assignee always
    starts out pending.
    """
    authorize(actor, Operation.ASSIGN, ticket)
    now = _now(now)

    if target is None:
        if ticket.assigned_to is None:
            return Transition(ticket, [])
        updated = ticket.model_copy(update={
            "assignment": Unassigned(),
            "assigned_by": actor.user_id,
            "assigned_at": None,
            "accepted_at": None,
            "updated_at": now,
        })
        return Transition(updated, [effects.TicketUnassigned(ticket_id=ticket.ticket_id)])

    if target.role != Role.AGENT:
        raise ValidationError(
            "Tickets can only be assigned to agents",
            ticket=ticket,
            context={"target_id": target.user_id, "target_role": Role(target.role).value},
        )
    if not target.is_active:
        raise ValidationError(
            "Cannot assign a ticket to an inactive agent",
            ticket=ticket,
            context={"target_id": target.user_id},
        )
    return _assign_to(actor, ticket, target.user_id, now)


def self_assign(actor: Actor, ticket: Ticket, now: Optional[datetime] = None) -> Transition:
    """Agent claims an unassigned open ticket (still needs acceptance)"""
    authorize(actor, Operation.SELF_ASSIGN, ticket)
    if ticket.assigned_to is not None:
        raise StateConflictError(
            "Ticket is already assigned",
            ticket=ticket,
            context={"assigned_to": ticket.assigned_to},
        )
    return _assign_to(actor, ticket, actor.user_id, _now(now))


def _assign_to(actor: Actor, ticket: Ticket, agent_id: str, now: datetime) -> Transition:
    updated = ticket.model_copy(update={
        "assignment": PendingAcceptance(agent_id=agent_id),
        "assigned_by": actor.user_id,
        "assigned_at": now,
        "accepted_at": None,
        "updated_at": now,
    })
    return Transition(updated, [effects.TicketAssigned(ticket_id=ticket.ticket_id, agent_id=agent_id)])


def accept(actor: Actor, ticket: Ticket, now: Optional[datetime] = None) -> Transition:
    """Assignee acknowledges the ticket. Status is left alone."""
    authorize(actor, Operation.ACCEPT, ticket)
    if not isinstance(ticket.assignment, PendingAcceptance):
        raise StateConflictError(
            f"Ticket is not pending acceptance (current: {ticket.acceptance_status.value})",
            ticket=ticket,
            context={"acceptance_status": ticket.acceptance_status.value},
        )
    now = _now(now)
    updated = ticket.model_copy(update={
        "assignment": Accepted(agent_id=actor.user_id),
        "accepted_at": now,
        "updated_at": now,
    })
    return Transition(updated, [effects.TicketAccepted(ticket_id=ticket.ticket_id, agent_id=actor.user_id)])


def reject(actor: Actor, ticket: Ticket, reason: str, now: Optional[datetime] = None) -> Transition:
    """Assignee declines the ticket, releasing it to the unassigned pool"""
    reason = _require_text(reason, "reason", REASON_MAX_LENGTH)
    authorize(actor, Operation.REJECT, ticket)
    if not isinstance(ticket.assignment, PendingAcceptance):
        raise StateConflictError(
            f"Ticket is not pending acceptance (current: {ticket.acceptance_status.value})",
            ticket=ticket,
            context={"acceptance_status": ticket.acceptance_status.value},
        )
    updated = ticket.model_copy(update={
        "assignment": Rejected(agent_id=actor.user_id, reason=reason),
        "assigned_at": None,
        "accepted_at": None,
        "updated_at": _now(now),
    })
    return Transition(updated, [effects.TicketRejected(
        ticket_id=ticket.ticket_id,
        agent_id=actor.user_id,
        reason=reason,
    )])


def update_status(
    actor: Actor,
    ticket: Ticket,
    new_status: Any,
    now: Optional[datetime] = None,
) -> Transition:
    """
    Move ``ticket`` to ``new_status``.

    Admins and managers may set any status. Agents must be the accepted
    assignee and can only step forward one state at a time. Customers can't
    change status. Setting the current status is a no-op.
    """
    new_status = _coerce_enum(TicketStatus, new_status, "status")
    rule = authorize(actor, Operation.UPDATE_STATUS, ticket)

    if new_status == ticket.status:
        return Transition(ticket, [])

    if rule.transitions is not None and (ticket.status, new_status) not in rule.transitions:
        raise StateConflictError(
            f"Cannot move ticket from {ticket.status.value} to {new_status.value}",
            ticket=ticket,
            context={"from": ticket.status.value, "to": new_status.value},
        )

    now = _now(now)
    update: Dict[str, Any] = {"status": new_status, "updated_at": now}
    produced: List[Any] = [effects.StatusChanged(
        ticket_id=ticket.ticket_id,
        from_status=ticket.status,
        to_status=new_status,
    )]

    if new_status == TicketStatus.RESOLVED and ticket.resolved_at is None:
        update["resolved_at"] = now
        produced.append(effects.Resolved(ticket_id=ticket.ticket_id, at=now))
    if new_status == TicketStatus.CLOSED and ticket.closed_at is None:
        update["closed_at"] = now

    return Transition(ticket.model_copy(update=update), produced)


def update_content(
    actor: Actor,
    ticket: Ticket,
    changes: Dict[str, Any],
    now: Optional[datetime] = None,
) -> Transition:
    """
    Edit title, description, priority, category, tags or due date.

    ``changes`` holds only the fields the caller wants to set. Status and
    assignment are never touched here.
    """
    provided = {name: value for name, value in changes.items() if value is not None}
    unknown = sorted(set(provided) - {"title", "description", "priority", "category", "tags", "due_date"})
    if unknown:
        raise ValidationError(f"Unknown ticket fields: {', '.join(unknown)}", context={"fields": unknown})

    rule = authorize(actor, Operation.UPDATE_CONTENT, ticket)
    _check_fields(actor, rule.fields, provided, ticket)

    cleaned: Dict[str, Any] = {}
    if "title" in provided:
        cleaned["title"] = _require_text(provided["title"], "title", TITLE_MAX_LENGTH)
    if "description" in provided:
        cleaned["description"] = _require_text(provided["description"], "description", DESCRIPTION_MAX_LENGTH)
    if "priority" in provided:
        cleaned["priority"] = _coerce_enum(TicketPriority, provided["priority"], "priority")
    if "category" in provided:
        cleaned["category"] = _coerce_enum(TicketCategory, provided["category"], "category")
    if "tags" in provided:
        cleaned["tags"] = _normalize_tags(provided["tags"])
    if "due_date" in provided:
        cleaned["due_date"] = provided["due_date"]

    changed = {name: value for name, value in cleaned.items() if getattr(ticket, name) != value}
    if not changed:
        return Transition(ticket, [])

    changed["updated_at"] = _now(now)
    updated = ticket.model_copy(update=changed)
    return Transition(updated, [effects.TicketUpdated(
        ticket_id=ticket.ticket_id,
        fields=sorted(name for name in changed if name != "updated_at"),
    )])


def delete(actor: Actor, ticket: Ticket) -> None:
    """Admin-only removal check (the delete itself is a plain store call)"""
    authorize(actor, Operation.DELETE, ticket)

