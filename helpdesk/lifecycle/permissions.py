"""
Authorization matrix for ticket operations

One row per (role, operation). Anything missing from ``PERMISSIONS`` is
denied. ``authorize`` applies a rule to a concrete actor and ticket.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from helpdesk.models.ticket import Accepted, Ticket, TicketStatus
from helpdesk.models.user import Actor, Role
from helpdesk.lifecycle.errors import AuthorizationError, StateConflictError


class Operation(str, Enum):
    CREATE = "create"
    ASSIGN = "assign"
    SELF_ASSIGN = "self_assign"
    ACCEPT = "accept"
    REJECT = "reject"
    UPDATE_STATUS = "update_status"
    UPDATE_CONTENT = "update_content"
    DELETE = "delete"


class Scope(str, Enum):
    """Which tickets a rule applies to"""
    ANY = "any"
    ASSIGNEE = "assignee"
    CREATOR = "creator"


CONTENT_FIELDS = frozenset({"title", "description", "priority", "category", "tags", "due_date"})
CUSTOMER_CREATE_FIELDS = CONTENT_FIELDS - {"due_date"}
CUSTOMER_EDIT_FIELDS = frozenset({"title", "description", "priority"})

AGENT_FORWARD_CHAIN = frozenset({
    (TicketStatus.OPEN, TicketStatus.IN_PROGRESS),
    (TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED),
    (TicketStatus.RESOLVED, TicketStatus.CLOSED),
})


@dataclass(frozen=True)
class Rule:
    """
    Conditions under which a role may perform an operation.

    Attributes:
        scope: Relationship the actor must have with the ticket
        statuses: Ticket statuses the operation is available in (None = all)
        fields: Content fields the actor may set (None = all)
        transitions: Allowed (from, to) status pairs (None = all)
        requires_acceptance: Assignee must have accepted the ticket
    """
    scope: Scope = Scope.ANY
    statuses: Optional[FrozenSet[TicketStatus]] = None
    fields: Optional[FrozenSet[str]] = None
    transitions: Optional[FrozenSet[Tuple[TicketStatus, TicketStatus]]] = None
    requires_acceptance: bool = False


_STAFF_OVERRIDE = Rule()
_ASSIGNEE_ONLY = Rule(scope=Scope.ASSIGNEE)

PERMISSIONS: Dict[Tuple[Role, Operation], Rule] = {
    # Creation
    (Role.ADMIN, Operation.CREATE): _STAFF_OVERRIDE,
    (Role.MANAGER, Operation.CREATE): _STAFF_OVERRIDE,
    (Role.AGENT, Operation.CREATE): _STAFF_OVERRIDE,
    (Role.CUSTOMER, Operation.CREATE): Rule(fields=CUSTOMER_CREATE_FIELDS),
    # Assignment
    (Role.ADMIN, Operation.ASSIGN): _STAFF_OVERRIDE,
    (Role.MANAGER, Operation.ASSIGN): _STAFF_OVERRIDE,
    (Role.AGENT, Operation.SELF_ASSIGN): Rule(statuses=frozenset({TicketStatus.OPEN})),
    # Acceptance (only the current assignee, who must still be an agent)
    (Role.AGENT, Operation.ACCEPT): _ASSIGNEE_ONLY,
    (Role.AGENT, Operation.REJECT): _ASSIGNEE_ONLY,
    # Status
    (Role.ADMIN, Operation.UPDATE_STATUS): _STAFF_OVERRIDE,
    (Role.MANAGER, Operation.UPDATE_STATUS): _STAFF_OVERRIDE,
    (Role.AGENT, Operation.UPDATE_STATUS): Rule(
        scope=Scope.ASSIGNEE,
        transitions=AGENT_FORWARD_CHAIN,
        requires_acceptance=True,
    ),
    # Content edits
    (Role.ADMIN, Operation.UPDATE_CONTENT): _STAFF_OVERRIDE,
    (Role.MANAGER, Operation.UPDATE_CONTENT): _STAFF_OVERRIDE,
    (Role.CUSTOMER, Operation.UPDATE_CONTENT): Rule(
        scope=Scope.CREATOR,
        statuses=frozenset({TicketStatus.OPEN}),
        fields=CUSTOMER_EDIT_FIELDS,
    ),
    # Deletion
    (Role.ADMIN, Operation.DELETE): _STAFF_OVERRIDE,
}


def get_rule(role: Role, operation: Operation) -> Optional[Rule]:
    """Look up the rule for a role/operation pair (None when denied)"""
    return PERMISSIONS.get((Role(role), Operation(operation)))


def is_allowed(role: Role, operation: Operation) -> bool:
    return get_rule(role, operation) is not None


def authorize(actor: Actor, operation: Operation, ticket: Optional[Ticket] = None) -> Rule:
    """
    Check that ``actor`` may perform ``operation`` on ``ticket``.

    Role and identity failures raise AuthorizationError. A rule that is
    satisfied by the actor but not by the ticket's current state raises
    StateConflictError.

    Returns:
        The matching rule, for operation-specific limits (fields, transitions)
    """
    rule = get_rule(actor.role, operation)
    if rule is None:
        raise AuthorizationError(
            f"Role '{actor.role.value}' cannot {operation.value.replace('_', ' ')} tickets",
            ticket=ticket,
            context={"role": actor.role.value, "operation": operation.value},
        )

    if ticket is None:
        return rule

    if rule.scope == Scope.ASSIGNEE and ticket.assigned_to != actor.user_id:
        raise AuthorizationError(
            "Only the assigned agent can perform this operation",
            ticket=ticket,
            context={"operation": operation.value},
        )
    if rule.scope == Scope.CREATOR and ticket.created_by != actor.user_id:
        raise AuthorizationError(
            "You can only modify tickets you created",
            ticket=ticket,
            context={"operation": operation.value},
        )

    if rule.requires_acceptance and not isinstance(ticket.assignment, Accepted):
        raise StateConflictError(
            "Ticket must be accepted before its status can be changed",
            ticket=ticket,
            context={"acceptance_status": ticket.acceptance_status.value},
        )
    if rule.statuses is not None and ticket.status not in rule.statuses:
        raise StateConflictError(
            f"Operation not available while ticket is {ticket.status.value}",
            ticket=ticket,
            context={"status": ticket.status.value},
        )

    return rule
