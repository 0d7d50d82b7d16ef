"""
Side-effect descriptors produced by lifecycle transitions.

Plain data: the engine only describes what happened; notification and audit
consumers decide what to do with it.
"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, Field

from helpdesk.models.ticket import TicketStatus


class TicketCreated(BaseModel):
    type: Literal["ticket_created"] = "ticket_created"
    ticket_id: str


class TicketAssigned(BaseModel):
    type: Literal["ticket_assigned"] = "ticket_assigned"
    ticket_id: str
    agent_id: str


class TicketUnassigned(BaseModel):
    type: Literal["ticket_unassigned"] = "ticket_unassigned"
    ticket_id: str


class TicketAccepted(BaseModel):
    type: Literal["ticket_accepted"] = "ticket_accepted"
    ticket_id: str
    agent_id: str


class TicketRejected(BaseModel):
    type: Literal["ticket_rejected"] = "ticket_rejected"
    ticket_id: str
    agent_id: str
    reason: str


class StatusChanged(BaseModel):
    type: Literal["status_changed"] = "status_changed"
    ticket_id: str
    from_status: TicketStatus
    to_status: TicketStatus


class Resolved(BaseModel):
    type: Literal["resolved"] = "resolved"
    ticket_id: str
    at: datetime


class TicketUpdated(BaseModel):
    type: Literal["ticket_updated"] = "ticket_updated"
    ticket_id: str
    fields: List[str]


Effect = Annotated[
    Union[
        TicketCreated,
        TicketAssigned,
        TicketUnassigned,
        TicketAccepted,
        TicketRejected,
        StatusChanged,
        Resolved,
        TicketUpdated,
    ],
    Field(discriminator="type"),
]


def serialize_effects(effects: List[Any]) -> List[Dict[str, Any]]:
    """Effects as plain dicts for audit storage"""
    return [effect.model_dump() for effect in effects]
