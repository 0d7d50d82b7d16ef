"""
Ticket models

A ticket's assignment is a single tagged value (``assignment``) instead of
independent ``assigned_to`` / ``acceptance_status`` fields, so the pairing
between the two can't drift. The flat fields are still exposed as computed
properties and persisted next to ``assignment`` for querying.
"""
import secrets
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, computed_field


class TicketStatus(str, Enum):
    """Ticket status values"""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    """Ticket priority levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketCategory(str, Enum):
    """Ticket categories"""
    TECHNICAL = "technical"
    BILLING = "billing"
    GENERAL = "general"
    FEATURE_REQUEST = "feature_request"
    BUG_REPORT = "bug_report"
    ACCOUNT = "account"
    OTHER = "other"


class AcceptanceStatus(str, Enum):
    """Whether the assigned agent has acknowledged the ticket"""
    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# ============================================================
# Assignment state
# ============================================================

class Unassigned(BaseModel):
    """Nobody owns the ticket"""
    state: Literal["none"] = "none"


class PendingAcceptance(BaseModel):
    """Assigned to an agent who has not answered yet"""
    state: Literal["pending"] = "pending"
    agent_id: str


class Accepted(BaseModel):
    """Assigned agent accepted the ticket"""
    state: Literal["accepted"] = "accepted"
    agent_id: str


class Rejected(BaseModel):
    """
    Released back to the unassigned pool by the agent who rejected it.

    The ticket has no owner in this state; ``agent_id`` and ``reason``
    describe the rejection that released it.
    """
    state: Literal["rejected"] = "rejected"
    agent_id: str
    reason: str


AssignmentState = Annotated[
    Union[Unassigned, PendingAcceptance, Accepted, Rejected],
    Field(discriminator="state"),
]

# Fields derived from ``assignment``; never read back from storage.
PROJECTED_FIELDS = ("assigned_to", "acceptance_status", "rejection_reason")


class Ticket(BaseModel):
    """Complete ticket model"""
    ticket_id: str = Field(default_factory=lambda: f"tkt_{secrets.token_hex(8)}")
    title: str
    description: str
    category: TicketCategory = TicketCategory.GENERAL
    priority: TicketPriority = TicketPriority.MEDIUM
    tags: List[str] = Field(default_factory=list)
    status: TicketStatus = TicketStatus.OPEN
    assignment: AssignmentState = Field(default_factory=Unassigned)
    created_by: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    lock_version: int = 0

    @computed_field
    @property
    def assigned_to(self) -> Optional[str]:
        if isinstance(self.assignment, (PendingAcceptance, Accepted)):
            return self.assignment.agent_id
        return None

    @computed_field
    @property
    def acceptance_status(self) -> AcceptanceStatus:
        # A rejected ticket has been released, so it reads as unowned.
        if isinstance(self.assignment, Rejected):
            return AcceptanceStatus.NONE
        return AcceptanceStatus(self.assignment.state)

    @computed_field
    @property
    def rejection_reason(self) -> Optional[str]:
        if isinstance(self.assignment, Rejected):
            return self.assignment.reason
        return None

    def to_document(self) -> Dict[str, Any]:
        """Serialize for MongoDB (keeps datetimes native)"""
        return self.model_dump()

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Ticket":
        """Build a ticket from a stored document"""
        data = {
            key: value for key, value in document.items()
            if key != "_id" and key not in PROJECTED_FIELDS
        }
        return cls.model_validate(data)

    class Config:
        json_encoders = {datetime: lambda v: v.isoformat()}


# ============================================================
# Request models
# ============================================================

class TicketCreate(BaseModel):
    """Model for creating a new ticket"""
    title: str = Field(..., max_length=200)
    description: str = Field(..., max_length=2000)
    priority: TicketPriority = TicketPriority.MEDIUM
    category: TicketCategory = TicketCategory.GENERAL
    tags: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Cannot access dashboard",
                "description": "Login fails after the password reset this morning",
                "priority": "high",
                "category": "technical",
                "tags": ["login", "dashboard"],
            }
        }


class TicketContentUpdate(BaseModel):
    """Model for editing ticket content (never status or assignment)"""
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    priority: Optional[TicketPriority] = None
    category: Optional[TicketCategory] = None
    tags: Optional[List[str]] = None
    due_date: Optional[datetime] = None


class AssignTicketRequest(BaseModel):
    """Assign to an agent, or unassign with ``agent_id: null``"""
    agent_id: Optional[str] = None


class RejectTicketRequest(BaseModel):
    reason: str = Field(..., max_length=500)


class StatusUpdateRequest(BaseModel):
    status: TicketStatus
