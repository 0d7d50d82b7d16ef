"""
Pydantic models for data validation
"""
from .ticket import (
    Ticket,
    TicketCreate,
    TicketContentUpdate,
    AssignTicketRequest,
    RejectTicketRequest,
    StatusUpdateRequest,
    TicketStatus,
    TicketPriority,
    TicketCategory,
    AcceptanceStatus,
    AssignmentState,
    Unassigned,
    PendingAcceptance,
    Accepted,
    Rejected,
)
from .user import (
    Actor,
    Role,
    STAFF_ROLES,
    User,
    UserCreate,
    UserUpdate,
    RegisterRequest,
    LoginRequest,
    PasswordChangeRequest,
    ProfileUpdate,
)
from .comment import Comment, CommentCreate, CommentUpdate
from .audit_log import AuditLog, AuditLogCreate, AuditOperation

__all__ = [
    "Ticket",
    "TicketCreate",
    "TicketContentUpdate",
    "AssignTicketRequest",
    "RejectTicketRequest",
    "StatusUpdateRequest",
    "TicketStatus",
    "TicketPriority",
    "TicketCategory",
    "AcceptanceStatus",
    "AssignmentState",
    "Unassigned",
    "PendingAcceptance",
    "Accepted",
    "Rejected",
    "Actor",
    "Role",
    "STAFF_ROLES",
    "User",
    "UserCreate",
    "UserUpdate",
    "RegisterRequest",
    "LoginRequest",
    "PasswordChangeRequest",
    "ProfileUpdate",
    "Comment",
    "CommentCreate",
    "CommentUpdate",
    "AuditLog",
    "AuditLogCreate",
    "AuditOperation",
]
