"""
Audit log models
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class AuditOperation(str, Enum):
    """Audit operation types"""
    CREATE_TICKET = "CREATE_TICKET"
    ASSIGN = "ASSIGN"
    UNASSIGN = "UNASSIGN"
    SELF_ASSIGN = "SELF_ASSIGN"
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    UPDATE_STATUS = "UPDATE_STATUS"
    UPDATE_CONTENT = "UPDATE_CONTENT"
    DELETE_TICKET = "DELETE_TICKET"


class AuditLogBase(BaseModel):
    """Base audit log model"""
    ticket_id: str
    actor_id: str
    operation: AuditOperation
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    effects: List[Dict[str, Any]] = Field(default_factory=list)


class AuditLogCreate(AuditLogBase):
    """Model for creating a new audit log"""
    pass


class AuditLog(AuditLogBase):
    """Complete audit log model with timestamp"""
    id: Optional[str] = Field(None, alias="_id")
    timestamp: Optional[datetime] = None

    class Config:
        populate_by_name = True
        json_encoders = {datetime: lambda v: v.isoformat()}
