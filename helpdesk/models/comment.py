"""
Comment models
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
import secrets


class Comment(BaseModel):
    """Ticket-scoped note. Internal comments are hidden from customers."""
    comment_id: str = Field(default_factory=lambda: f"cmt_{secrets.token_hex(8)}")
    ticket_id: str
    author_id: str
    content: str
    is_internal: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    edited_at: Optional[datetime] = None
    edited_by: Optional[str] = None

    @property
    def is_edited(self) -> bool:
        return self.edited_at is not None

    class Config:
        json_encoders = {datetime: lambda v: v.isoformat()}


class CommentCreate(BaseModel):
    """Model for creating a new comment"""
    content: str = Field(..., min_length=1, max_length=1000)
    is_internal: bool = False


class CommentUpdate(BaseModel):
    """Model for editing a comment"""
    content: str = Field(..., min_length=1, max_length=1000)
