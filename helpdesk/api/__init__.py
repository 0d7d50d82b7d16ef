"""
API endpoints
"""
from .auth_routes import router as auth_router
from .ticket_routes import router as ticket_router
from .comment_routes import router as comment_router
from .user_routes import router as user_router
from .health_routes import router as health_router

__all__ = [
    "auth_router",
    "ticket_router",
    "comment_router",
    "user_router",
    "health_router",
]
