"""
Main FastAPI application for the Helpdesk ticketing service
"""
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from helpdesk.config import settings
from helpdesk.database import ensure_indexes, close_connection
from helpdesk.api import auth_router, ticket_router, comment_router, user_router, health_router
from helpdesk.utils.monitoring import init_sentry, flush_events
from helpdesk.utils.secure_logging import configure_secure_logging
from helpdesk.middleware.rate_limiter import limiter
from helpdesk.middleware.cors import get_cors_origins
from helpdesk.security.error_handler import register_exception_handlers

# Configure secure logging (masks tokens, hashes and emails automatically)
configure_secure_logging(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format_type=settings.log_format,
    include_trace_id=True,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Starting Helpdesk service...")

    init_sentry()

    await ensure_indexes()
    logger.info("Database indexes created/verified")

    yield

    logger.info("Shutting down...")

    flush_events(timeout=2.0)

    await close_connection()
    logger.info("Database connection closed")


app = FastAPI(
    title="Helpdesk",
    description="IT support ticketing with role-based assignment and acceptance workflow",
    version="1.0.0",
    lifespan=lifespan
)

# Rate limiter shared by all routers
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS (specific origins only, localhost filtered in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
    ],
    max_age=600,
)

# Lifecycle errors → 4xx, everything else → safe 500
register_exception_handlers(app)

app.include_router(health_router)
app.include_router(auth_router)
app.include_router(ticket_router)
app.include_router(comment_router)
app.include_router(user_router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "Helpdesk",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "health": "/api/health",
            "login": "POST /api/auth/login",
            "create_ticket": "POST /api/tickets",
            "list_tickets": "GET /api/tickets",
            "assign_ticket": "PUT /api/tickets/{ticket_id}/assign",
            "update_status": "PUT /api/tickets/{ticket_id}/status",
            "comments": "GET /api/comments/ticket/{ticket_id}",
            "users": "GET /api/users",
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload
    )
