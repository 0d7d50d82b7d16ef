"""
Sentry Integration for Error Tracking

Configures Sentry for:
- Unhandled errors (lifecycle rejections are expected and never reported)
- Request tracking through the FastAPI integration
- User context for the authenticated actor

Usage:
    from helpdesk.utils.monitoring import init_sentry

    # In main.py or app startup
    init_sentry()
"""

import logging
from typing import Optional, Dict, Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.pymongo import PyMongoIntegration

from helpdesk.config import settings
from helpdesk.lifecycle.errors import LifecycleError


logger = logging.getLogger(__name__)


def init_sentry(
    dsn: Optional[str] = None,
    environment: Optional[str] = None,
    traces_sample_rate: float = 0.2,
    send_default_pii: bool = False,
) -> bool:
    """
    Initialize Sentry SDK with FastAPI integration

    Args:
        dsn: Sentry DSN (defaults to SENTRY_DSN setting)
        environment: Environment name (defaults to ENVIRONMENT setting)
        traces_sample_rate: APM sampling rate (0.0 - 1.0)
        send_default_pii: Send personally identifiable information

    Returns:
        bool: True if Sentry initialized successfully, False otherwise
    """
    dsn = dsn or settings.sentry_dsn

    if not dsn:
        logger.info("SENTRY_DSN not configured. Error tracking disabled.")
        return False

    environment = environment or settings.environment

    integrations = [
        FastApiIntegration(
            transaction_style="url",
            failed_request_status_codes={*range(500, 600)},
        ),
        LoggingIntegration(
            level=logging.INFO,
            event_level=logging.ERROR,
        ),
        PyMongoIntegration(),
    ]

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            integrations=integrations,
            traces_sample_rate=traces_sample_rate,
            send_default_pii=send_default_pii,
            attach_stacktrace=True,
            max_breadcrumbs=50,
            before_send=_before_send_filter,
        )
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False

    sentry_sdk.set_tag("application", "helpdesk")
    sentry_sdk.set_tag("service", "api")
    logger.info(f"Sentry initialized - Environment: {environment}")
    return True


def _before_send_filter(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Drop events that are not errors

    Health checks and rejected ticket operations (forbidden, conflicting,
    invalid) are part of normal traffic.
    """
    if event.get("request", {}).get("url", "").endswith("/api/health"):
        return None

    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]
        if isinstance(exc_value, LifecycleError):
            return None

    return event


def set_user_context(user_id: str, role: Optional[str] = None) -> None:
    """Attach the authenticated user to subsequent events"""
    if not sentry_sdk.is_initialized():
        return

    context = {"id": user_id}
    if role:
        context["role"] = role
    sentry_sdk.set_user(context)


def capture_exception(
    error: Exception,
    tags: Optional[Dict[str, str]] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Manually capture exception to Sentry

    Args:
        error: Exception to capture
        tags: Additional tags
        extra: Additional context
    """
    if not sentry_sdk.is_initialized():
        return

    with sentry_sdk.new_scope() as scope:
        for key, value in (tags or {}).items():
            scope.set_tag(key, value)
        for key, value in (extra or {}).items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(error)


def flush_events(timeout: float = 2.0) -> None:
    """Flush pending Sentry events (useful before shutdown)"""
    if not sentry_sdk.is_initialized():
        return

    sentry_sdk.flush(timeout=timeout)
