"""
Shared FastAPI dependencies
"""
from typing import Optional

from helpdesk.lifecycle.service import TicketLifecycleService

_service: Optional[TicketLifecycleService] = None


def get_lifecycle_service() -> TicketLifecycleService:
    """Process-wide lifecycle service (overridden in tests)"""
    global _service
    if _service is None:
        _service = TicketLifecycleService()
    return _service
