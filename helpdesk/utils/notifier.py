"""
SMTP notifications for ticket lifecycle effects
"""
from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Any, Dict, Iterable, List, Optional, Tuple

from helpdesk.config import settings
from helpdesk.database import user_operations
from helpdesk.lifecycle import effects as fx
from helpdesk.models import Ticket


logger = logging.getLogger(__name__)


def _send_email_sync(subject: str, body: str, to_email: str) -> None:
    from_email = settings.smtp_from or settings.smtp_username
    if not from_email:
        raise ValueError("SMTP_FROM or SMTP_USERNAME must be set")

    message = EmailMessage()
    message["From"] = from_email
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(body)

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
        if settings.smtp_use_tls:
            server.starttls()
        if settings.smtp_username and settings.smtp_password:
            server.login(settings.smtp_username, settings.smtp_password)
        server.send_message(message)


def _ticket_footer(ticket: Ticket) -> List[str]:
    return [
        "",
        f"Ticket ID: {ticket.ticket_id}",
        f"Title: {ticket.title}",
        f"Priority: {ticket.priority.value}",
        f"Status: {ticket.status.value}",
    ]


def build_messages(ticket: Ticket, effects: Iterable[Any]) -> List[Tuple[str, str, str]]:
    """
    Decide who hears about each effect

    Returns:
        List of (recipient user_id, subject, body)
    """
    messages = []
    for effect in effects:
        if isinstance(effect, fx.TicketAssigned):
            messages.append((
                effect.agent_id,
                f"[Helpdesk] Ticket assigned to you: {ticket.title}",
                "\n".join([
                    "A ticket has been assigned to you and is waiting for your acceptance.",
                    *_ticket_footer(ticket),
                ]),
            ))
        elif isinstance(effect, fx.TicketRejected):
            # Self-assigned tickets have nobody else to tell
            if not ticket.assigned_by or ticket.assigned_by == effect.agent_id:
                continue
            messages.append((
                ticket.assigned_by,
                f"[Helpdesk] Assignment rejected: {ticket.title}",
                "\n".join([
                    "The assigned agent rejected the ticket. It is back in the unassigned queue.",
                    f"Reason: {effect.reason}",
                    *_ticket_footer(ticket),
                ]),
            ))
        elif isinstance(effect, fx.StatusChanged):
            messages.append((
                ticket.created_by,
                f"[Helpdesk] Ticket {effect.to_status.value.replace('_', ' ')}: {ticket.title}",
                "\n".join([
                    f"Your ticket moved from {effect.from_status.value} to {effect.to_status.value}.",
                    *_ticket_footer(ticket),
                ]),
            ))
    return messages


class TicketNotifier:
    """Sends emails for lifecycle effects. Failures never propagate."""

    def __init__(self, enabled: Optional[bool] = None):
        self.enabled = settings.notifications_enabled if enabled is None else enabled

    async def dispatch(self, ticket: Ticket, effects: List[Any]) -> int:
        """
        Notify the people affected by ``effects``

        Args:
            ticket: Ticket after the transition
            effects: Side-effect descriptors from the engine

        Returns:
            Number of emails sent
        """
        if not self.enabled or not effects:
            return 0

        sent = 0
        for user_id, subject, body in build_messages(ticket, effects):
            if await self._send_to_user(user_id, subject, body):
                sent += 1
        return sent

    async def _send_to_user(self, user_id: str, subject: str, body: str) -> bool:
        user = await user_operations.find_user_by_id(user_id)
        if not user or not user.is_active:
            logger.warning(f"No active recipient {user_id}; skipping notification")
            return False

        try:
            await asyncio.to_thread(_send_email_sync, subject, body, user.email)
            logger.info(f"Notification sent to {user_id}: {subject}")
            return True
        except Exception as e:
            logger.error(f"Failed to send notification to {user_id}: {e}", exc_info=True)
            return False


def describe(effects: Iterable[Any]) -> List[Dict[str, Any]]:
    """Effects in a log-friendly shape"""
    return [{"type": effect.type, "ticket_id": effect.ticket_id} for effect in effects]
