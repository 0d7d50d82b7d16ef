"""
Database operations for tickets and their audit trail
"""
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING

from helpdesk.database import get_collection, COLLECTION_TICKETS, COLLECTION_AUDIT_LOGS
from helpdesk.models import AuditLog, AuditLogCreate, AuditOperation, Ticket, TicketPriority, TicketStatus

SORTABLE_FIELDS = {"created_at", "updated_at", "priority", "status", "title", "due_date"}


async def insert_ticket(ticket: Ticket) -> Ticket:
    """
    Insert a freshly created ticket

    Args:
        ticket: Ticket produced by the lifecycle engine

    Returns:
        The stored ticket
    """
    collection = get_collection(COLLECTION_TICKETS)
    await collection.insert_one(ticket.to_document())
    return ticket


async def find_ticket(ticket_id: str) -> Optional[Ticket]:
    """
    Load a ticket by ID

    Args:
        ticket_id: ID of the ticket

    Returns:
        Ticket or None if it doesn't exist
    """
    collection = get_collection(COLLECTION_TICKETS)
    document = await collection.find_one({"ticket_id": ticket_id})
    if not document:
        return None
    return Ticket.from_document(document)


async def replace_ticket_if_unchanged(ticket: Ticket, expected_version: int) -> bool:
    """
    Write ``ticket`` only if the stored revision is still ``expected_version``

    The stored ``lock_version`` is bumped on success, so a concurrent writer
    that read the same revision will miss.

    Args:
        ticket: New ticket state
        expected_version: ``lock_version`` the new state was computed from

    Returns:
        True if the write won, False if the ticket changed underneath us
    """
    collection = get_collection(COLLECTION_TICKETS)

    document = ticket.to_document()
    document["lock_version"] = expected_version + 1

    result = await collection.update_one(
        {"ticket_id": ticket.ticket_id, "lock_version": expected_version},
        {"$set": document},
    )
    return result.matched_count == 1


async def delete_ticket(ticket_id: str) -> bool:
    """Delete a ticket. Returns True if something was removed."""
    collection = get_collection(COLLECTION_TICKETS)
    result = await collection.delete_one({"ticket_id": ticket_id})
    return result.deleted_count == 1


def build_ticket_query(
    status: Optional[TicketStatus] = None,
    priority: Optional[TicketPriority] = None,
    category: Optional[str] = None,
    assigned_to: Optional[str] = None,
    unassigned: bool = False,
    created_by: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build a MongoDB filter for ticket listings

    Returns:
        Filter dict usable with ``find`` / ``count_documents``
    """
    query: Dict[str, Any] = {}

    if created_by:
        query["created_by"] = created_by
    if status:
        query["status"] = status
    if priority:
        query["priority"] = priority
    if category:
        query["category"] = category
    if unassigned:
        query["assigned_to"] = None
    elif assigned_to:
        query["assigned_to"] = assigned_to

    if search:
        pattern = re.escape(search.strip())
        query["$or"] = [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
            {"tags": {"$regex": pattern, "$options": "i"}},
        ]

    if date_from or date_to:
        query["created_at"] = {}
        if date_from:
            query["created_at"]["$gte"] = date_from
        if date_to:
            query["created_at"]["$lte"] = date_to

    return query


async def list_tickets(
    query: Dict[str, Any],
    page: int = 1,
    limit: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Tuple[List[Ticket], int]:
    """
    List tickets matching ``query``

    Args:
        query: Filter built with ``build_ticket_query``
        page: 1-based page number
        limit: Page size
        sort_by: Field to sort by (falls back to created_at)
        sort_order: "asc" or "desc"

    Returns:
        Tuple of (tickets on this page, total matching)
    """
    collection = get_collection(COLLECTION_TICKETS)

    if sort_by not in SORTABLE_FIELDS:
        sort_by = "created_at"
    direction = ASCENDING if sort_order == "asc" else DESCENDING
    skip = (max(page, 1) - 1) * limit

    cursor = collection.find(query).sort(sort_by, direction).skip(skip).limit(limit)

    tickets = []
    async for document in cursor:
        tickets.append(Ticket.from_document(document))

    total = await collection.count_documents(query)
    return tickets, total


async def ticket_stats(match: Dict[str, Any]) -> Dict[str, Any]:
    """
    Aggregate ticket counts by status and priority

    Args:
        match: Filter restricting which tickets are counted

    Returns:
        Dict with totals and average resolution time in hours
    """
    collection = get_collection(COLLECTION_TICKETS)

    def _count(field: str, value: str) -> Dict[str, Any]:
        return {"$sum": {"$cond": [{"$eq": [f"${field}", value]}, 1, 0]}}

    pipeline = [
        {"$match": match},
        {
            "$group": {
                "_id": None,
                "total": {"$sum": 1},
                "open": _count("status", TicketStatus.OPEN.value),
                "in_progress": _count("status", TicketStatus.IN_PROGRESS.value),
                "resolved": _count("status", TicketStatus.RESOLVED.value),
                "closed": _count("status", TicketStatus.CLOSED.value),
                "urgent": _count("priority", TicketPriority.URGENT.value),
                "high": _count("priority", TicketPriority.HIGH.value),
                "medium": _count("priority", TicketPriority.MEDIUM.value),
                "low": _count("priority", TicketPriority.LOW.value),
                "unassigned": {"$sum": {"$cond": [{"$eq": ["$assigned_to", None]}, 1, 0]}},
                "avg_resolution_ms": {
                    "$avg": {
                        "$cond": [
                            {"$ne": ["$resolved_at", None]},
                            {"$subtract": ["$resolved_at", "$created_at"]},
                            None,
                        ]
                    }
                },
            }
        },
    ]

    results = await collection.aggregate(pipeline).to_list(length=1)
    stats = results[0] if results else {}

    avg_ms = stats.get("avg_resolution_ms")
    return {
        "total": stats.get("total", 0),
        "open": stats.get("open", 0),
        "in_progress": stats.get("in_progress", 0),
        "resolved": stats.get("resolved", 0),
        "closed": stats.get("closed", 0),
        "unassigned": stats.get("unassigned", 0),
        "by_priority": {
            "urgent": stats.get("urgent", 0),
            "high": stats.get("high", 0),
            "medium": stats.get("medium", 0),
            "low": stats.get("low", 0),
        },
        "avg_resolution_hours": round(avg_ms / 3_600_000, 1) if avg_ms else None,
    }


async def insert_audit_log(
    ticket_id: str,
    actor_id: str,
    operation: AuditOperation,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    effects: Optional[List[Dict[str, Any]]] = None,
) -> AuditLog:
    """
    Record a ticket operation in the audit trail

    Returns:
        Created audit log
    """
    collection = get_collection(COLLECTION_AUDIT_LOGS)

    entry = AuditLogCreate(
        ticket_id=ticket_id,
        actor_id=actor_id,
        operation=operation,
        before=before or {},
        after=after or {},
        effects=effects or [],
    ).model_dump()
    entry["timestamp"] = datetime.utcnow()

    result = await collection.insert_one(entry)
    return AuditLog.model_validate({**entry, "_id": str(result.inserted_id)})


async def find_audit_logs(
    ticket_id: str,
    operation: Optional[AuditOperation] = None,
) -> List[AuditLog]:
    """
    Audit trail for a ticket, oldest first

    Args:
        ticket_id: ID of the ticket
        operation: Only return entries of this type

    Returns:
        List of audit logs
    """
    collection = get_collection(COLLECTION_AUDIT_LOGS)

    query: Dict[str, Any] = {"ticket_id": ticket_id}
    if operation:
        query["operation"] = operation

    cursor = collection.find(query).sort("timestamp", ASCENDING)

    logs = []
    async for document in cursor:
        document["_id"] = str(document["_id"])
        logs.append(AuditLog.model_validate(document))
    return logs
