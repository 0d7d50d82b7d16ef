"""
Database operations for ticket comments
"""
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING

from helpdesk.database import get_collection, COLLECTION_COMMENTS
from helpdesk.models import Comment


def _to_comment(document: Optional[Dict[str, Any]]) -> Optional[Comment]:
    if not document:
        return None
    return Comment.model_validate({k: v for k, v in document.items() if k != "_id"})


async def insert_comment(comment: Comment) -> Comment:
    collection = get_collection(COLLECTION_COMMENTS)
    await collection.insert_one(comment.model_dump())
    return comment


async def find_comment(comment_id: str) -> Optional[Comment]:
    collection = get_collection(COLLECTION_COMMENTS)
    return _to_comment(await collection.find_one({"comment_id": comment_id}))


async def list_comments(
    ticket_id: str,
    include_internal: bool = True,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Comment], int]:
    """
    Comments on a ticket, oldest first (conversation order)

    Args:
        ticket_id: ID of the ticket
        include_internal: False hides staff-only comments
        page: 1-based page number
        limit: Page size

    Returns:
        Tuple of (comments on this page, total matching)
    """
    collection = get_collection(COLLECTION_COMMENTS)

    query: Dict[str, Any] = {"ticket_id": ticket_id}
    if not include_internal:
        query["is_internal"] = False

    skip = (max(page, 1) - 1) * limit
    cursor = collection.find(query).sort("created_at", ASCENDING).skip(skip).limit(limit)

    comments = []
    async for document in cursor:
        comments.append(_to_comment(document))

    total = await collection.count_documents(query)
    return comments, total


async def update_comment(comment_id: str, fields: Dict[str, Any]) -> bool:
    collection = get_collection(COLLECTION_COMMENTS)
    result = await collection.update_one({"comment_id": comment_id}, {"$set": fields})
    return result.matched_count == 1


async def delete_comment(comment_id: str) -> bool:
    collection = get_collection(COLLECTION_COMMENTS)
    result = await collection.delete_one({"comment_id": comment_id})
    return result.deleted_count == 1


async def delete_ticket_comments(ticket_id: str) -> int:
    collection = get_collection(COLLECTION_COMMENTS)
    result = await collection.delete_many({"ticket_id": ticket_id})
    return result.deleted_count
