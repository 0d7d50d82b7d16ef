"""
Database operations for users
"""
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pymongo import DESCENDING

from helpdesk.database import get_collection, COLLECTION_USERS
from helpdesk.models import Role, User


def _to_user(document: Optional[Dict[str, Any]]) -> Optional[User]:
    if not document:
        return None
    return User.model_validate({k: v for k, v in document.items() if k != "_id"})


async def find_user_by_id(user_id: str) -> Optional[User]:
    collection = get_collection(COLLECTION_USERS)
    return _to_user(await collection.find_one({"user_id": user_id}))


async def find_user_by_email(email: str) -> Optional[User]:
    collection = get_collection(COLLECTION_USERS)
    return _to_user(await collection.find_one({"email": email.lower()}))


async def insert_user(user: User) -> User:
    """
    Insert a new user (email is stored lowercased)

    Returns:
        The stored user
    """
    collection = get_collection(COLLECTION_USERS)
    user = user.model_copy(update={"email": user.email.lower()})
    await collection.insert_one(user.model_dump())
    return user


async def update_user(user_id: str, fields: Dict[str, Any]) -> bool:
    """
    Set ``fields`` on a user

    Returns:
        True if the user exists
    """
    collection = get_collection(COLLECTION_USERS)
    result = await collection.update_one({"user_id": user_id}, {"$set": fields})
    return result.matched_count == 1


async def touch_last_login(user_id: str) -> None:
    await update_user(user_id, {"last_login_at": datetime.utcnow()})


async def delete_user(user_id: str) -> bool:
    collection = get_collection(COLLECTION_USERS)
    result = await collection.delete_one({"user_id": user_id})
    return result.deleted_count == 1


def build_user_query(
    role: Optional[Role] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if role:
        query["role"] = role
    if is_active is not None:
        query["is_active"] = is_active
    if search:
        pattern = re.escape(search.strip())
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}},
            {"department": {"$regex": pattern, "$options": "i"}},
        ]
    return query


async def list_users(query: Dict[str, Any], page: int = 1, limit: int = 20) -> Tuple[List[User], int]:
    """
    List users matching ``query``, newest first

    Returns:
        Tuple of (users on this page, total matching)
    """
    collection = get_collection(COLLECTION_USERS)
    skip = (max(page, 1) - 1) * limit

    cursor = collection.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
    users = []
    async for document in cursor:
        users.append(_to_user(document))

    total = await collection.count_documents(query)
    return users, total


async def list_active_agents() -> List[User]:
    """Agents that can receive assignments"""
    users, _ = await list_users({"role": Role.AGENT, "is_active": True}, page=1, limit=500)
    return users


async def count_users_by_role() -> Dict[str, int]:
    collection = get_collection(COLLECTION_USERS)
    counts = {role.value: 0 for role in Role}
    cursor = collection.aggregate([{"$group": {"_id": "$role", "count": {"$sum": 1}}}])
    async for row in cursor:
        role = row.get("_id")
        if role in counts:
            counts[role] = row["count"]
    counts["total"] = sum(counts[role.value] for role in Role)
    return counts
