"""
MongoDB connection management using Motor (async)
"""
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING
from typing import Optional
import logging

from helpdesk.config import settings

logger = logging.getLogger(__name__)

# Global async client instance
_client: Optional[AsyncIOMotorClient] = None


def get_client() -> AsyncIOMotorClient:
    """
    Get or create async MongoDB client instance

    Returns:
        AsyncIOMotorClient: Async MongoDB client
    """
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(settings.mongodb_uri)
    return _client


def get_database() -> AsyncIOMotorDatabase:
    """
    Get the helpdesk database

    Returns:
        AsyncIOMotorDatabase: Async MongoDB database instance
    """
    client = get_client()
    return client[settings.database_name]


def get_collection(collection_name: str) -> AsyncIOMotorCollection:
    """
    Get a specific collection from the database

    Args:
        collection_name: Name of the collection

    Returns:
        AsyncIOMotorCollection: Async MongoDB collection instance
    """
    db = get_database()
    return db[collection_name]


async def close_connection():
    """Close the async MongoDB connection"""
    global _client
    if _client is not None:
        _client.close()
        _client = None


# Collection names
COLLECTION_TICKETS = "tickets"
COLLECTION_USERS = "users"
COLLECTION_COMMENTS = "comments"
COLLECTION_AUDIT_LOGS = "audit_logs"


async def ensure_indexes():
    """
    Create all required indexes for the database
    """
    db = get_database()

    # Tickets indexes
    await db[COLLECTION_TICKETS].create_index([("ticket_id", ASCENDING)], unique=True)
    await db[COLLECTION_TICKETS].create_index([("status", ASCENDING)])
    await db[COLLECTION_TICKETS].create_index([("priority", ASCENDING)])
    await db[COLLECTION_TICKETS].create_index([("category", ASCENDING)])
    await db[COLLECTION_TICKETS].create_index([("created_by", ASCENDING)])
    await db[COLLECTION_TICKETS].create_index([("assigned_to", ASCENDING), ("status", ASCENDING)])
    await db[COLLECTION_TICKETS].create_index([("created_at", DESCENDING)])

    # Users indexes
    await db[COLLECTION_USERS].create_index([("user_id", ASCENDING)], unique=True)
    await db[COLLECTION_USERS].create_index([("email", ASCENDING)], unique=True)
    await db[COLLECTION_USERS].create_index([("role", ASCENDING), ("is_active", ASCENDING)])

    # Comments indexes
    await db[COLLECTION_COMMENTS].create_index([("comment_id", ASCENDING)], unique=True)
    await db[COLLECTION_COMMENTS].create_index([("ticket_id", ASCENDING), ("created_at", ASCENDING)])
    await db[COLLECTION_COMMENTS].create_index([("author_id", ASCENDING)])

    # Audit logs indexes
    await db[COLLECTION_AUDIT_LOGS].create_index([("ticket_id", ASCENDING), ("timestamp", DESCENDING)])
    await db[COLLECTION_AUDIT_LOGS].create_index([("operation", ASCENDING)])

    logger.info("Database indexes created/verified")
