from collections import defaultdict

import pytest
from pymongo import TEXT

from helpdesk.database import connection
from helpdesk.database import COLLECTION_TICKETS, COLLECTION_USERS


class RecordingCollection:
    def __init__(self):
        self.indexes = []

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))


@pytest.mark.asyncio
@pytest.mark.unit
async def test_ensure_indexes_matches_query_patterns(monkeypatch):
    db = defaultdict(RecordingCollection)
    monkeypatch.setattr(connection, "get_database", lambda: db)

    await connection.ensure_indexes()

    ticket_keys = [keys for keys, _ in db[COLLECTION_TICKETS].indexes]
    assert [("ticket_id", 1)] in ticket_keys
    # Search is a case-insensitive regex, so no text index is kept
    assert all(direction != TEXT for keys in ticket_keys for _, direction in keys)

    unique_user_keys = [keys for keys, kwargs in db[COLLECTION_USERS].indexes if kwargs.get("unique")]
    assert [("email", 1)] in unique_user_keys
