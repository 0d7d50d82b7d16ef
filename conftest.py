import copy
import itertools
import os
import re
from typing import Any, Dict, List

# Ensure required env vars exist before importing app modules.
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")

_ids = itertools.count(1)


def _compare(value: Any, condition: Any) -> bool:
    if isinstance(condition, dict) and any(key.startswith("$") for key in condition):
        for op, expected in condition.items():
            if op == "$in":
                if value not in expected:
                    return False
            elif op == "$gte":
                if value is None or value < expected:
                    return False
            elif op == "$lte":
                if value is None or value > expected:
                    return False
            elif op == "$ne":
                if value == expected:
                    return False
            elif op == "$exists":
                if (value is not None) != expected:
                    return False
            elif op == "$regex":
                flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
                values = value if isinstance(value, list) else [value]
                if not any(isinstance(v, str) and re.search(expected, v, flags) for v in values):
                    return False
            elif op == "$options":
                continue
            else:
                raise NotImplementedError(f"FakeCollection does not support {op}")
        return True
    if isinstance(value, list) and not isinstance(condition, list):
        return condition in value
    return value == condition


def matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
        elif not _compare(document.get(key), condition):
            return False
    return True


class _Result:
    def __init__(self, **kwargs):
        self.__dict__.update(kwargs)


class FakeCollection:
    """In-memory stand-in for a Motor collection"""

    def __init__(self) -> None:
        self.documents: List[Dict[str, Any]] = []
        self.inserted = []
        self.updated = []
        self.aggregate_results = []
        self.aggregate_pipelines = []
        # Hook run before each update_one; lets tests change the store mid-operation
        self.before_update = None

    def seed(self, *documents: Dict[str, Any]) -> None:
        for document in documents:
            stored = copy.deepcopy(document)
            stored.setdefault("_id", f"oid_{next(_ids)}")
            self.documents.append(stored)

    async def insert_one(self, document: Dict[str, Any], *args, **kwargs):
        self.inserted.append({"document": document, "args": args, "kwargs": kwargs})
        inserted_id = document.get("_id", f"oid_{next(_ids)}")
        stored = copy.deepcopy(document)
        stored["_id"] = inserted_id
        self.documents.append(stored)
        return _Result(inserted_id=inserted_id)

    async def update_one(self, filter_dict, update_dict, *args, **kwargs):
        if self.before_update is not None:
            hook = self.before_update
            self.before_update = None
            hook(self)

        self.updated.append({"filter": filter_dict, "update": update_dict})
        for document in self.documents:
            if matches(document, filter_dict):
                document.update(copy.deepcopy(update_dict.get("$set", {})))
                return _Result(matched_count=1, modified_count=1)
        return _Result(matched_count=0, modified_count=0)

    async def find_one(self, query=None, *args, **kwargs):
        for document in self.documents:
            if matches(document, query or {}):
                return copy.deepcopy(document)
        return None

    def find(self, query=None, *args, **kwargs):
        return FakeCursor([copy.deepcopy(d) for d in self.documents if matches(d, query or {})])

    async def count_documents(self, query=None, *args, **kwargs):
        return sum(1 for d in self.documents if matches(d, query or {}))

    async def delete_one(self, query, *args, **kwargs):
        for index, document in enumerate(self.documents):
            if matches(document, query):
                del self.documents[index]
                return _Result(deleted_count=1)
        return _Result(deleted_count=0)

    async def delete_many(self, query, *args, **kwargs):
        keep = [d for d in self.documents if not matches(d, query)]
        removed = len(self.documents) - len(keep)
        self.documents = keep
        return _Result(deleted_count=removed)

    def aggregate(self, pipeline, *args, **kwargs):
        self.aggregate_pipelines.append(pipeline)
        return FakeCursor(list(self.aggregate_results))


class FakeCursor:
    def __init__(self, items):
        self.items = list(items)

    def sort(self, key, direction=1):
        keys = key if isinstance(key, list) else [(key, direction)]
        for field, field_direction in reversed(keys):
            self.items.sort(
                key=lambda d: (d.get(field) is not None, d.get(field) if d.get(field) is not None else 0),
                reverse=field_direction == -1,
            )
        return self

    def skip(self, count: int):
        self.items = self.items[count:]
        return self

    def limit(self, limit_count: int):
        self.items = self.items[:limit_count]
        return self

    async def to_list(self, length=None):
        return self.items if length is None else self.items[:length]

    def __aiter__(self):
        self._iter = iter(self.items)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


import pytest
from helpdesk.database import (
    COLLECTION_TICKETS,
    COLLECTION_USERS,
    COLLECTION_COMMENTS,
    COLLECTION_AUDIT_LOGS,
)
from helpdesk.middleware.rate_limiter import limiter


@pytest.fixture
def fake_db(monkeypatch):
    collections = {
        COLLECTION_TICKETS: FakeCollection(),
        COLLECTION_USERS: FakeCollection(),
        COLLECTION_COMMENTS: FakeCollection(),
        COLLECTION_AUDIT_LOGS: FakeCollection(),
    }

    def _get_collection(name: str) -> FakeCollection:
        return collections[name]

    monkeypatch.setattr("helpdesk.database.get_collection", _get_collection)
    monkeypatch.setattr("helpdesk.database.ticket_operations.get_collection", _get_collection)
    monkeypatch.setattr("helpdesk.database.user_operations.get_collection", _get_collection)
    monkeypatch.setattr("helpdesk.database.comment_operations.get_collection", _get_collection)

    return collections


@pytest.fixture(autouse=True)
def disable_rate_limits(monkeypatch):
    monkeypatch.setattr(limiter, "enabled", False)
