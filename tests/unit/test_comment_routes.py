from datetime import datetime, timedelta

from fastapi import FastAPI
from fastapi.testclient import TestClient
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

import pytest

from helpdesk.api.comment_routes import router as comments_router
from helpdesk.api.dependencies import get_lifecycle_service
from helpdesk.database import COLLECTION_COMMENTS, COLLECTION_TICKETS
from helpdesk.lifecycle.service import TicketLifecycleService
from helpdesk.middleware.auth import get_current_actor
from helpdesk.middleware.rate_limiter import limiter
from helpdesk.models import Actor, Comment, Role, Ticket
from helpdesk.security.error_handler import register_exception_handlers
from helpdesk.utils.notifier import TicketNotifier

CUSTOMER = Actor(user_id="user_customer", role=Role.CUSTOMER)
OTHER_CUSTOMER = Actor(user_id="user_other", role=Role.CUSTOMER)
AGENT = Actor(user_id="user_agent", role=Role.AGENT)
ADMIN = Actor(user_id="user_admin", role=Role.ADMIN)


def build_app(actor: Actor) -> FastAPI:
    app = FastAPI()
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app)
    app.include_router(comments_router)
    app.dependency_overrides[get_lifecycle_service] = lambda: TicketLifecycleService(
        notifier=TicketNotifier(enabled=False)
    )
    app.dependency_overrides[get_current_actor] = lambda: actor
    return app


@pytest.fixture
def ticket(fake_db) -> Ticket:
    ticket = Ticket(
        ticket_id="tkt_0001",
        title="Laptop battery",
        description="Battery drains in an hour",
        created_by=CUSTOMER.user_id,
        created_at=datetime(2026, 4, 1, 8, 0),
    )
    fake_db[COLLECTION_TICKETS].seed(ticket.to_document())
    return ticket


def seed_comment(fake_db, comment_id: str, author: Actor, is_internal: bool = False, age_minutes: int = 1) -> Comment:
    comment = Comment(
        comment_id=comment_id,
        ticket_id="tkt_0001",
        author_id=author.user_id,
        content=f"Note from {author.user_id}",
        is_internal=is_internal,
        created_at=datetime.utcnow() - timedelta(minutes=age_minutes),
    )
    fake_db[COLLECTION_COMMENTS].seed(comment.model_dump())
    return comment


@pytest.mark.unit
def test_customer_comments_on_own_ticket(fake_db, ticket):
    client = TestClient(build_app(CUSTOMER))

    response = client.post("/api/comments/ticket/tkt_0001", json={"content": "  Still happening  "})

    assert response.status_code == 201
    comment = response.json()["comment"]
    assert comment["content"] == "Still happening"
    assert comment["author_id"] == CUSTOMER.user_id
    assert comment["is_edited"] is False
    assert len(fake_db[COLLECTION_COMMENTS].documents) == 1


@pytest.mark.unit
def test_customer_cannot_post_internal_comment(fake_db, ticket):
    client = TestClient(build_app(CUSTOMER))

    response = client.post("/api/comments/ticket/tkt_0001", json={"content": "psst", "is_internal": True})

    assert response.status_code == 403
    assert fake_db[COLLECTION_COMMENTS].documents == []


@pytest.mark.unit
def test_cannot_comment_on_someone_elses_ticket(fake_db, ticket):
    client = TestClient(build_app(OTHER_CUSTOMER))

    response = client.post("/api/comments/ticket/tkt_0001", json={"content": "Hello"})

    assert response.status_code == 403


@pytest.mark.unit
def test_comment_on_missing_ticket_is_404(fake_db):
    client = TestClient(build_app(AGENT))

    response = client.post("/api/comments/ticket/tkt_missing", json={"content": "Hello"})

    assert response.status_code == 404


@pytest.mark.unit
def test_internal_comments_hidden_from_customer(fake_db, ticket):
    seed_comment(fake_db, "cmt_public", AGENT, age_minutes=5)
    seed_comment(fake_db, "cmt_internal", AGENT, is_internal=True, age_minutes=3)

    response = TestClient(build_app(CUSTOMER)).get("/api/comments/ticket/tkt_0001")
    assert [c["comment_id"] for c in response.json()["comments"]] == ["cmt_public"]
    assert response.json()["pagination"]["total"] == 1

    response = TestClient(build_app(AGENT)).get("/api/comments/ticket/tkt_0001")
    assert [c["comment_id"] for c in response.json()["comments"]] == ["cmt_public", "cmt_internal"]


@pytest.mark.unit
def test_customer_cannot_fetch_internal_comment_directly(fake_db, ticket):
    seed_comment(fake_db, "cmt_internal", AGENT, is_internal=True)

    response = TestClient(build_app(CUSTOMER)).get("/api/comments/cmt_internal")

    assert response.status_code == 403


@pytest.mark.unit
def test_author_edits_within_window(fake_db, ticket):
    seed_comment(fake_db, "cmt_1", CUSTOMER, age_minutes=2)
    client = TestClient(build_app(CUSTOMER))

    response = client.put("/api/comments/cmt_1", json={"content": "Fixed typo"})

    assert response.status_code == 200
    comment = response.json()["comment"]
    assert comment["content"] == "Fixed typo"
    assert comment["is_edited"] is True
    assert comment["edited_by"] == CUSTOMER.user_id
    assert fake_db[COLLECTION_COMMENTS].documents[0]["content"] == "Fixed typo"


@pytest.mark.unit
def test_edit_after_window_is_forbidden(fake_db, ticket):
    seed_comment(fake_db, "cmt_1", CUSTOMER, age_minutes=60)
    client = TestClient(build_app(CUSTOMER))

    response = client.put("/api/comments/cmt_1", json={"content": "Too late"})

    assert response.status_code == 403


@pytest.mark.unit
def test_only_author_can_edit(fake_db, ticket):
    seed_comment(fake_db, "cmt_1", CUSTOMER)
    client = TestClient(build_app(ADMIN))

    response = client.put("/api/comments/cmt_1", json={"content": "Admin rewrite"})

    assert response.status_code == 403


@pytest.mark.unit
def test_delete_by_admin_or_author(fake_db, ticket):
    seed_comment(fake_db, "cmt_1", CUSTOMER)
    seed_comment(fake_db, "cmt_2", CUSTOMER)

    assert TestClient(build_app(AGENT)).delete("/api/comments/cmt_1").status_code == 403
    assert TestClient(build_app(CUSTOMER)).delete("/api/comments/cmt_1").status_code == 200
    assert TestClient(build_app(ADMIN)).delete("/api/comments/cmt_2").status_code == 200
    assert fake_db[COLLECTION_COMMENTS].documents == []


@pytest.mark.unit
def test_missing_comment_is_404(fake_db, ticket):
    response = TestClient(build_app(AGENT)).get("/api/comments/cmt_missing")

    assert response.status_code == 404
