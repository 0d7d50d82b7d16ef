from datetime import datetime

from fastapi import FastAPI
from fastapi.testclient import TestClient
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

import pytest

from helpdesk.api.dependencies import get_lifecycle_service
from helpdesk.api.ticket_routes import router as tickets_router
from helpdesk.database import COLLECTION_AUDIT_LOGS, COLLECTION_TICKETS, COLLECTION_USERS
from helpdesk.lifecycle.service import TicketLifecycleService
from helpdesk.middleware.auth import get_current_actor
from helpdesk.middleware.rate_limiter import limiter
from helpdesk.models import Accepted, Actor, PendingAcceptance, Role, Ticket, TicketStatus, User
from helpdesk.security.error_handler import register_exception_handlers
from helpdesk.utils.notifier import TicketNotifier

CUSTOMER = Actor(user_id="user_customer", role=Role.CUSTOMER)
OTHER_CUSTOMER = Actor(user_id="user_other", role=Role.CUSTOMER)
MANAGER = Actor(user_id="user_manager", role=Role.MANAGER)
ADMIN = Actor(user_id="user_admin", role=Role.ADMIN)
AGENT = Actor(user_id="user_agent", role=Role.AGENT)


def build_app(actor: Actor) -> FastAPI:
    app = FastAPI()
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app)
    app.include_router(tickets_router)
    app.dependency_overrides[get_lifecycle_service] = lambda: TicketLifecycleService(
        notifier=TicketNotifier(enabled=False)
    )
    act_as(app, actor)
    return app


def act_as(app: FastAPI, actor: Actor) -> None:
    app.dependency_overrides[get_current_actor] = lambda: actor


def seed_ticket(fake_db, **overrides) -> Ticket:
    data = {
        "ticket_id": "tkt_0001",
        "title": "VPN keeps disconnecting",
        "description": "Drops every ten minutes",
        "created_by": CUSTOMER.user_id,
        "created_at": datetime(2026, 3, 2, 9, 0),
    }
    data.update(overrides)
    ticket = Ticket(**data)
    fake_db[COLLECTION_TICKETS].seed(ticket.to_document())
    return ticket


def seed_agent(fake_db, is_active: bool = True) -> None:
    agent = User(
        user_id=AGENT.user_id,
        email="agent@example.com",
        password_hash="x",
        name="Agent Smith",
        role=Role.AGENT,
        is_active=is_active,
    )
    fake_db[COLLECTION_USERS].seed(agent.model_dump())


@pytest.mark.unit
def test_create_ticket_returns_open_unassigned(fake_db):
    client = TestClient(build_app(CUSTOMER))

    response = client.post(
        "/api/tickets",
        json={"title": "Printer jam", "description": "Third floor printer", "priority": "low"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["ticket"]["status"] == "open"
    assert data["ticket"]["assigned_to"] is None
    assert data["ticket"]["acceptance_status"] == "none"
    assert data["ticket"]["created_by"] == CUSTOMER.user_id
    assert data["effects"][0]["type"] == "ticket_created"
    assert fake_db[COLLECTION_TICKETS].inserted
    assert fake_db[COLLECTION_AUDIT_LOGS].inserted


@pytest.mark.unit
def test_create_ticket_blank_title_is_422(fake_db):
    client = TestClient(build_app(CUSTOMER))

    response = client.post("/api/tickets", json={"title": "   ", "description": "Something"})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "E009"
    assert fake_db[COLLECTION_TICKETS].documents == []


@pytest.mark.unit
def test_assign_accept_and_work_ticket(fake_db):
    seed_ticket(fake_db)
    seed_agent(fake_db)
    app = build_app(MANAGER)
    client = TestClient(app)

    response = client.put("/api/tickets/tkt_0001/assign", json={"agent_id": AGENT.user_id})
    assert response.status_code == 200
    assert response.json()["ticket"]["acceptance_status"] == "pending"

    act_as(app, AGENT)
    response = client.put("/api/tickets/tkt_0001/accept")
    assert response.status_code == 200
    assert response.json()["ticket"]["acceptance_status"] == "accepted"
    assert response.json()["ticket"]["status"] == "open"

    for target in ("in_progress", "resolved"):
        response = client.put("/api/tickets/tkt_0001/status", json={"status": target})
        assert response.status_code == 200
        assert response.json()["ticket"]["status"] == target

    ticket = response.json()["ticket"]
    assert ticket["resolved_at"] is not None
    assert ticket["lock_version"] == 4
    assert {e["type"] for e in response.json()["effects"]} == {"status_changed", "resolved"}


@pytest.mark.unit
def test_status_change_before_acceptance_is_conflict(fake_db):
    seed_ticket(fake_db, assignment=PendingAcceptance(agent_id=AGENT.user_id))
    client = TestClient(build_app(AGENT))

    response = client.put("/api/tickets/tkt_0001/status", json={"status": "in_progress"})

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "E013"
    assert error["current_state"]["ticket_id"] == "tkt_0001"
    assert error["current_state"]["acceptance_status"] == "pending"
    assert "trace_id" in error


@pytest.mark.unit
def test_agent_cannot_skip_states(fake_db):
    seed_ticket(fake_db, assignment=Accepted(agent_id=AGENT.user_id))
    client = TestClient(build_app(AGENT))

    response = client.put("/api/tickets/tkt_0001/status", json={"status": "closed"})

    assert response.status_code == 409
    assert fake_db[COLLECTION_TICKETS].documents[0]["status"] == TicketStatus.OPEN


@pytest.mark.unit
def test_unknown_status_value_is_rejected(fake_db):
    seed_ticket(fake_db)
    client = TestClient(build_app(MANAGER))

    response = client.put("/api/tickets/tkt_0001/status", json={"status": "archived"})

    assert response.status_code == 422


@pytest.mark.unit
def test_customer_cannot_assign(fake_db):
    seed_ticket(fake_db)
    seed_agent(fake_db)
    client = TestClient(build_app(CUSTOMER))

    response = client.put("/api/tickets/tkt_0001/assign", json={"agent_id": AGENT.user_id})

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "E006"


@pytest.mark.unit
def test_assign_to_inactive_agent_is_422(fake_db):
    seed_ticket(fake_db)
    seed_agent(fake_db, is_active=False)
    client = TestClient(build_app(MANAGER))

    response = client.put("/api/tickets/tkt_0001/assign", json={"agent_id": AGENT.user_id})

    assert response.status_code == 422


@pytest.mark.unit
def test_reject_releases_ticket_and_records_history(fake_db):
    seed_ticket(fake_db, assignment=PendingAcceptance(agent_id=AGENT.user_id))
    app = build_app(AGENT)
    client = TestClient(app)

    response = client.put("/api/tickets/tkt_0001/reject", json={"reason": "Not my area"})
    assert response.status_code == 200
    ticket = response.json()["ticket"]
    assert ticket["assigned_to"] is None
    assert ticket["acceptance_status"] == "none"
    assert ticket["rejection_reason"] == "Not my area"

    act_as(app, MANAGER)
    response = client.get("/api/tickets/tkt_0001/rejections")
    assert response.status_code == 200
    assert response.json()["count"] == 1
    assert response.json()["rejections"][0]["rejected_by"] == AGENT.user_id


@pytest.mark.unit
def test_self_assign_taken_ticket_is_conflict(fake_db):
    seed_ticket(fake_db, assignment=PendingAcceptance(agent_id="user_someone_else"))
    client = TestClient(build_app(AGENT))

    response = client.put("/api/tickets/tkt_0001/self-assign")

    assert response.status_code == 409


@pytest.mark.unit
def test_get_ticket_not_found_returns_404(fake_db):
    client = TestClient(build_app(MANAGER))

    response = client.get("/api/tickets/tkt_missing")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "E007"


@pytest.mark.unit
def test_customer_cannot_read_other_customer_ticket(fake_db):
    seed_ticket(fake_db)
    client = TestClient(build_app(OTHER_CUSTOMER))

    response = client.get("/api/tickets/tkt_0001")

    assert response.status_code == 403


@pytest.mark.unit
def test_list_tickets_is_scoped_and_paginated(fake_db):
    seed_ticket(fake_db, ticket_id="tkt_a")
    seed_ticket(fake_db, ticket_id="tkt_b")
    seed_ticket(fake_db, ticket_id="tkt_c", created_by=OTHER_CUSTOMER.user_id)
    app = build_app(CUSTOMER)
    client = TestClient(app)

    response = client.get("/api/tickets", params={"limit": 1})
    assert response.status_code == 200
    data = response.json()
    assert len(data["tickets"]) == 1
    assert data["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}

    act_as(app, MANAGER)
    response = client.get("/api/tickets", params={"status": "open"})
    assert response.json()["pagination"]["total"] == 3


@pytest.mark.unit
def test_list_tickets_rejects_unknown_sort_field(fake_db):
    client = TestClient(build_app(MANAGER))

    response = client.get("/api/tickets", params={"sort_by": "password_hash"})

    assert response.status_code == 422


@pytest.mark.unit
def test_customer_edits_own_open_ticket(fake_db):
    seed_ticket(fake_db)
    client = TestClient(build_app(CUSTOMER))

    response = client.put("/api/tickets/tkt_0001", json={"title": "VPN drops hourly"})

    assert response.status_code == 200
    assert response.json()["ticket"]["title"] == "VPN drops hourly"
    assert response.json()["effects"][0]["fields"] == ["title"]


@pytest.mark.unit
def test_customer_cannot_change_category(fake_db):
    seed_ticket(fake_db)
    client = TestClient(build_app(CUSTOMER))

    response = client.put("/api/tickets/tkt_0001", json={"category": "billing"})

    assert response.status_code == 403


@pytest.mark.unit
def test_delete_ticket_is_admin_only(fake_db):
    seed_ticket(fake_db)
    app = build_app(MANAGER)
    client = TestClient(app)

    assert client.delete("/api/tickets/tkt_0001").status_code == 403

    act_as(app, ADMIN)
    response = client.delete("/api/tickets/tkt_0001")
    assert response.status_code == 200
    assert fake_db[COLLECTION_TICKETS].documents == []


@pytest.mark.unit
def test_audit_trail_hidden_from_customers(fake_db):
    seed_ticket(fake_db)
    client = TestClient(build_app(CUSTOMER))

    response = client.get("/api/tickets/tkt_0001/audit")

    assert response.status_code == 403


@pytest.mark.unit
def test_stats_endpoint(fake_db):
    fake_db[COLLECTION_TICKETS].aggregate_results = [{"_id": None, "total": 2, "open": 2}]
    client = TestClient(build_app(MANAGER))

    response = client.get("/api/tickets/stats")

    assert response.status_code == 200
    assert response.json()["stats"]["total"] == 2


@pytest.mark.unit
def test_audit_trail_lists_operations_for_staff(fake_db):
    seed_ticket(fake_db)
    seed_agent(fake_db)
    client = TestClient(build_app(MANAGER))

    client.put("/api/tickets/tkt_0001/assign", json={"agent_id": AGENT.user_id})
    response = client.get("/api/tickets/tkt_0001/audit")

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    entry = data["audit_logs"][0]
    assert entry["operation"] == "ASSIGN"
    assert entry["actor_id"] == MANAGER.user_id
    assert entry["after"]["assigned_to"] == AGENT.user_id
