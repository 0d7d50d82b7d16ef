from fastapi import FastAPI
from fastapi.testclient import TestClient
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

import pytest

from helpdesk.api.user_routes import router as users_router
from helpdesk.database import COLLECTION_USERS
from helpdesk.middleware.auth import get_current_actor
from helpdesk.middleware.rate_limiter import limiter
from helpdesk.models import Actor, Role, User
from helpdesk.security.error_handler import register_exception_handlers

ADMIN = Actor(user_id="user_admin", role=Role.ADMIN)
MANAGER = Actor(user_id="user_manager", role=Role.MANAGER)
AGENT = Actor(user_id="user_agent", role=Role.AGENT)


def build_app(actor: Actor) -> FastAPI:
    app = FastAPI()
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app)
    app.include_router(users_router)
    app.dependency_overrides[get_current_actor] = lambda: actor
    return app


@pytest.fixture
def users(fake_db):
    seeded = [
        User(user_id=ADMIN.user_id, email="admin@example.com", password_hash="x", name="Ada", role=Role.ADMIN),
        User(user_id=MANAGER.user_id, email="manager@example.com", password_hash="x", name="Max", role=Role.MANAGER),
        User(user_id=AGENT.user_id, email="agent@example.com", password_hash="x", name="Ana", role=Role.AGENT),
        User(user_id="user_idle", email="idle@example.com", password_hash="x", name="Ian", role=Role.AGENT,
             is_active=False),
        User(user_id="user_customer", email="carl@example.com", password_hash="x", name="Carl"),
    ]
    fake_db[COLLECTION_USERS].seed(*(user.model_dump() for user in seeded))
    return seeded


def stored(fake_db, user_id: str) -> dict:
    return next(d for d in fake_db[COLLECTION_USERS].documents if d["user_id"] == user_id)


@pytest.mark.unit
def test_agents_cannot_manage_users(fake_db, users):
    client = TestClient(build_app(AGENT))

    assert client.get("/api/users").status_code == 403
    assert client.get("/api/users/agents").status_code == 403


@pytest.mark.unit
def test_admin_lists_everyone(fake_db, users):
    response = TestClient(build_app(ADMIN)).get("/api/users", params={"limit": 100})

    assert response.status_code == 200
    assert response.json()["pagination"]["total"] == 5
    assert all("password_hash" not in user for user in response.json()["users"])


@pytest.mark.unit
def test_manager_only_sees_agents_and_customers(fake_db, users):
    client = TestClient(build_app(MANAGER))

    response = client.get("/api/users", params={"limit": 100})
    assert {u["role"] for u in response.json()["users"]} == {"agent", "customer"}

    response = client.get("/api/users", params={"role": "admin"})
    assert response.json()["users"] == []

    assert client.get(f"/api/users/{ADMIN.user_id}").status_code == 403
    assert client.get(f"/api/users/{AGENT.user_id}").status_code == 200


@pytest.mark.unit
def test_active_agents_listing(fake_db, users):
    response = TestClient(build_app(MANAGER)).get("/api/users/agents")

    assert response.status_code == 200
    assert [a["user_id"] for a in response.json()["agents"]] == [AGENT.user_id]


@pytest.mark.unit
def test_manager_creates_agent_but_not_admin(fake_db, users):
    client = TestClient(build_app(MANAGER))

    response = client.post(
        "/api/users",
        json={"email": "new.agent@example.com", "password": "longenough", "name": "Nia", "role": "agent"},
    )
    assert response.status_code == 201
    assert response.json()["user"]["role"] == "agent"

    response = client.post(
        "/api/users",
        json={"email": "boss@example.com", "password": "longenough", "name": "Bo", "role": "admin"},
    )
    assert response.status_code == 403


@pytest.mark.unit
def test_create_user_duplicate_email(fake_db, users):
    response = TestClient(build_app(ADMIN)).post(
        "/api/users",
        json={"email": "agent@example.com", "password": "longenough", "name": "Dup", "role": "agent"},
    )

    assert response.status_code == 400


@pytest.mark.unit
def test_admin_deactivates_and_promotes(fake_db, users):
    client = TestClient(build_app(ADMIN))

    response = client.put(f"/api/users/{AGENT.user_id}", json={"is_active": False, "role": "manager"})

    assert response.status_code == 200
    assert stored(fake_db, AGENT.user_id)["is_active"] is False
    assert stored(fake_db, AGENT.user_id)["role"] == Role.MANAGER


@pytest.mark.unit
def test_manager_cannot_promote(fake_db, users):
    response = TestClient(build_app(MANAGER)).put(f"/api/users/{AGENT.user_id}", json={"role": "admin"})

    assert response.status_code == 403
    assert stored(fake_db, AGENT.user_id)["role"] == Role.AGENT


@pytest.mark.unit
def test_nobody_changes_own_role(fake_db, users):
    response = TestClient(build_app(ADMIN)).put(f"/api/users/{ADMIN.user_id}", json={"role": "agent"})

    assert response.status_code == 403


@pytest.mark.unit
def test_update_missing_user_is_404(fake_db, users):
    response = TestClient(build_app(ADMIN)).put("/api/users/user_ghost", json={"name": "Ghost"})

    assert response.status_code == 404


@pytest.mark.unit
def test_delete_user_rules(fake_db, users):
    assert TestClient(build_app(MANAGER)).delete(f"/api/users/{AGENT.user_id}").status_code == 403

    client = TestClient(build_app(ADMIN))
    assert client.delete(f"/api/users/{ADMIN.user_id}").status_code == 400
    assert client.delete("/api/users/user_ghost").status_code == 404

    response = client.delete(f"/api/users/{AGENT.user_id}")
    assert response.status_code == 200
    assert all(d["user_id"] != AGENT.user_id for d in fake_db[COLLECTION_USERS].documents)


@pytest.mark.unit
def test_user_stats(fake_db, users):
    fake_db[COLLECTION_USERS].aggregate_results = [
        {"_id": "admin", "count": 1},
        {"_id": "agent", "count": 2},
    ]

    response = TestClient(build_app(ADMIN)).get("/api/users/stats")

    assert response.status_code == 200
    stats = response.json()["stats"]
    assert stats["agent"] == 2
    assert stats["customer"] == 0
    assert stats["total"] == 3
