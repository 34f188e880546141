"""
Shared pytest fixtures.

Every test runs against a fresh in-memory mongomock database injected via
``database.use_database()``. Environment overrides are applied before the app
is imported so settings pick them up.

RUNNING TESTS:
    pip install -e ".[test]"
    pytest -v
"""
import os
import uuid

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_MAX", "0")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ENVIRONMENT", "test")

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from main import app

DEFAULT_PASSWORD = "secret123"


# ============================================================================
# DATABASE / CLIENT
# ============================================================================

@pytest.fixture(autouse=True)
def db():
    database.use_database(mongomock.MongoClient()["teamforge_test"])
    yield database.db
    database.close()


@pytest.fixture
def client():
    return TestClient(app)


# ============================================================================
# FACTORIES
# ============================================================================

@pytest.fixture
def register_user(client):
    """Register a user and log in; returns {user, token, headers}."""

    def _register(name="Test User", email=None, password=DEFAULT_PASSWORD, **extra):
        email = email or f"user_{uuid.uuid4().hex[:8]}@example.com"
        body = {"name": name, "email": email, "password": password, **extra}
        resp = client.post("/api/auth/register", json=body)
        assert resp.status_code == 201, resp.text
        login = client.post("/api/auth/login", json={"email": email, "password": password})
        assert login.status_code == 200, login.text
        token = login.json()["data"]["token"]
        return {
            "user": resp.json()["data"],
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    return _register


@pytest.fixture
def auth_headers(register_user):
    return register_user(name="Default User")["headers"]


@pytest.fixture
def make_admin(db, register_user):
    def _admin(name="Admin User"):
        account = register_user(name=name)
        db["user"].update_one({"email": account["user"]["email"]}, {"$set": {"role": "admin"}})
        return account

    return _admin


@pytest.fixture
def create_project(client):
    def _create(headers, title=None, **overrides):
        body = {
            "title": title or f"Project {uuid.uuid4().hex[:6]}",
            "description": "A project that needs a team to build it",
            "industry": "Technology",
            "stage": "idea",
            "requiredSkills": ["Python", "React"],
            **overrides,
        }
        resp = client.post("/api/projects", json=body, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _create


@pytest.fixture
def apply_to(client):
    def _apply(project_id, headers, position="Engineer", **overrides):
        body = {"position": position, "message": "I would love to help", **overrides}
        return client.post(f"/api/projects/{project_id}/applications", json=body, headers=headers)

    return _apply
