"""
Shared fixtures.

The settings singleton is built at import time, so the environment is fixed
here before any application module is imported: an in-memory SQLite database
and a cheap scrypt cost so the suite stays fast.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["PASSWORD_MIN_LENGTH"] = "8"
os.environ["SESSION_COOKIE_NAME"] = "inkpost_session"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import models.audit_log  # noqa: F401, E402
import models.session  # noqa: F401, E402
from database import Base, SessionLocal, engine  # noqa: E402
from main import app  # noqa: E402
from models.user import User  # noqa: E402

PASSWORD = "Secret123!"


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def auth():
    return app.state.auth_service


@pytest.fixture()
def client():
    return TestClient(app)


def register(client, email, password=PASSWORD, first_name="Alice", last_name="Example"):
    return client.post(
        "/api/register",
        json={
            "email": email,
            "password": password,
            "firstName": first_name,
            "lastName": last_name,
        },
    )


def login(client, email, password=PASSWORD):
    return client.post("/api/login", json={"email": email, "password": password})


def promote(db, email):
    user = db.query(User).filter(User.email == email).one()
    user.is_admin = True
    db.commit()
    return user


@pytest.fixture()
def admin_client(db):
    """A client logged in as an administrator."""
    c = TestClient(app)
    assert register(c, "admin@example.com", first_name="Ada", last_name="Admin").status_code == 201
    promote(db, "admin@example.com")
    return c
