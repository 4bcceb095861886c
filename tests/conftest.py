"""
Pytest fixtures for the bookledger test suite.

Every test runs against a private in-memory SQLite database. The environment
is pinned before ``bookledger`` is imported because the engine and settings
are built at import time.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["STORAGE_URL"] = "https://storage.test"
os.environ["STORAGE_API_KEY"] = "service-key"
os.environ["SEED_OWNER_EMAIL"] = ""
os.environ["SEED_OWNER_PASSWORD"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from bookledger.core.security import create_access_token, hash_password  # noqa: E402
from bookledger.db.base import Base  # noqa: E402
from bookledger.db.session import SessionLocal, engine  # noqa: E402
from bookledger.main import app  # noqa: E402
from bookledger.models.user import User  # noqa: E402


OWNER_PASSWORD = "correct horse battery"


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def owner(db_session) -> User:
    user = User(
        email="owner@example.com",
        full_name="Shop Owner",
        hashed_password=hash_password(OWNER_PASSWORD),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(owner) -> dict:
    token = create_access_token(subject=owner.email, token_version=owner.token_version)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db_session):
    return TestClient(app)
