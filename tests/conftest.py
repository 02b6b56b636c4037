"""
Pytest configuration and shared fixtures.
"""

import pytest
from fastapi.testclient import TestClient

from coderevu.config import Settings
from coderevu.database import (
    Account,
    Database,
    Repository,
    SubscriptionTier,
    User,
)
from coderevu.jobs import JobQueue

WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture
def settings():
    """Settings for an isolated in-memory deployment without the worker."""
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        github_webhook_secret=WEBHOOK_SECRET,
        app_base_url="https://reviews.example.com",
        qdrant_url=":memory:",
        worker_enabled=False,
    )


@pytest.fixture
def database():
    """In-memory SQLite database with all tables created."""
    db = Database("sqlite://")
    db.init_db()
    yield db
    db.engine.dispose()


@pytest.fixture
def db_session(database):
    """Database session bound to the in-memory database."""
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def queue(database):
    return JobQueue(database, max_attempts=4)


@pytest.fixture
def user(db_session):
    """FREE user with a linked GitHub account."""
    user = User(name="Octo Cat", email="octo@example.com")
    db_session.add(user)
    db_session.flush()
    db_session.add(Account(user_id=user.id, provider_id="github", access_token="gho_test"))
    db_session.commit()
    return user


@pytest.fixture
def pro_user(db_session):
    user = User(
        name="Pro User", email="pro@example.com", subscription_tier=SubscriptionTier.PRO
    )
    db_session.add(user)
    db_session.flush()
    db_session.add(Account(user_id=user.id, provider_id="github", access_token="gho_pro"))
    db_session.commit()
    return user


@pytest.fixture
def repository(db_session, user):
    """Repository octo/widgets connected by the FREE user."""
    repo = Repository(
        github_id=9_007_199_254_740_993,
        name="widgets",
        owner="octo",
        full_name="octo/widgets",
        url="https://github.com/octo/widgets",
        user_id=user.id,
    )
    db_session.add(repo)
    db_session.commit()
    return repo


@pytest.fixture
def app(settings):
    from coderevu.main import create_app

    return create_app(settings)


@pytest.fixture
def client(app):
    """
    Provide a test client for FastAPI.

    Returns:
        TestClient: Test client for making requests to the app
    """
    return TestClient(app)
