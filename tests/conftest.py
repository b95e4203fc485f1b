"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database (one shared connection via
StaticPool, foreign keys on) with the default categories seeded.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from fintrack.core.config import Settings
from fintrack.core.context import RequestContext
from fintrack.core.database import Database
from fintrack.core.security import ACCESS, create_token, hash_password
from fintrack.main import create_app
from fintrack.models import Category, TransactionType, User
from fintrack.services.category_service import seed_default_categories


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        environment="test",
        version="1.0.0-test",
        jwt_secret="test-secret",
        jwt_refresh_secret="test-refresh-secret",
        log_level="WARNING",
        log_json=False,
        cors_origins=["http://localhost:3000"],
        db_connect_retries=1,
    )


@pytest.fixture
def database():
    database = Database("sqlite://", poolclass=StaticPool)
    database.create_all()
    yield database
    database.drop_all()
    database.dispose()


@pytest.fixture
def db(database):
    session = database.SessionLocal()
    seed_default_categories(session)
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    def _make_user(email, name=None, password="secret123"):
        user = User(email=email, name=name or email.split("@")[0].title(), password_hash=hash_password(password))
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def alice(make_user):
    return make_user("alice@example.com", "Alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob@example.com", "Bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol@example.com", "Carol")


@pytest.fixture
def ctx_for(db, settings):
    """Build the request context a service would receive for ``user``."""
    def _ctx_for(user=None):
        return RequestContext(db=db, settings=settings, user=user)
    return _ctx_for


@pytest.fixture
def default_category(db):
    def _default_category(name, category_type=TransactionType.expense):
        return db.query(Category).filter(
            Category.is_default.is_(True),
            Category.name == name,
            Category.type == category_type,
        ).one()
    return _default_category


@pytest.fixture
def food(default_category):
    return default_category("Food")


@pytest.fixture
def salary(default_category):
    return default_category("Salary", TransactionType.income)


@pytest.fixture
def client(settings, database, db):
    app = create_app(settings=settings, database=database)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(settings):
    def _auth_headers(user):
        token = create_token(settings, user.id, user.email, ACCESS)
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
