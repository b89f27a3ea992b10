"""
Pytest configuration and fixtures
"""
import os

# Required settings must exist before the app (and its settings) is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-field-ops-backend")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine import Engine
from app.main import app
from app.db.base import Base
from app.core.deps import get_db
from app.core.security import create_access_token
from app.models import Actor, Role, Market  # noqa: F401  (registers all tables)
from app.services import notification_service


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_subscribers():
    """Subscribers registered by a test must not leak into the next one"""
    yield
    notification_service._subscribers.clear()


def _make_actor(db, name, role, city="Pune"):
    actor = Actor(name=name, role=role.value, city=city, active=True)
    db.add(actor)
    db.commit()
    db.refresh(actor)
    return actor


@pytest.fixture
def field_actor(db):
    return _make_actor(db, "Field Employee", Role.EMPLOYEE)


@pytest.fixture
def other_actor(db):
    return _make_actor(db, "Block Officer", Role.BDO)


@pytest.fixture
def admin_actor(db):
    return _make_actor(db, "Office Admin", Role.ADMIN)


@pytest.fixture
def tuesday_market(db):
    """Market recurring on Tuesday (day_of_week uses Sunday=0)"""
    market = Market(name="Kothrud Market", location="Kothrud", city="Pune", is_active=True, day_of_week=2)
    db.add(market)
    db.commit()
    db.refresh(market)
    return market


def auth_headers(actor) -> dict:
    token = create_access_token({"sub": str(actor.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    """Bearer headers for an actor"""
    return auth_headers
