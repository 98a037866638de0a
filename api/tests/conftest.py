"""Pytest fixtures for API and engine testing."""
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.database import get_db
from app.core.security import create_access_token
from app.core.versioning_service import CatalogVersioningService
from app.models.base import Base
from app.models.user import User
from app.services.notifications import NotificationDispatcher, get_notifier

# In-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


class RecordingNotifier:
    """Collects notifications instead of delivering them."""

    def __init__(self):
        self.events = []

    def notify(self, actor_id, event_kind, payload):
        self.events.append((actor_id, event_kind, payload))

    def kinds(self):
        return [kind for _, kind, _ in self.events]


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def client(db_session, notifier):
    """Test client with database and notifier overrides."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def service(db_session, notifier):
    """Versioning engine over the test session; notifications delivered inline."""
    return CatalogVersioningService(db_session, notifications=NotificationDispatcher(notifier))


def make_user(db_session, email, full_name, role):
    user = User(email=email, full_name=full_name, role=role, is_active=True)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def headers_for(user):
    token = create_access_token(user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_user(db_session):
    return make_user(db_session, "admin@example.edu", "Registrar Admin", "ADMIN")


@pytest.fixture
def editor_user(db_session):
    return make_user(db_session, "editor@example.edu", "Catalog Editor", "EDITOR")


@pytest.fixture
def reviewer_user(db_session):
    return make_user(db_session, "reviewer@example.edu", "Committee Reviewer", "REVIEWER")


@pytest.fixture
def viewer_user(db_session):
    return make_user(db_session, "viewer@example.edu", "Read Only", "VIEWER")


@pytest.fixture
def admin_headers(admin_user):
    return headers_for(admin_user)


@pytest.fixture
def editor_headers(editor_user):
    return headers_for(editor_user)


@pytest.fixture
def reviewer_headers(reviewer_user):
    return headers_for(reviewer_user)


@pytest.fixture
def viewer_headers(viewer_user):
    return headers_for(viewer_user)


def course(code, title, credits=3, description="", sections=None, prerequisites=None):
    return {
        "course_code": code,
        "title": title,
        "credits": credits,
        "description": description,
        "prerequisites": prerequisites or [],
        "sections": sections or [],
    }


@pytest.fixture
def catalog_content():
    """Baseline content for a term catalog."""
    return {
        "term": "2025 Fall",
        "notes": "Published by the registrar",
        "courses": [
            course("CS101", "Intro to Programming", 4, "Basics of programming",
                   sections=[{"section_id": "01", "capacity": 30, "room": "ENG 101"}]),
            course("CS201", "Data Structures", 3, "Lists, trees and graphs",
                   prerequisites=["CS101"]),
            course("MATH150", "Calculus I", 4, "Limits and derivatives"),
        ],
    }


@pytest.fixture
def catalog(service, editor_user, db_session):
    catalog = service.versions.create_catalog(
        name="2025 Fall",
        effective_date=date(2025, 8, 15),
        expiration_date=date(2025, 12, 20),
        created_by_id=editor_user.user_id,
        academic_year=2025,
    )
    db_session.commit()
    return catalog
