"""Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import os
from datetime import datetime, timezone
from typing import Generator

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set required environment variables for tests BEFORE importing app modules
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test_secret_key_for_testing_only")
os.environ.setdefault("ENVIRONMENT", "development")

from formbuilder.models.database import Base
from formbuilder.schemas.form import Form, FormStatus
from formbuilder.services.analytics_store import AnalyticsStore
from formbuilder.services.notifier import AnalyticsNotifier
from formbuilder.services.token_signer import Credentials


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine with SQLite in-memory database.

    Yields:
        Engine: SQLAlchemy engine for testing

    Note:
        StaticPool keeps the single in-memory database alive across the
        connections handed to API test threads.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,  # Set to True for SQL debugging
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign key support for SQLite
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session.

    Args:
        db_engine: Test database engine fixture

    Yields:
        Session: SQLAlchemy session for testing
    """
    TestSessionLocal = sessionmaker(
        bind=db_engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )

    session = TestSessionLocal()

    yield session

    session.rollback()
    session.close()


@pytest.fixture
def store() -> AnalyticsStore:
    """Fresh analytics store."""
    return AnalyticsStore()


@pytest.fixture
def notifier() -> AnalyticsNotifier:
    """Fresh notifier."""
    return AnalyticsNotifier()


@pytest.fixture
def owner() -> Credentials:
    """Credentials of the form owner used across tests."""
    return Credentials(owner_id="owner-1", issued_at=datetime.now(timezone.utc))


@pytest.fixture
def other_owner() -> Credentials:
    """Credentials of a different owner."""
    return Credentials(owner_id="owner-2", issued_at=datetime.now(timezone.utc))


@pytest.fixture
def feedback_fields() -> list[dict]:
    """Field definitions exercising every field type, showIf and PII."""
    return [
        {
            "id": "likes",
            "label": "Did you like it?",
            "type": "single_choice",
            "required": True,
            "options": ["Yes", "No"],
        },
        {
            "id": "why",
            "label": "Why?",
            "type": "text",
            "required": True,
            "showIf": {"fieldId": "likes", "equals": "Yes"},
        },
        {
            "id": "topics",
            "label": "Topics",
            "type": "multi_select",
            "options": ["Speed", "Price", "Support"],
        },
        {
            "id": "score",
            "label": "Score",
            "type": "rating",
            "min": 1,
            "max": 5,
        },
        {
            "id": "email",
            "label": "Email",
            "type": "text",
            "isPII": True,
        },
    ]


@pytest.fixture
def draft_form(feedback_fields) -> Form:
    """A publishable draft form."""
    return Form(id="form-1", title="Feedback", fields=feedback_fields)


@pytest.fixture
def published_form(draft_form) -> Form:
    """The same form in published state."""
    return draft_form.model_copy(update={"status": FormStatus.PUBLISHED})
