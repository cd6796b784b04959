"""Database models and session management.

This package contains all SQLAlchemy ORM models and database utilities.
"""

from formbuilder.models.database import Base, engine, SessionLocal, get_db
from formbuilder.models.form import FormRecord
from formbuilder.models.response import ResponseRecord

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "FormRecord",
    "ResponseRecord",
]
