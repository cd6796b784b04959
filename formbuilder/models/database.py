"""Engine, session factory and declarative base.

One engine is created per process from ``Settings.database_url``. Routes get
a session per request through the ``get_db`` dependency.
"""

from datetime import datetime, timezone
from typing import Any, Generator, Optional

from sqlalchemy import DateTime, create_engine
from sqlalchemy.types import TypeDecorator
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from formbuilder.config import get_settings


class Base(DeclarativeBase):
    """Declarative base shared by FormRecord and ResponseRecord."""
    pass


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamps on every backend.

    SQLite drops the offset on the way in, so values are normalised to UTC
    when bound and naive values read back are marked as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        return _as_utc(value)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        return _as_utc(value)


def _engine_options(database_url: str) -> dict[str, Any]:
    settings = get_settings()
    options: dict[str, Any] = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        # Sync routes use the connection from worker threads
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
    return options


engine = create_engine(
    get_settings().database_url,
    **_engine_options(get_settings().database_url)
)

# Records stay readable after commit; services convert them to schemas
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a request-scoped session.

    Yields:
        Session: Closed when the request finishes, whatever the outcome
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
