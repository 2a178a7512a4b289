"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from the configured
`DATABASE_URL` (a local SQLite file by default) and provides small helpers
used by the application and tests.
"""

from sqlalchemy.engine import make_url
from sqlmodel import SQLModel, create_engine, Session
from .config import settings


def build_database_url(url: str, user=None, password=None):
    """Return `url` with credentials filled in when the URL carries none."""
    parsed = make_url(url)
    if user and not parsed.username:
        parsed = parsed.set(username=user)
    if password and not parsed.password:
        parsed = parsed.set(password=password)
    return parsed


DB_URL = build_database_url(settings.DATABASE_URL, settings.DATABASE_USER, settings.DATABASE_PASSWORD)
_connect_args = {"check_same_thread": False} if DB_URL.get_backend_name() == "sqlite" else {}
engine = create_engine(DB_URL, echo=False, connect_args=_connect_args)


def create_db_and_tables(drop_first: bool = False):
    """Create database tables using SQLModel metadata.

    When `drop_first` is set every known table is dropped before being
    recreated, which gives test and demo environments a clean slate.
    """
    # import for side effects: table registration on SQLModel.metadata
    from . import models  # noqa: F401

    if drop_first:
        SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session
