from contextlib import contextmanager
from typing import Iterator

from sqlmodel import SQLModel, create_engine, Session
from shopcart.core.config import settings


def build_engine(database_url: str):
    # check_same_thread is needed for SQLite, remove for PostgreSQL
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


engine = build_engine(settings.DATABASE_URL)


def get_session():
    with Session(engine) as session:
        yield session


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for work outside a request, e.g. startup seeding."""
    with Session(engine) as session:
        yield session


def create_db_and_tables():
    # Registers every table on SQLModel.metadata
    import shopcart.models  # noqa: F401

    SQLModel.metadata.create_all(engine)
