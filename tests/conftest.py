import os

# Must be set before shopcart.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_CATALOG"] = "false"
os.environ["SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import shopcart.models  # noqa: F401
from shopcart.db.session import get_session
from shopcart.main import app
from shopcart.models.product import Product


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def client(engine):
    def get_session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = get_session_override
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def make_client(client):
    """Extra clients with their own cookie jars, sharing the same database."""
    def _make():
        return TestClient(app)
    return _make


@pytest.fixture()
def products(engine):
    """Catalog of three products; returns name -> id."""
    with Session(engine) as session:
        items = [
            Product(name="Wireless Headphones", price=100, image="headphones.jpg"),
            Product(name="Gaming Mouse", price=50, image="mouse.jpg"),
            Product(name="Desk Lamp", price=32.99, image="lamp.jpg"),
        ]
        session.add_all(items)
        session.commit()
        return {
            "headphones": items[0].id,
            "mouse": items[1].id,
            "lamp": items[2].id,
        }