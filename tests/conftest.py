"""
Pytest configuration and fixtures.

Every test gets its own SQLite file database so the archive sweep can use
real parallel connections.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timedelta, timezone

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, update
from sqlalchemy.orm import sessionmaker

from shoplist.api.auth import get_identity_client
from shoplist.data.database import Base, get_db
from shoplist.data.models.cart import CartModel
from shoplist.main import create_app
from shoplist.repos.cart_repo import CartRepo
from shoplist.services.cart_service import CartService

USER_ID = "user_test"
OTHER_USER_ID = "user_other"
SESSION_TOKEN = "sess_test"
OTHER_SESSION_TOKEN = "sess_other"


class FakeIdentityClient:
    """In-memory stand-in for the identity provider client."""

    def __init__(self):
        self.sessions = {SESSION_TOKEN: USER_ID, OTHER_SESSION_TOKEN: OTHER_USER_ID}
        self.users = {
            USER_ID: {"public_metadata": {}, "private_metadata": {}},
            OTHER_USER_ID: {"public_metadata": {}, "private_metadata": {}},
        }
        self.fail_reads = False
        self.fail_writes = False
        self.public_updates = []
        self.private_updates = []

    def verify_session(self, token):
        return self.sessions.get(token)

    def get_user(self, user_id):
        if self.fail_reads:
            raise requests.ConnectionError("identity provider unreachable")
        return self.users[user_id]

    def get_public_metadata(self, user_id):
        return dict(self.get_user(user_id)["public_metadata"])

    def get_private_metadata(self, user_id):
        return dict(self.get_user(user_id)["private_metadata"])

    def update_public_metadata(self, user_id, changes):
        if self.fail_writes:
            raise requests.ConnectionError("identity provider unreachable")
        self.public_updates.append(dict(changes))
        self.users[user_id]["public_metadata"].update(changes)
        return dict(self.users[user_id]["public_metadata"])

    def update_private_metadata(self, user_id, changes):
        if self.fail_writes:
            raise requests.ConnectionError("identity provider unreachable")
        self.private_updates.append(dict(changes))
        self.users[user_id]["private_metadata"].update(changes)
        return dict(self.users[user_id]["private_metadata"])


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'shoplist.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repo(db, session_factory) -> CartRepo:
    return CartRepo(db, session_factory=session_factory)


@pytest.fixture
def cart_service(db, repo) -> CartService:
    return CartService(db, max_carts=12, repo=repo)


@pytest.fixture
def identity() -> FakeIdentityClient:
    return FakeIdentityClient()


@pytest.fixture
def test_client(session_factory, identity) -> TestClient:
    """
    API client wired to the per-test database and the fake identity provider,
    authenticated as USER_ID. The lifespan (table creation) is not run.
    """
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_client] = lambda: identity

    client = TestClient(app)
    client.headers.update({"Authorization": f"Bearer {SESSION_TOKEN}"})
    return client


@pytest.fixture
def backdate(db):
    """Moves a cart's created_at the given number of days into the past."""

    def _backdate(cart_id: str, days: int) -> None:
        db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id)
            .values(created_at=datetime.now(timezone.utc) - timedelta(days=days))
        )
        db.commit()

    return _backdate
