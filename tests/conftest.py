"""Shared fixtures: an isolated in-memory document store per test."""
import os
import tempfile

# Configure before any urlcoin module reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="urlcoin-logs-")

import pytest
from sqlalchemy.orm import sessionmaker

from urlcoin.core.database import create_db_engine, init_db
from urlcoin.core.security import create_access_token
from urlcoin.services.coin_catalog import seed_market
from urlcoin.services.document_store import DocumentStore
from urlcoin.services.identity import register


@pytest.fixture
def store():
    """Empty document store with the market seeded."""
    engine = create_db_engine("sqlite://")
    init_db(bind=engine)
    document_store = DocumentStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    seed_market(document_store)
    yield document_store
    engine.dispose()


@pytest.fixture
def make_user(store):
    """Register a user and return (account, bearer headers)."""
    def _make_user(handle="alice", nickname="앨리스", password="secret1", is_admin=False):
        account = register(store, handle, password, nickname, is_admin=is_admin)
        headers = {"Authorization": f"Bearer {create_access_token(account.uid)}"}
        return account, headers
    return _make_user


@pytest.fixture
def client(store):
    """TestClient wired to the fixture store (startup hooks do not run)."""
    from fastapi.testclient import TestClient
    from urlcoin.main import app
    from urlcoin.services.document_store import get_document_store

    app.dependency_overrides[get_document_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
