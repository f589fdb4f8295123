import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from auth import register_user
from database import create_document
from schemas import Product
from security import issue_token
from seed import ensure_admin

API = "/api"


@pytest.fixture
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["storefront_test"]
    database.ensure_indexes(mock_db)
    monkeypatch.setattr(database, "_db", mock_db)
    return mock_db


@pytest.fixture
def client(db):
    from main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_product(db):
    def _make(**overrides):
        data = {
            "name": "Widget",
            "description": "A useful widget",
            "price": 10.0,
            "brand": "Acme",
            "category": "Tools",
            "image": "https://example.com/widget.png",
        }
        data.update(overrides)
        return create_document(db, "product", Product(**data))
    return _make


@pytest.fixture
def make_user(db):
    def _make(username="alice", email=None, password="secret123"):
        return register_user(db, username, email or f"{username}@example.com", password)
    return _make


@pytest.fixture
def admin(db):
    user_id = ensure_admin(db, "admin", "admin@example.com", "admin123")
    return {"user_id": user_id, "token": issue_token(user_id, "admin")}


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}
