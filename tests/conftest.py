import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")
os.environ.setdefault("SEED_ON_STARTUP", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from honeypos.db import Base
from honeypos.main import app, get_db
from honeypos.services import line_oa

ADMIN_USERNAME = "owner"
ADMIN_PASSWORD = "secret123"


class FakeLineClient:
    """Records outgoing LINE calls instead of hitting the Messaging API."""

    def __init__(self):
        self.pushes = []
        self.broadcasts = []
        self.profiles = {}

    def push_text(self, user_id, text):
        self.pushes.append((user_id, text))
        return True

    def broadcast_text(self, text):
        self.broadcasts.append(text)
        return True

    def get_profile(self, user_id):
        return self.profiles.get(user_id, {"displayName": "小蜜蜂", "pictureUrl": None})

    def get_bot_info(self):
        return {"userId": "U-bot", "displayName": "HoneyPOS"}


@pytest.fixture(autouse=True)
def line_client(monkeypatch):
    fake = FakeLineClient()
    monkeypatch.setattr(line_oa, "build_client", lambda access_token: fake)
    line_oa.invalidate_settings_cache()
    yield fake
    line_oa.invalidate_settings_cache()


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def login_headers(client, username, password):
    resp = client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}


@pytest.fixture()
def auth_headers(client):
    resp = client.post(
        "/api/auth/register",
        json={
            "username": ADMIN_USERNAME,
            "password": ADMIN_PASSWORD,
            "confirm_password": ADMIN_PASSWORD,
            "display_name": "店長",
        },
    )
    assert resp.status_code == 200, resp.text
    return login_headers(client, ADMIN_USERNAME, ADMIN_PASSWORD)


@pytest.fixture()
def make_product(client, auth_headers):
    def _make(name="抹茶紅豆瑪德蓮", price=70, category="蛋糕", **extra):
        resp = client.post(
            "/api/admin/products",
            json={"name": name, "price": price, "category": category, **extra},
            headers=auth_headers,
        )
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]

    return _make


def order_payload(product, quantity=1, **extra):
    payload = {
        "device_id": "pos-01",
        "payment_method": "cash",
        "items": [
            {
                "product_id": product["id"],
                "product_name": product["name"],
                "price": product["price"],
                "quantity": quantity,
            }
        ],
    }
    payload.update(extra)
    return payload
