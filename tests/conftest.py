import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base
from app.main import app, get_db


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(bind=engine)
    yield TestingSessionLocal
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def tenant_id(client) -> str:
    resp = client.post("/tenants", json={"name": "Acme Retail"})
    assert resp.status_code == 201
    return resp.json()["data"]["id"]


@pytest.fixture()
def store_id(client, tenant_id) -> str:
    resp = client.post(
        "/stores",
        json={
            "tenantId": tenant_id,
            "storeCode": "acme-us",
            "storeName": "Acme US",
            "platform": "SHOPIFY",
            "currency": "USD",
        },
    )
    assert resp.status_code == 201
    return resp.json()["data"]["id"]


@pytest.fixture()
def create_order(client, tenant_id, store_id):
    def _create(external_order_id: str = "EXT-1", **fields) -> dict:
        body = {"orgId": tenant_id, "websiteId": store_id, "externalOrderId": external_order_id}
        body.update(fields)
        resp = client.post("/orders", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _create
