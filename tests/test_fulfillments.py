import uuid

import pytest

from app import repositories


@pytest.fixture()
def order(create_order) -> dict:
    return create_order("EXT-1")


def _create(client, order_id: str, external_id: str = "F-1", **fields):
    body = {"externalFulfillmentId": external_id}
    body.update(fields)
    return client.post(f"/orders/{order_id}/fulfillments", json=body)


def test_create_fulfillment_defaults(client, order) -> None:
    resp = _create(client, order["id"], carrier="UPS")
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["orderId"] == order["id"]
    assert data["orgId"] == order["orgId"]
    assert data["externalFulfillmentId"] == "F-1"
    assert data["status"] == "UNKNOWN"
    assert data["carrier"] == "UPS"
    assert data["shippedAt"] is None


def test_create_fulfillment_for_unknown_order(client) -> None:
    missing = uuid.uuid4()
    resp = _create(client, str(missing))
    assert resp.status_code == 404
    assert resp.json()["message"] == f"Order not found with ID: {missing}"


def test_duplicate_external_id_is_conflict_and_leaves_original(client, order) -> None:
    original = _create(client, order["id"], carrier="UPS").json()["data"]

    resp = _create(client, order["id"], carrier="FedEx", status="SHIPPED")
    assert resp.status_code == 409
    assert resp.json()["message"] == "Fulfillment already exists with external ID: F-1"

    listed = client.get(f"/orders/{order['id']}/fulfillments").json()["data"]
    assert listed == [original]


def test_same_external_id_allowed_on_another_order(client, order, create_order) -> None:
    other = create_order("EXT-2")
    assert _create(client, order["id"]).status_code == 201
    assert _create(client, other["id"]).status_code == 201


def test_unique_violation_on_commit_is_conflict(client, order, monkeypatch) -> None:
    assert _create(client, order["id"]).status_code == 201
    monkeypatch.setattr(repositories, "fulfillment_external_id_exists", lambda *args: False)

    resp = _create(client, order["id"])
    assert resp.status_code == 409
    assert resp.json()["error"] == "Conflict"
    assert client.get(f"/orders/{order['id']}/fulfillments").json()["meta"]["page"][
        "totalElements"
    ] == 1


def test_get_fulfillment(client, order) -> None:
    created = _create(client, order["id"]).json()["data"]
    resp = client.get(f"/orders/{order['id']}/fulfillments/{created['id']}")
    assert resp.status_code == 200
    assert resp.json()["data"] == created

    missing = uuid.uuid4()
    resp = client.get(f"/orders/{order['id']}/fulfillments/{missing}")
    assert resp.status_code == 404
    assert resp.json()["message"] == f"Fulfillment not found with ID: {missing}"


def test_fulfillment_addressed_through_wrong_order(client, order, create_order) -> None:
    other = create_order("EXT-2")
    created = _create(client, order["id"]).json()["data"]
    path = f"/orders/{other['id']}/fulfillments/{created['id']}"

    resp = client.get(path)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Fulfillment does not belong to the specified order"
    assert client.patch(path, json={"status": "SHIPPED"}).status_code == 400
    assert client.put(path, json={"externalFulfillmentId": "F-1"}).status_code == 400
    assert client.delete(path).status_code == 400

    still_there = client.get(f"/orders/{order['id']}/fulfillments/{created['id']}")
    assert still_there.json()["data"]["status"] == "UNKNOWN"


def test_list_fulfillments_unknown_order(client) -> None:
    missing = uuid.uuid4()
    resp = client.get(f"/orders/{missing}/fulfillments")
    assert resp.status_code == 404
    assert resp.json()["message"] == f"Order not found with ID: {missing}"


def test_list_fulfillments_filters(client, order) -> None:
    _create(client, order["id"], "F-1", status="SHIPPED", carrier="UPS")
    _create(client, order["id"], "F-2", status="SHIPPED", carrier="FedEx")
    _create(client, order["id"], "F-3", status="DELIVERED", carrier="UPS")

    base = f"/orders/{order['id']}/fulfillments"
    assert len(client.get(base).json()["data"]) == 3

    shipped = client.get(base, params={"status": "SHIPPED"}).json()["data"]
    assert {f["externalFulfillmentId"] for f in shipped} == {"F-1", "F-2"}

    shipped_ups = client.get(base, params={"status": "SHIPPED", "carrier": "UPS"}).json()["data"]
    assert [f["externalFulfillmentId"] for f in shipped_ups] == ["F-1"]

    assert len(client.get(base, params={"from": "2000-01-01T00:00:00Z"}).json()["data"]) == 3
    assert client.get(base, params={"to": "2000-01-01T00:00:00Z"}).json()["data"] == []

    by_id = client.get(base, params={"sort": "externalFulfillmentId,asc"}).json()["data"]
    assert [f["externalFulfillmentId"] for f in by_id] == ["F-1", "F-2", "F-3"]
    assert client.get(base, params={"sort": "orderTotal,asc"}).status_code == 400


def test_search_fulfillments_by_external_id(client, order) -> None:
    _create(client, order["id"], "F-1")
    _create(client, order["id"], "F-2")
    base = f"/orders/{order['id']}/fulfillments/search"

    found = client.get(base, params={"externalFulfillmentId": "F-2"}).json()
    assert [f["externalFulfillmentId"] for f in found["data"]] == ["F-2"]
    assert found["meta"]["page"]["totalElements"] == 1

    assert client.get(base).status_code == 400

    # searching under an unknown order is an empty page, not a 404
    resp = client.get(
        f"/orders/{uuid.uuid4()}/fulfillments/search", params={"externalFulfillmentId": "F-1"}
    )
    assert resp.status_code == 200
    assert resp.json()["data"] == []


def test_put_replaces_fulfillment_fields(client, order) -> None:
    created = _create(
        client, order["id"], status="SHIPPED", carrier="UPS", shippedAt="2026-01-16T09:00:00Z"
    ).json()["data"]

    resp = client.put(
        f"/orders/{order['id']}/fulfillments/{created['id']}",
        json={"externalFulfillmentId": "RENAMED", "serviceLevel": "EXPRESS"},
    )
    assert resp.status_code == 200
    updated = resp.json()["data"]
    assert updated["externalFulfillmentId"] == "F-1"
    assert updated["status"] == "UNKNOWN"
    assert updated["carrier"] is None
    assert updated["shippedAt"] is None
    assert updated["serviceLevel"] == "EXPRESS"


def test_patch_keeps_unset_fulfillment_fields(client, order) -> None:
    created = _create(
        client, order["id"], status="SHIPPED", carrier="UPS", shippedAt="2026-01-16T09:00:00Z"
    ).json()["data"]

    resp = client.patch(
        f"/orders/{order['id']}/fulfillments/{created['id']}",
        json={"status": "DELIVERED", "deliveredAt": "2026-01-18T14:30:00Z"},
    )
    assert resp.status_code == 200
    patched = resp.json()["data"]
    assert patched["status"] == "DELIVERED"
    assert patched["deliveredAt"].startswith("2026-01-18T14:30:00")
    assert patched["carrier"] == "UPS"
    assert patched["shippedAt"] == created["shippedAt"]

    assert client.patch(
        f"/orders/{order['id']}/fulfillments/{created['id']}", json={"status": "LOST"}
    ).status_code == 400


def test_delete_fulfillment(client, order) -> None:
    created = _create(client, order["id"]).json()["data"]
    path = f"/orders/{order['id']}/fulfillments/{created['id']}"

    assert client.delete(path).status_code == 204
    assert client.get(path).status_code == 404
    assert client.delete(path).status_code == 404
    # the external id is free again once deleted
    assert _create(client, order["id"]).status_code == 201
