import uuid


def test_health_reports_application_and_version(client) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "UP"
    assert body["application"] == "Order Hub"
    assert body["version"] == "1.0.0"
    assert body["timestamp"]


def test_create_tenant_store_order_flow(client) -> None:
    tenant_resp = client.post("/tenants", json={"name": "Savour Foods"})
    assert tenant_resp.status_code == 201
    tenant = tenant_resp.json()["data"]
    assert tenant["status"] == "ACTIVE"
    assert tenant["createdAt"] == tenant["updatedAt"]

    store_resp = client.post(
        "/stores",
        json={
            "tenantId": tenant["id"],
            "storeCode": "savour-web",
            "storeName": "Savour Web",
            "platform": "MAGENTO",
        },
    )
    assert store_resp.status_code == 201
    store = store_resp.json()["data"]
    assert store["tenantId"] == tenant["id"]
    assert store["status"] == "ACTIVE"

    order_resp = client.post(
        "/orders",
        json={"orgId": tenant["id"], "websiteId": store["id"], "externalOrderId": "EXT-1"},
    )
    assert order_resp.status_code == 201
    order = order_resp.json()["data"]
    assert order["status"] == "CREATED"
    assert order["financialStatus"] == "UNKNOWN"
    assert order["fulfillmentStatus"] == "UNKNOWN"
    assert order["orderTotal"] == 0.0
    assert order["orgId"] == tenant["id"]
    assert order["websiteId"] == store["id"]
    assert "request_id" in order_resp.json()["meta"]


def test_duplicate_tenant_name_is_conflict(client) -> None:
    assert client.post("/tenants", json={"name": "Acme"}).status_code == 201
    resp = client.post("/tenants", json={"name": "Acme"})
    assert resp.status_code == 409
    assert resp.json()["error"] == "Conflict"


def test_duplicate_store_code_within_tenant_is_conflict(client, tenant_id, store_id) -> None:
    resp = client.post(
        "/stores",
        json={"tenantId": tenant_id, "storeCode": "acme-us", "storeName": "Again"},
    )
    assert resp.status_code == 409

    other = client.post("/tenants", json={"name": "Other Org"}).json()["data"]["id"]
    same_code_elsewhere = client.post(
        "/stores",
        json={"tenantId": other, "storeCode": "acme-us", "storeName": "Other US"},
    )
    assert same_code_elsewhere.status_code == 201


def test_store_for_unknown_tenant_is_not_found(client) -> None:
    missing = str(uuid.uuid4())
    resp = client.post(
        "/stores", json={"tenantId": missing, "storeCode": "x", "storeName": "X"}
    )
    assert resp.status_code == 404
    assert resp.json()["message"] == f"Tenant not found with ID: {missing}"


def test_list_tenants_and_stores_with_filters(client, tenant_id, store_id) -> None:
    client.post("/tenants", json={"name": "Dormant Co", "status": "INACTIVE"})

    all_tenants = client.get("/tenants").json()
    assert all_tenants["meta"]["page"]["totalElements"] == 2

    inactive = client.get("/tenants", params={"status": "INACTIVE"}).json()["data"]
    assert [t["name"] for t in inactive] == ["Dormant Co"]

    by_name = client.get("/tenants", params={"name": "acme"}).json()["data"]
    assert [t["id"] for t in by_name] == [tenant_id]

    stores = client.get("/stores", params={"tenantId": tenant_id, "platform": "SHOPIFY"}).json()
    assert [s["id"] for s in stores["data"]] == [store_id]
    assert client.get("/stores", params={"code": "nope"}).json()["data"] == []


def test_get_tenant_and_store_by_id(client, tenant_id, store_id) -> None:
    assert client.get(f"/tenants/{tenant_id}").json()["data"]["name"] == "Acme Retail"
    assert client.get(f"/stores/{store_id}").json()["data"]["storeCode"] == "acme-us"
    assert client.get(f"/stores/{uuid.uuid4()}").status_code == 404


def test_error_body_shape_for_not_found(client) -> None:
    missing = uuid.uuid4()
    resp = client.get(f"/orders/{missing}")
    assert resp.status_code == 404
    body = resp.json()
    assert set(body) == {"timestamp", "status", "error", "message", "path"}
    assert body["status"] == 404
    assert body["error"] == "Not Found"
    assert body["message"].startswith("Order not found")
    assert body["path"] == f"/orders/{missing}"


def test_validation_errors_are_bad_request(client, tenant_id, store_id) -> None:
    resp = client.post(
        "/orders",
        json={
            "orgId": tenant_id,
            "websiteId": store_id,
            "externalOrderId": "EXT-1",
            "currency": "usd",
        },
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Bad Request"
    assert "currency" in body["message"]
    assert body["path"] == "/orders"


def test_rejects_blank_external_id_negative_total_and_bad_email(client, tenant_id, store_id) -> None:
    base = {"orgId": tenant_id, "websiteId": store_id, "externalOrderId": "EXT-1"}
    assert client.post("/orders", json={**base, "externalOrderId": "   "}).status_code == 400
    assert client.post("/orders", json={**base, "orderTotal": -1}).status_code == 400
    assert client.post("/orders", json={**base, "orderTotal": 10.123}).status_code == 400
    assert client.post("/orders", json={**base, "customerEmail": "not-an-email"}).status_code == 400
    assert client.post("/orders", json={**base, "status": "SHIPPED"}).status_code == 400
    assert client.post("/orders", json={"websiteId": store_id, "externalOrderId": "X"}).status_code == 400


def test_unknown_enum_and_malformed_uuid_in_query_are_bad_request(client) -> None:
    assert client.get("/orders", params={"status": "BOGUS"}).status_code == 400
    assert client.get("/orders/not-a-uuid").status_code == 400


def test_unknown_route_uses_error_body(client) -> None:
    resp = client.get("/nowhere")
    assert resp.status_code == 404
    assert resp.json()["path"] == "/nowhere"
