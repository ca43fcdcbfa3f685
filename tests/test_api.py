from conftest import order_payload


def test_root_and_health(client) -> None:
    assert client.get("/").json() == {"status": "ok"}
    assert client.get("/api/health").json() == {"status": "healthy"}


def test_protected_routes_require_token(client) -> None:
    resp = client.get("/api/pos/products")
    assert resp.status_code == 401
    assert resp.json() == {"detail": "not authenticated"}

    resp = client.get("/api/pos/products", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "invalid token"


def test_create_product_and_list_for_pos(client, auth_headers, make_product) -> None:
    make_product("芝士蛋糕", 80)
    make_product("珍珠", 10, category="加料")

    pos_products = client.get("/api/pos/products", headers=auth_headers)
    assert pos_products.status_code == 200
    body = pos_products.json()
    assert [p["name"] for p in body["data"]] == ["芝士蛋糕"]
    assert body["meta"]["request_id"].startswith("req_")
    assert body["meta"]["warnings"] == []

    addons = client.get("/api/pos/addons", headers=auth_headers).json()["data"]
    assert [a["name"] for a in addons] == ["珍珠"]


def test_order_round_trip_through_admin_views(client, auth_headers, make_product) -> None:
    product = make_product()
    created = client.post(
        "/api/pos/orders",
        json=order_payload(product, quantity=2, discount_type="percentage", discount_value=10),
        headers=auth_headers,
    )
    assert created.status_code == 200
    order = created.json()["data"]
    assert order["subtotal"] == 140.0
    assert order["discount_amount"] == 14.0
    assert order["total"] == 126.0
    assert order["payment_method_display"] == "現金"
    assert order["items"][0]["quantity"] == 2

    listed = client.get("/api/admin/orders", headers=auth_headers)
    assert listed.status_code == 200
    body = listed.json()
    assert body["meta"]["page"] == {"page": 1, "page_size": 20, "total": 1}
    assert body["data"][0]["order_number"] == order["order_number"]

    detail = client.get(f"/api/admin/orders/{order['id']}", headers=auth_headers)
    assert detail.json()["data"]["items"][0]["product_name"] == product["name"]


def test_missing_order_returns_detail(client, auth_headers) -> None:
    resp = client.get("/api/admin/orders/999", headers=auth_headers)
    assert resp.status_code == 404
    assert resp.json() == {"detail": "order not found"}
