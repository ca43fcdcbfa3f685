from conftest import login_headers, order_payload


def _post_order(client, headers, payload):
    resp = client.post("/api/pos/orders", json=payload, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_order_numbers_count_per_business_day(client, auth_headers, make_product) -> None:
    product = make_product()
    first = _post_order(client, auth_headers, order_payload(product, timestamp="2026-10-18T09:05:00Z"))
    second = _post_order(client, auth_headers, order_payload(product, timestamp="2026-10-18T11:40:00Z"))
    next_day = _post_order(client, auth_headers, order_payload(product, timestamp="2026-10-19T09:01:00Z"))

    assert first["data"]["order_number"] == "#0001"
    assert second["data"]["order_number"] == "#0002"
    assert second["data"]["business_date"] == "2026-10-18"
    assert next_day["data"]["order_number"] == "#0001"
    assert next_day["data"]["daily_sequence"] == 1


def test_taken_client_sequence_is_reassigned(client, auth_headers, make_product) -> None:
    product = make_product()
    base = order_payload(product, timestamp="2026-10-18T10:00:00Z", daily_sequence=5, order_number="#0005")
    first = _post_order(client, auth_headers, base)
    assert first["data"]["order_number"] == "#0005"

    clash = dict(base, timestamp="2026-10-18T10:01:00Z")
    second = _post_order(client, auth_headers, clash)
    assert second["data"]["daily_sequence"] == 6
    assert second["data"]["order_number"] == "#0006"
    assert "daily_sequence_reassigned" in second["meta"]["warnings"]


def test_payment_method_aliases_are_normalized(client, auth_headers, make_product) -> None:
    product = make_product()
    body = _post_order(client, auth_headers, order_payload(product, payment_method="LinePay"))
    assert body["data"]["payment_method"] == "line_pay"
    assert body["data"]["payment_method_display"] == "LINE Pay"


def test_client_total_mismatch_is_recomputed(client, auth_headers, make_product) -> None:
    product = make_product()
    body = _post_order(client, auth_headers, order_payload(product, quantity=2, subtotal=140, total=100))
    assert body["data"]["total"] == 140.0
    assert body["meta"]["warnings"] == ["total_recomputed"]


def test_order_without_items_is_rejected(client, auth_headers) -> None:
    resp = client.post("/api/pos/orders", json={"device_id": "pos-01", "items": []}, headers=auth_headers)
    assert resp.status_code == 422


def test_offline_replay_skips_duplicates(client, auth_headers, make_product) -> None:
    product = make_product()
    offline = order_payload(product, local_id="local-1", timestamp="2026-10-18T10:15:00Z")
    batch = {"orders": [offline, dict(offline)]}

    first = client.post("/api/pos/sync/orders", json=batch, headers=auth_headers).json()["data"]
    assert first["synced"] == 1
    assert first["duplicates"] == 1
    assert [r["status"] for r in first["results"]] == ["synced", "duplicate"]

    again = client.post("/api/pos/sync/orders", json={"orders": [offline]}, headers=auth_headers).json()["data"]
    assert again["synced"] == 0
    assert again["duplicates"] == 1
    assert again["results"][0]["order_id"] == first["results"][0]["order_id"]

    listed = client.get("/api/admin/orders", headers=auth_headers).json()
    assert listed["meta"]["page"]["total"] == 1


def test_offline_replay_reports_failures_per_order(client, auth_headers, make_product) -> None:
    product = make_product()
    good = order_payload(product, local_id="a", timestamp="2026-10-18T10:00:00Z")
    bad = order_payload(product, local_id="b", timestamp="2026-10-18T10:05:00Z", discount_type="coupon")

    result = client.post("/api/pos/orders/batch", json={"orders": [good, bad]}, headers=auth_headers).json()["data"]
    assert result["synced"] == 1
    assert result["failed"] == 1
    assert result["results"][1]["status"] == "failed"
    assert "coupon" in result["results"][1]["error"]


def test_malformed_offline_draft_does_not_reject_the_batch(client, auth_headers, make_product) -> None:
    product = make_product()
    good = order_payload(product, local_id="a", timestamp="2026-10-18T10:00:00Z")
    broken = order_payload(product, quantity=0, local_id="b", timestamp="2026-10-18T10:05:00Z")

    resp = client.post("/api/pos/sync/orders", json={"orders": [good, broken]}, headers=auth_headers)
    assert resp.status_code == 200
    result = resp.json()["data"]
    assert result["synced"] == 1
    assert result["failed"] == 1
    assert result["results"][1]["status"] == "failed"
    assert "quantity" in result["results"][1]["error"]

    assert client.post("/api/pos/sync/orders", json={"orders": []}, headers=auth_headers).status_code == 422


def test_cancel_order_once(client, auth_headers, make_product) -> None:
    product = make_product()
    order = _post_order(client, auth_headers, order_payload(product))["data"]

    cancelled = client.post(f"/api/admin/orders/{order['id']}/cancel", headers=auth_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["status"] == "cancelled"
    assert cancelled.json()["data"]["cancelled_at"] is not None

    again = client.post(f"/api/admin/orders/{order['id']}/cancel", headers=auth_headers)
    assert again.status_code == 409


def test_pos_user_cannot_cancel_orders(client, auth_headers, make_product) -> None:
    client.post(
        "/api/admin/accounts",
        json={"username": "cashier", "password": "cashier1", "role": "pos_user"},
        headers=auth_headers,
    )
    cashier = login_headers(client, "cashier", "cashier1")
    product = make_product()
    order = _post_order(client, cashier, order_payload(product))["data"]

    resp = client.post(f"/api/admin/orders/{order['id']}/cancel", headers=cashier)
    assert resp.status_code == 403


def test_order_stats_and_sync_status(client, auth_headers, make_product) -> None:
    product = make_product()
    kept = _post_order(client, auth_headers, order_payload(product, quantity=2))["data"]
    dropped = _post_order(client, auth_headers, order_payload(product))["data"]
    client.post(f"/api/admin/orders/{dropped['id']}/cancel", headers=auth_headers)

    stats = client.get("/api/admin/orders/stats", headers=auth_headers).json()["data"]
    assert stats == {
        "total_orders": 2,
        "completed_orders": 1,
        "cancelled_orders": 1,
        "total_revenue": kept["total"],
    }

    status = client.get("/api/pos/sync/status", params={"device_id": "pos-01"}, headers=auth_headers).json()["data"]
    assert status["today_order_count"] == 2
    assert status["open_shift_id"] is None


def test_orders_filter_by_status(client, auth_headers, make_product) -> None:
    product = make_product()
    _post_order(client, auth_headers, order_payload(product))
    dropped = _post_order(client, auth_headers, order_payload(product))["data"]
    client.post(f"/api/admin/orders/{dropped['id']}/cancel", headers=auth_headers)

    resp = client.get("/api/admin/orders", params={"status": "cancelled"}, headers=auth_headers).json()
    assert [o["id"] for o in resp["data"]] == [dropped["id"]]
