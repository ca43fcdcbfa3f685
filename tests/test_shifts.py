import logging

from conftest import order_payload

from honeypos.models import Shift


def _open(client, headers, device_id="pos-01"):
    resp = client.post("/api/pos/shift/open", json={"device_id": device_id}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def test_one_open_shift_per_device(client, auth_headers) -> None:
    shift = _open(client, auth_headers)
    assert shift["status"] == "open"
    assert shift["total_orders"] == 0

    again = client.post("/api/pos/shift/open", json={"device_id": "pos-01"}, headers=auth_headers)
    assert again.status_code == 409

    other = _open(client, auth_headers, "pos-02")
    assert other["id"] != shift["id"]

    current = client.get("/api/pos/shift/current", params={"device_id": "pos-01"}, headers=auth_headers)
    assert current.json()["data"]["id"] == shift["id"]


def test_orders_accumulate_into_shift_totals(client, auth_headers, make_product) -> None:
    madeleine = make_product()
    cheesecake = make_product("芝士蛋糕", 80)
    shift = _open(client, auth_headers)

    client.post(
        "/api/pos/orders",
        json=order_payload(madeleine, quantity=2, discount_type="percentage", discount_value=10),
        headers=auth_headers,
    )
    second = client.post("/api/pos/orders", json=order_payload(cheesecake), headers=auth_headers).json()["data"]
    assert second["shift_id"] == shift["id"]

    detail = client.get(f"/api/admin/shifts/{shift['id']}", headers=auth_headers).json()["data"]
    assert detail["total_orders"] == 2
    assert detail["total_revenue"] == 220.0
    assert detail["total_discount"] == 14.0
    assert detail["net_revenue"] == 206.0
    assert len(detail["orders"]) == 2

    client.post(f"/api/admin/orders/{second['id']}/cancel", headers=auth_headers)
    detail = client.get(f"/api/admin/shifts/{shift['id']}", headers=auth_headers).json()["data"]
    assert detail["total_orders"] == 1
    assert detail["total_revenue"] == 140.0
    assert detail["net_revenue"] == 126.0

    recon = client.get(f"/api/admin/shifts/{shift['id']}/reconciliation", headers=auth_headers).json()
    assert recon["data"]["consistent"] is True
    assert recon["data"]["recomputed"]["net_revenue"] == 126.0
    assert recon["meta"]["warnings"] == []


def test_close_shift_creates_settlement(client, auth_headers, make_product) -> None:
    product = make_product()
    shift = _open(client, auth_headers)
    client.post("/api/pos/orders", json=order_payload(product, quantity=3), headers=auth_headers)

    closed = client.post(
        f"/api/pos/shift/{shift['id']}/close",
        json={"inventory_counts": [{"product_id": product["id"], "quantity": 7}, {"product_id": 999, "quantity": 1}]},
        headers=auth_headers,
    )
    assert closed.status_code == 200, closed.text
    data = closed.json()["data"]
    assert data["shift"]["status"] == "closed"
    settlement = data["settlement"]
    assert data["shift"]["settlement_id"] == settlement["id"]
    assert settlement["total_orders"] == 1
    assert settlement["total_revenue"] == 210.0
    assert settlement["net_revenue"] == 210.0
    assert settlement["inventory_counts"] == [{"product_id": product["id"], "quantity": 7}]
    assert settlement["incentive_target"] == 125
    assert settlement["incentive_items_sold"] == 3
    assert settlement["incentive_achieved"] is False

    again = client.post(f"/api/pos/shift/{shift['id']}/close", json={}, headers=auth_headers)
    assert again.status_code == 409

    detail = client.get(f"/api/admin/settlements/{settlement['id']}", headers=auth_headers).json()["data"]
    assert detail["shift"]["id"] == shift["id"]
    assert detail["lines"] == [
        {"product_id": product["id"], "product_name": product["name"], "counted": 7, "sold": 3}
    ]


def test_orders_after_close_are_not_attached(client, auth_headers, make_product) -> None:
    product = make_product()
    shift = _open(client, auth_headers)
    inside = client.post("/api/pos/orders", json=order_payload(product), headers=auth_headers).json()["data"]
    client.post(f"/api/pos/shift/{shift['id']}/close", json={}, headers=auth_headers)

    after = client.post("/api/pos/orders", json=order_payload(product), headers=auth_headers).json()["data"]
    assert after["shift_id"] is None

    cancelled = client.post(f"/api/admin/orders/{inside['id']}/cancel", headers=auth_headers).json()
    assert cancelled["meta"]["warnings"] == ["shift_already_settled"]
    settled = client.get(f"/api/admin/shifts/{shift['id']}", headers=auth_headers).json()["data"]
    assert settled["total_orders"] == 1


def test_order_sent_with_closed_shift_id_stays_unattached(client, auth_headers, make_product) -> None:
    product = make_product()
    shift = _open(client, auth_headers)
    client.post("/api/pos/orders", json=order_payload(product), headers=auth_headers)
    client.post(f"/api/pos/shift/{shift['id']}/close", json={}, headers=auth_headers)

    late = client.post(
        "/api/pos/orders", json=order_payload(product, shift_id=shift["id"]), headers=auth_headers
    ).json()
    assert late["data"]["shift_id"] is None
    assert "shift_closed" in late["meta"]["warnings"]

    recon = client.get(f"/api/admin/shifts/{shift['id']}/reconciliation", headers=auth_headers).json()
    assert recon["data"]["consistent"] is True
    assert recon["data"]["recomputed"]["total_orders"] == 1

    detail = client.get(f"/api/admin/shifts/{shift['id']}", headers=auth_headers).json()["data"]
    assert len(detail["orders"]) == 1
    assert detail["settlement"]["id"] == detail["settlement_id"]
    assert detail["settlement"]["total_orders"] == 1


def test_open_shift_has_no_settlement_yet(client, auth_headers) -> None:
    shift = _open(client, auth_headers)
    detail = client.get(f"/api/admin/shifts/{shift['id']}", headers=auth_headers).json()["data"]
    assert detail["settlement"] is None


def test_running_total_drift_is_reported(client, auth_headers, db, make_product, caplog) -> None:
    product = make_product()
    shift = _open(client, auth_headers)
    client.post("/api/pos/orders", json=order_payload(product), headers=auth_headers)
    db.query(Shift).filter(Shift.id == shift["id"]).update({"total_orders": 5})
    db.commit()

    recon = client.get(f"/api/admin/shifts/{shift['id']}/reconciliation", headers=auth_headers).json()
    assert recon["data"]["consistent"] is False
    assert recon["data"]["drift"]["total_orders"] == 4
    assert recon["meta"]["warnings"] == ["running_totals_drift"]

    with caplog.at_level(logging.WARNING, logger="honeypos.services.shifts"):
        closed = client.post(f"/api/pos/shift/{shift['id']}/close", json={}, headers=auth_headers)
    assert closed.status_code == 200
    assert closed.json()["data"]["settlement"]["total_orders"] == 5
    assert any("running totals drift" in record.getMessage() for record in caplog.records)


def test_daily_settlement_without_shift(client, auth_headers, make_product) -> None:
    assert client.get("/api/pos/inventory/today", headers=auth_headers).json()["data"] is None

    product = make_product()
    client.post(
        "/api/pos/orders",
        json=order_payload(product, quantity=2, discount_type="percentage", discount_value=10),
        headers=auth_headers,
    )
    dropped = client.post("/api/pos/orders", json=order_payload(product), headers=auth_headers).json()["data"]
    client.post(f"/api/admin/orders/{dropped['id']}/cancel", headers=auth_headers)

    submitted = client.post(
        "/api/pos/inventory/settlement",
        json={"device_id": "pos-01", "inventory_counts": [{"product_id": product["id"], "quantity": 4}]},
        headers=auth_headers,
    )
    assert submitted.status_code == 200, submitted.text
    settlement = submitted.json()["data"]
    assert settlement["total_orders"] == 1
    assert settlement["total_revenue"] == 140.0
    assert settlement["total_discount"] == 14.0
    assert settlement["net_revenue"] == 126.0
    assert settlement["incentive_items_sold"] == 2
    assert settlement["inventory_counts"] == [{"product_id": product["id"], "quantity": 4}]

    today = client.get("/api/pos/inventory/today", headers=auth_headers).json()["data"]
    assert today["id"] == settlement["id"]
    assert today["inventory_counts"] == settlement["inventory_counts"]


def test_explicit_incentive_values_are_kept(client, auth_headers) -> None:
    shift = _open(client, auth_headers)
    closed = client.post(
        f"/api/pos/shift/{shift['id']}/close",
        json={"incentive_target": 100, "incentive_items_sold": 131},
        headers=auth_headers,
    ).json()["data"]["settlement"]
    assert closed["incentive_target"] == 100
    assert closed["incentive_items_sold"] == 131
    assert closed["incentive_achieved"] is True
