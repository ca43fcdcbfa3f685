from decimal import Decimal

from conftest import order_payload

from honeypos.models import LineAdmin, MaterialAlert
from honeypos.services import materials
from honeypos.utils import utcnow


def _material(client, headers, name="低筋麵粉", stock=1000, threshold=200):
    resp = client.post(
        "/api/admin/materials",
        json={"name": name, "unit": "g", "current_stock": stock, "alert_threshold": threshold},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def test_create_material_records_initial_stock(client, auth_headers) -> None:
    flour = _material(client, auth_headers)
    assert flour["current_stock"] == 1000.0
    assert flour["stock_level"] == "normal"

    records = client.get("/api/admin/materials/records", params={"material_id": flour["id"]}, headers=auth_headers)
    body = records.json()
    assert body["meta"]["page"]["total"] == 1
    assert body["data"][0]["change_type"] == "in"
    assert body["data"][0]["note"] == "初始庫存"


def test_order_consumes_recipe_and_cancel_restores(client, auth_headers, make_product) -> None:
    flour = _material(client, auth_headers)
    product = make_product()
    recipe = client.put(
        f"/api/admin/recipes/{product['id']}",
        json={"items": [{"material_id": flour["id"], "quantity": 300}]},
        headers=auth_headers,
    )
    assert recipe.json()["data"]["recipe_count"] == 1

    order = client.post("/api/pos/orders", json=order_payload(product, quantity=3), headers=auth_headers).json()["data"]
    after_sale = client.get(f"/api/admin/materials/{flour['id']}", headers=auth_headers).json()["data"]
    assert after_sale["current_stock"] == 100.0
    assert after_sale["stock_level"] == "low"

    alerts = client.get("/api/admin/materials/alerts", headers=auth_headers).json()["data"]
    assert len(alerts) == 1
    assert alerts[0]["material_name"] == "低筋麵粉"
    assert alerts[0]["is_notified"] is False

    client.post(f"/api/admin/orders/{order['id']}/cancel", headers=auth_headers)
    restored = client.get(f"/api/admin/materials/{flour['id']}", headers=auth_headers).json()["data"]
    assert restored["current_stock"] == 1000.0
    assert client.get("/api/admin/materials/alerts", headers=auth_headers).json()["data"] == []

    records = client.get(
        "/api/admin/materials/records", params={"material_id": flour["id"]}, headers=auth_headers
    ).json()["data"]
    assert [r["change_type"] for r in records][:2] == ["in", "out"]
    assert records[1]["note"] == f"訂單 {order['order_number']} 消耗"


def test_stock_operations(client, auth_headers) -> None:
    butter = _material(client, auth_headers, "奶油", stock=500, threshold=100)

    stocked = client.post(
        f"/api/admin/materials/{butter['id']}/stock-in", json={"quantity": 250}, headers=auth_headers
    ).json()["data"]
    assert stocked["current_stock"] == 750.0

    adjusted = client.post(
        f"/api/admin/materials/{butter['id']}/adjust", json={"new_stock": 80, "note": "盤點"}, headers=auth_headers
    ).json()["data"]
    assert adjusted["stock_level"] == "low"

    wasted = client.post(
        f"/api/admin/materials/{butter['id']}/waste", json={"quantity": 500}, headers=auth_headers
    ).json()["data"]
    assert wasted["current_stock"] == 0.0
    assert wasted["stock_level"] == "out"

    status = client.get("/api/admin/materials/status", headers=auth_headers).json()["data"]
    assert status["out_of_stock_count"] == 1
    assert status["active_alerts"] == 1

    bad = client.post(f"/api/admin/materials/{butter['id']}/stock-in", json={"quantity": 0}, headers=auth_headers)
    assert bad.status_code == 422


def test_material_used_by_recipe_cannot_be_deleted(client, auth_headers, make_product) -> None:
    flour = _material(client, auth_headers)
    product = make_product()
    client.put(
        f"/api/admin/recipes/{product['id']}",
        json={"items": [{"material_id": flour["id"], "quantity": 30}]},
        headers=auth_headers,
    )
    resp = client.delete(f"/api/admin/materials/{flour['id']}", headers=auth_headers)
    assert resp.status_code == 409


def test_recipe_replace_warns_about_unknown_and_duplicate_materials(client, auth_headers, make_product) -> None:
    flour = _material(client, auth_headers)
    product = make_product()
    resp = client.put(
        f"/api/admin/recipes/{product['id']}",
        json={
            "items": [
                {"material_id": flour["id"], "quantity": 30},
                {"material_id": flour["id"], "quantity": 10},
                {"material_id": 999, "quantity": 5},
            ]
        },
        headers=auth_headers,
    ).json()
    assert resp["data"]["recipe_count"] == 1
    assert resp["meta"]["warnings"] == [f"duplicate_material:{flour['id']}", "material_not_found:999"]


def test_low_stock_alert_is_pushed_to_line_admins(db, line_client) -> None:
    db.add(
        LineAdmin(
            line_user_id="U-manager",
            display_name="店長",
            status="approved",
            is_active=True,
            created_at=utcnow(),
        )
    )
    db.commit()

    sugar = materials.create_material(db, "砂糖", "g", current_stock=50, alert_threshold=100)

    assert len(line_client.pushes) == 1
    user_id, text = line_client.pushes[0]
    assert user_id == "U-manager"
    assert text.startswith("⚠️ 原物料庫存不足")
    assert "砂糖" in text
    alert = db.query(MaterialAlert).filter(MaterialAlert.material_id == sugar.id).one()
    assert alert.is_notified is True
    assert alert.stock_level == Decimal("50")


def test_alert_is_not_duplicated_while_open(db) -> None:
    sugar = materials.create_material(db, "砂糖", "g", current_stock=50, alert_threshold=100)
    materials.waste(db, sugar.id, 10)
    open_alerts = db.query(MaterialAlert).filter(MaterialAlert.is_resolved.is_(False)).count()
    assert open_alerts == 1

    materials.stock_in(db, sugar.id, 500)
    assert db.query(MaterialAlert).filter(MaterialAlert.is_resolved.is_(False)).count() == 0
