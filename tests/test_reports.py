import pytest
from conftest import order_payload

DAY = "2026-10-18"


@pytest.fixture()
def sales_day(client, auth_headers, make_product):
    madeleine = make_product()
    cheesecake = make_product("芝士蛋糕", 80, category="布丁")
    pearl = make_product("珍珠", 10, category="加料")

    morning = order_payload(
        madeleine,
        quantity=2,
        timestamp=f"{DAY}T10:15:00Z",
        discount_type="percentage",
        discount_value=10,
        customer_tag="女,學生",
    )
    morning["items"][0]["addons"] = [{"product_id": pearl["id"], "product_name": "珍珠", "price": 10}]
    afternoon = order_payload(
        cheesecake,
        timestamp=f"{DAY}T14:30:00Z",
        payment_method="line_pay",
        discount_type="amount",
        discount_value=20,
    )
    cancelled = order_payload(madeleine, timestamp=f"{DAY}T15:00:00Z")
    for payload in (morning, afternoon, cancelled):
        resp = client.post("/api/pos/orders", json=payload, headers=auth_headers)
        assert resp.status_code == 200, resp.text
    dropped = resp.json()["data"]
    client.post(f"/api/admin/orders/{dropped['id']}/cancel", headers=auth_headers)
    return auth_headers


def _get(client, headers, path, **params):
    resp = client.get(f"/api/admin/reports/{path}", params={"date": DAY, **params}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def test_daily_report_totals(client, sales_day) -> None:
    report = _get(client, sales_day, "daily")
    assert report["date"] == DAY
    assert report["order_count"] == 2
    assert report["total_revenue"] == 240.0
    assert report["total_discount"] == 36.0
    assert report["net_revenue"] == 204.0
    assert report["average_order_value"] == 102.0
    assert report["stock_sold"] == 3
    assert report["comparison"]["previous_order_count"] == 0
    assert report["comparison"]["revenue_change"] == 0.0


def test_hourly_sales_buckets(client, sales_day) -> None:
    hours = {row["hour"]: row for row in _get(client, sales_day, "hourly-sales")}
    assert len(hours) == 10
    assert hours["10:00"] == {"hour": "10:00", "sales": 144.0, "orders": 1}
    assert hours["14:00"]["sales"] == 60.0
    assert hours["15:00"]["orders"] == 0


def test_category_and_payment_breakdowns(client, sales_day) -> None:
    categories = _get(client, sales_day, "category-sales")
    assert categories[0] == {"category": "蛋糕", "sales": 160.0, "percentage": 67}
    assert categories[1]["category"] == "布丁"

    methods = {row["method"]: row for row in _get(client, sales_day, "payment-methods")}
    assert methods["現金"]["count"] == 1
    assert methods["現金"]["amount"] == 144.0
    assert methods["LINE Pay"]["percentage"] == 50.0


def test_addon_reports_count_per_unit(client, sales_day) -> None:
    addons = _get(client, sales_day, "top-addons")
    assert addons == [{"name": "珍珠", "count": 2, "revenue": 20.0}]

    combos = _get(client, sales_day, "addon-combinations")
    assert combos == [{"product": "抹茶紅豆瑪德蓮", "addon": "珍珠", "count": 2}]

    top = _get(client, sales_day, "top-products")
    assert top[0] == {"name": "抹茶紅豆瑪德蓮", "quantity": 2, "revenue": 160.0}


def test_customer_tag_distribution(client, sales_day) -> None:
    tags = _get(client, sales_day, "customer-tags")
    gender = {row["tag"]: row for row in tags["gender"]}
    age = {row["tag"]: row for row in tags["age"]}
    assert tags["total_orders"] == 2
    assert gender["女"]["orders"] == 1
    assert gender["女"]["revenue"] == 144.0
    assert gender["男"]["orders"] == 0
    assert gender["未標記"]["percentage"] == 50.0
    assert age["學生"]["orders"] == 1


def test_csv_export(client, sales_day) -> None:
    resp = client.get("/api/admin/reports/export", params={"date": DAY}, headers=sales_day)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert resp.content.startswith(b"\xef\xbb\xbf")

    lines = resp.content.decode("utf-8-sig").splitlines()
    assert lines[0] == "訂單編號,時間,商品,小計,折扣,總計,付款方式,狀態,客群標記"
    assert len(lines) == 4
    assert lines[1].startswith("#0001,2026-10-18 10:15:00,抹茶紅豆瑪德蓮 x 2,160,16,144,現金,已完成,")
    assert "已取消" in lines[3]


def test_dashboard_endpoints_respond(client, auth_headers) -> None:
    kpi = client.get("/api/admin/dashboard/kpi", headers=auth_headers).json()["data"]
    assert [card["key"] for card in kpi] == ["revenue", "orders", "products", "average"]
    assert kpi[0]["change"] == "+0.0%"

    trend = client.get("/api/admin/dashboard/sales-trend", params={"days": 3}, headers=auth_headers).json()["data"]
    assert len(trend) == 3

    status = client.get("/api/admin/dashboard/material-status", headers=auth_headers).json()["data"]
    assert status["total_materials"] == 0
