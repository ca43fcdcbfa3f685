import jwt

from conftest import ADMIN_PASSWORD, ADMIN_USERNAME, login_headers

from honeypos.config import settings


def _register(client, username="owner", password="secret123", confirm=None):
    return client.post(
        "/api/auth/register",
        json={"username": username, "password": password, "confirm_password": confirm or password},
    )


def test_first_user_registration_is_one_time(client) -> None:
    assert client.get("/api/auth/status").json()["data"] == {"has_users": False}

    created = _register(client)
    assert created.status_code == 200
    assert created.json()["data"]["role"] == "admin"
    assert created.json()["data"]["display_name"] == "owner"
    assert client.get("/api/auth/status").json()["data"] == {"has_users": True}

    again = _register(client, "second")
    assert again.status_code == 409


def test_registration_validation(client) -> None:
    assert _register(client, "ab").status_code == 400
    assert _register(client, "owner", "12345").status_code == 400
    mismatch = _register(client, "owner", "secret123", "secret124")
    assert mismatch.status_code == 400
    assert mismatch.json() == {"detail": "passwords do not match"}


def test_login_issues_token_with_claims(client) -> None:
    _register(client)
    resp = client.post("/api/auth/login", json={"username": "owner", "password": "secret123"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == settings.jwt_expiry_hours * 3600

    claims = jwt.decode(
        data["access_token"],
        settings.jwt_secret,
        algorithms=["HS256"],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
    )
    assert claims["username"] == "owner"
    assert claims["role"] == "admin"
    assert claims["sub"] == str(data["user"]["id"])

    bad = client.post("/api/auth/login", json={"username": "owner", "password": "wrong-pass"})
    assert bad.status_code == 401
    assert bad.json() == {"detail": "invalid username or password"}


def test_me_and_change_password(client, auth_headers) -> None:
    me = client.get("/api/admin/accounts/me", headers=auth_headers).json()["data"]
    assert me["username"] == ADMIN_USERNAME
    assert me["last_login_at"] is not None

    wrong = client.post(
        "/api/admin/accounts/change-password",
        json={"current_password": "nope-nope", "new_password": "newsecret"},
        headers=auth_headers,
    )
    assert wrong.status_code == 400

    changed = client.post(
        "/api/admin/accounts/change-password",
        json={"current_password": ADMIN_PASSWORD, "new_password": "newsecret"},
        headers=auth_headers,
    )
    assert changed.status_code == 200
    login_headers(client, ADMIN_USERNAME, "newsecret")


def test_pos_user_is_kept_out_of_admin_routes(client, auth_headers) -> None:
    created = client.post(
        "/api/admin/accounts",
        json={"username": "cashier", "password": "cashier1", "display_name": "收銀員"},
        headers=auth_headers,
    )
    assert created.status_code == 200
    assert created.json()["data"]["role"] == "pos_user"

    duplicate = client.post(
        "/api/admin/accounts", json={"username": "cashier", "password": "cashier1"}, headers=auth_headers
    )
    assert duplicate.status_code == 409

    cashier = login_headers(client, "cashier", "cashier1")
    assert client.get("/api/pos/products", headers=cashier).status_code == 200
    assert client.get("/api/admin/products", headers=cashier).status_code == 403
    assert client.get("/api/admin/accounts", headers=cashier).status_code == 403


def test_disabled_user_cannot_log_in(client, auth_headers) -> None:
    user = client.post(
        "/api/admin/accounts", json={"username": "cashier", "password": "cashier1"}, headers=auth_headers
    ).json()["data"]
    cashier = login_headers(client, "cashier", "cashier1")

    toggled = client.patch(f"/api/admin/accounts/{user['id']}/status", headers=auth_headers)
    assert toggled.json()["data"]["is_active"] is False

    assert client.post("/api/auth/login", json={"username": "cashier", "password": "cashier1"}).status_code == 401
    assert client.get("/api/pos/products", headers=cashier).status_code == 401


def test_admin_cannot_disable_or_demote_self(client, auth_headers) -> None:
    me = client.get("/api/admin/accounts/me", headers=auth_headers).json()["data"]
    assert client.patch(f"/api/admin/accounts/{me['id']}/status", headers=auth_headers).status_code == 400
    demote = client.put(f"/api/admin/accounts/{me['id']}", json={"role": "pos_user"}, headers=auth_headers)
    assert demote.status_code == 400


def test_reset_password_and_audit_log(client, auth_headers) -> None:
    user = client.post(
        "/api/admin/accounts", json={"username": "cashier", "password": "cashier1"}, headers=auth_headers
    ).json()["data"]
    reset = client.post(
        f"/api/admin/accounts/{user['id']}/reset-password", json={"new_password": "fresh-pass"}, headers=auth_headers
    )
    assert reset.status_code == 200
    login_headers(client, "cashier", "fresh-pass")

    logs = client.get("/api/admin/audit-logs", headers=auth_headers).json()
    actions = [entry["action"] for entry in logs["data"]]
    assert {"register", "login", "create_user", "reset_password"} <= set(actions)
    assert logs["meta"]["page"]["total"] == len(actions)

    filtered = client.get("/api/admin/audit-logs", params={"action": "create_user"}, headers=auth_headers).json()
    assert [entry["detail"] for entry in filtered["data"]] == ["created cashier (pos_user)"]
