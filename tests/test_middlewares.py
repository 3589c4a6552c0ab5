from recipes_api.config import settings


def test_size_limit_middleware(client, auth_headers):
    big_body = "x" * (settings.max_body_bytes + 1)
    resp = client.post("/recipes", content=big_body, headers={"Content-Type": "application/json", **auth_headers()})
    assert resp.status_code == 413
    assert resp.json()["code"] == "payload_too_large"


def test_dev_login_issues_usable_token(monkeypatch, client):
    monkeypatch.setattr(settings, "auth_dev_pin", "000000")
    resp = client.post("/auth/login", json={"email": "Cook@Example.com", "dev_pin": "000000"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["user_id"] == "cook@example.com"
    assert data["token_type"] == "bearer"

    headers = {"Authorization": f"Bearer {data['access_token']}"}
    body = {
        "title": "Tea",
        "ingredients": [{"amount": "1", "unit": "cup", "description": "water"}],
        "instructions": [{"details": "steep"}],
    }
    created = client.post("/recipes", json=body, headers=headers)
    assert created.status_code == 201
    assert created.json()["author"] == "cook@example.com"


def test_dev_login_wrong_pin(monkeypatch, client):
    monkeypatch.setattr(settings, "auth_dev_pin", "000000")
    resp = client.post("/auth/login", json={"email": "cook@example.com", "dev_pin": "999999"})
    assert resp.status_code == 401


def test_dev_login_disabled_without_pin(monkeypatch, client):
    monkeypatch.setattr(settings, "auth_dev_pin", None)
    resp = client.post("/auth/login", json={"email": "cook@example.com", "dev_pin": ""})
    assert resp.status_code == 401


def test_dev_login_hidden_behind_identity_provider(monkeypatch, client):
    monkeypatch.setattr(settings, "auth_issuer_url", "https://tenant.example.com/")
    monkeypatch.setattr(settings, "auth_audience", "recipes")
    resp = client.post("/auth/login", json={"email": "cook@example.com", "dev_pin": "000000"})
    assert resp.status_code == 404
