from __future__ import annotations

from backend.app.services.local_store import LocalStore
from backend.app.services.remote_backend import RemoteBackendError


def _settings_payload(**overrides) -> dict:
    payload = {
        "templates": [
            {"id": "template_default", "name": "Standard", "is_default": False},
            {"id": "template_bold", "name": "Bold", "is_default": False, "accent_color": "#ff0000", "layout": "classic"},
        ],
        "business_profile": {"name": "Acme Invoicing", "email": "billing@acme.test", "address": "2 Side St"},
        "app_icon": "/acme.svg",
    }
    payload.update(overrides)
    return payload


def test_public_branding_uses_defaults(client):
    response = client.get("/settings/branding")
    assert response.status_code == 200
    assert response.json() == {
        "business_name": "God Favor Business Center",
        "logo_url": None,
        "app_icon": "/icon.svg",
        "login_background": "/default-background.jpg",
    }


def test_settings_require_login(client):
    assert client.get("/settings").status_code == 401


def test_save_settings_keeps_exactly_one_default_template(admin_client):
    response = admin_client.put("/settings", json=_settings_payload())
    assert response.status_code == 200, response.text
    templates = response.json()["templates"]
    assert [template["is_default"] for template in templates] == [True, False]

    payload = _settings_payload()
    payload["templates"][0]["is_default"] = True
    payload["templates"][1]["is_default"] = True
    templates = admin_client.put("/settings", json=payload).json()["templates"]
    assert [template["is_default"] for template in templates] == [True, False]

    branding = admin_client.get("/settings/branding").json()
    assert branding["business_name"] == "Acme Invoicing"
    assert branding["app_icon"] == "/acme.svg"


def test_duplicate_template_ids_are_rejected(admin_client):
    payload = _settings_payload()
    payload["templates"][1]["id"] = "template_default"

    assert admin_client.put("/settings", json=payload).status_code == 422


def test_invoice_falls_back_to_default_template_after_removal(admin_client):
    admin_client.put("/settings", json=_settings_payload())
    created = admin_client.post(
        "/invoices/",
        json={
            "issue_date": "2025-03-01",
            "bill_from": {"name": "Us"},
            "bill_to": {"name": "Them"},
            "line_items": [{"product": {"id": "p", "name": "P"}, "quantity": 1, "price": "1"}],
            "template_id": "template_bold",
        },
    ).json()
    assert created["template_id"] == "template_bold"

    admin_client.put(
        "/settings",
        json=_settings_payload(templates=[{"id": "template_default", "name": "Standard"}]),
    )
    detail = admin_client.get(f"/invoices/{created['id']}").json()
    assert detail["template"]["id"] == "template_default"


def test_login_background_upload_sets_cache_busted_url(admin_client, fake_backend):
    response = admin_client.post(
        "/settings/login-background",
        params={"filename": "beach.photo.PNG"},
        content=b"\x89PNG...",
    )
    assert response.status_code == 200, response.text

    background = response.json()["login_background"]
    assert background.startswith(f"{fake_backend.storage_url}/login-background.PNG?t=")
    assert fake_backend.uploads["login-background.PNG"] == b"\x89PNG..."

    # A second upload overwrites the same object.
    response = admin_client.post(
        "/settings/login-background", params={"filename": "other.PNG"}, content=b"new"
    )
    assert response.status_code == 200
    assert fake_backend.uploads["login-background.PNG"] == b"new"


def test_login_background_upload_failure(admin_client, fake_backend):
    fake_backend.upload_error = RemoteBackendError("Bucket not found", status_code=404)

    response = admin_client.post(
        "/settings/login-background", params={"filename": "bg.jpg"}, content=b"jpeg"
    )

    assert response.status_code == 502
    assert response.json()["detail"] == "Background upload failed: Bucket not found"
    assert admin_client.get("/settings/branding").json()["login_background"] == "/default-background.jpg"


def test_logout_resets_local_data(admin_client):
    admin_client.put("/settings", json=_settings_payload())
    admin_client.post("/products/", json={"name": "Photography"})

    response = admin_client.post("/session/logout")
    assert response.status_code == 200
    assert response.json()["status"] == "logged_out"

    branding = admin_client.get("/settings/branding").json()
    assert branding["business_name"] == "God Favor Business Center"
    assert branding["app_icon"] == "/icon.svg"


def test_empty_login_background_is_rejected(admin_client, fake_backend):
    response = admin_client.post(
        "/settings/login-background", params={"filename": "bg.jpg"}, content=b""
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Background upload failed: the file is empty"
    assert fake_backend.uploads == {}


def test_logout_without_session_keeps_local_data(client, db_session):
    LocalStore(db_session).save("invoices", [{"id": "INV-1"}])
    LocalStore(db_session).save("app_icon", "/acme.svg")

    response = client.post("/session/logout")

    assert response.status_code == 200
    assert response.json()["status"] == "logged_out"
    assert LocalStore(db_session).load("invoices", [])[0] == [{"id": "INV-1"}]
    assert client.get("/settings/branding").json()["app_icon"] == "/acme.svg"


def test_logout_while_setup_is_required_keeps_local_data(needs_setup_client, db_session):
    LocalStore(db_session).save("invoices", [{"id": "INV-1"}])

    response = needs_setup_client.post("/session/logout")

    assert response.status_code == 200
    assert response.json()["status"] == "needs_setup"
    assert LocalStore(db_session).load("invoices", [])[0] == [{"id": "INV-1"}]
