from __future__ import annotations

from decimal import Decimal

from backend.app.schemas import Invoice, InvoiceInput
from backend.app.services import InvoiceService, next_invoice_number


def _payload(customer: str = "Acme Corp", issue_date: str = "2025-03-01", **overrides) -> dict:
    payload = {
        "issue_date": issue_date,
        "bill_from": {"name": "God Favor Business Center", "email": "contact@gfbc.com"},
        "bill_to": {"name": customer, "address": "1 Main St"},
        "line_items": [
            {"product": {"id": "prod_1", "name": "Web Design"}, "quantity": 2, "price": "150.00"},
            {"product": {"id": "prod_2", "name": "Hosting (1 year)"}, "quantity": 1, "price": "99.50"},
        ],
    }
    payload.update(overrides)
    return payload


def test_create_invoice_assigns_number_template_and_author(admin_client):
    response = admin_client.post("/invoices/", json=_payload())
    assert response.status_code == 201, response.text

    data = response.json()
    assert data["id"].startswith("INV-")
    assert data["invoice_number"] == "#001"
    assert data["issue_date"] == "2025-03-01"
    assert data["template_id"] == "template_default"
    assert data["notes"] == "Thank you for your business!"
    assert data["created_by_id"] == "admin-1"
    assert data["created_by_name"] == "Ada Admin"
    assert Decimal(str(data["total_amount"])) == Decimal("399.50")

    second = admin_client.post("/invoices/", json=_payload("Globex")).json()
    assert second["invoice_number"] == "#002"


def test_next_invoice_number_uses_highest_digits():
    def invoice(number: str) -> Invoice:
        return Invoice.model_validate(
            {
                "id": number,
                "invoice_number": number,
                "issue_date": "2025-01-01",
                "bill_from": {"name": "Us"},
                "bill_to": {"name": "Them"},
                "created_at": "2025-01-01T00:00:00Z",
                "template_id": "template_default",
                "created_by_id": "user-1",
            }
        )

    assert next_invoice_number([]) == "#001"
    assert next_invoice_number([invoice("#009"), invoice("#041"), invoice("draft")]) == "#042"
    assert next_invoice_number([invoice("#1200")]) == "#1201"


def test_invoice_requires_customer_and_line_items(admin_client):
    response = admin_client.post("/invoices/", json=_payload(customer="  "))
    assert response.status_code == 422

    response = admin_client.post("/invoices/", json=_payload(line_items=[]))
    assert response.status_code == 422


def test_list_invoices_searches_number_and_customer(admin_client):
    admin_client.post("/invoices/", json=_payload("Acme Corp"))
    admin_client.post("/invoices/", json=_payload("Globex"))
    admin_client.post("/invoices/", json=_payload("acme labs"))

    response = admin_client.get("/invoices/", params={"search": "ACME"})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["total_invoice_count"] == 3
    assert {item["bill_to"]["name"] for item in data["items"]} == {"Acme Corp", "acme labs"}

    by_number = admin_client.get("/invoices/", params={"search": "#002"}).json()
    assert [item["bill_to"]["name"] for item in by_number["items"]] == ["Globex"]


def test_get_invoice_returns_resolved_template(admin_client):
    created = admin_client.post("/invoices/", json=_payload()).json()

    response = admin_client.get(f"/invoices/{created['id']}")
    assert response.status_code == 200
    data = response.json()
    assert data["invoice"]["id"] == created["id"]
    assert data["template"]["id"] == "template_default"

    assert admin_client.get("/invoices/INV-missing").status_code == 404


def test_replace_invoice_keeps_identity_and_number(admin_client):
    created = admin_client.post("/invoices/", json=_payload()).json()

    response = admin_client.put(
        f"/invoices/{created['id']}",
        json=_payload("Initech", issue_date="2025-03-05", notes="Updated"),
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["id"] == created["id"]
    assert data["invoice_number"] == created["invoice_number"]
    assert data["created_at"] == created["created_at"]
    assert data["created_by_id"] == "admin-1"
    assert data["bill_to"]["name"] == "Initech"
    assert data["notes"] == "Updated"

    assert admin_client.put("/invoices/INV-missing", json=_payload()).status_code == 404


def test_delete_invoice(admin_client):
    created = admin_client.post("/invoices/", json=_payload()).json()

    assert admin_client.delete(f"/invoices/{created['id']}").status_code == 204
    assert admin_client.get(f"/invoices/{created['id']}").status_code == 404
    assert admin_client.delete(f"/invoices/{created['id']}").status_code == 404


def test_staff_only_resolves_its_own_name(staff_client, db_session):
    created = staff_client.post("/invoices/", json=_payload()).json()
    assert created["created_by_name"] == "Sam Staff"

    InvoiceService.create_invoice(
        db_session, InvoiceInput.model_validate(_payload("Globex")), created_by_id="admin-1"
    )

    listing = staff_client.get("/invoices/").json()
    names = {item["bill_to"]["name"]: item["created_by_name"] for item in listing["items"]}
    assert names == {"Acme Corp": "Sam Staff", "Globex": "Unknown User"}


def test_invoices_require_login(client):
    assert client.get("/invoices/").status_code == 401


def test_products_catalog_and_new_product(staff_client):
    response = staff_client.get("/products/")
    assert response.status_code == 200
    names = [item["name"] for item in response.json()["items"]]
    assert "Web Design" in names

    response = staff_client.post("/products/", json={"name": "  Photography  "})
    assert response.status_code == 201
    product = response.json()
    assert product["id"].startswith("prod_")
    assert product["name"] == "Photography"
    assert product["description"] == "Newly added item"

    names = [item["name"] for item in staff_client.get("/products/").json()["items"]]
    assert names[-1] == "Photography"
