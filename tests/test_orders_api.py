import smtplib

import pytest

from deps import get_mailer
from main import app
from mailer import Mailer
from settings import Settings

ADDRESS = {"name": "Ana Perez", "email": "ana@example.com", "line1": "Calle 1", "city": "San Salvador",
           "country": "SV"}


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def buyer(register):
    register("owner@example.com")
    token, _ = register("ana@example.com")
    return token


def place(client, token, **body):
    body.setdefault("items", [{"productId": "P1", "qty": 2}])
    body.setdefault("address", ADDRESS)
    return client.post("/api/orders", json=body, headers=bearer(token))


def test_deal_order_with_shipping(client, buyer):
    response = place(client, buyer, shipping=5.00)
    assert response.status_code == 201
    order = response.json()
    assert order["total"] == 65.00
    assert order["status"] == "created"
    assert order["shipping"] == 5.0
    assert order["discount"] is None
    [line] = order["items"]
    assert line["product_id"] == "P1"
    assert line["unit_price"] == 30.00
    assert line["line_total"] == 60.00
    assert line["quantity"] == 2


def test_order_with_discount(client, buyer):
    response = place(client, buyer, items=[{"productId": "P2"}], discount={"code": "SPRING", "amount": 99.99})
    assert response.status_code == 201
    assert response.json()["total"] == 1400.00
    assert response.json()["discount"] == {"code": "SPRING", "amount": 99.99}


def test_empty_cart_is_rejected_and_nothing_stored(client, buyer, db):
    response = place(client, buyer, items=[])
    assert response.status_code == 400
    assert response.json() == {"error": "Cart items required"}
    assert db.get_documents("order") == []


def test_unknown_product_is_rejected_and_nothing_stored(client, buyer, db):
    response = place(client, buyer, items=[{"productId": "P1", "qty": 1}, {"productId": "ghost", "qty": 1}])
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid product"}
    assert db.get_documents("order") == []


@pytest.mark.parametrize("body", [
    '{"items": [{"productId": "P1", "qty": 1}], "shipping": 1e400}',
    '{"items": [{"productId": "P1", "qty": 1}], "shipping": NaN}',
    '{"items": [{"productId": "P1", "qty": 1}], "discount": {"code": "X", "amount": -Infinity}}',
])
def test_non_finite_amounts_are_rejected(client, buyer, db, body):
    headers = {**bearer(buyer), "Content-Type": "application/json"}
    response = client.post("/api/orders", content=body, headers=headers)
    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid payload")
    assert db.get_documents("order") == []


def test_orders_require_a_token(client):
    response = client.post("/api/orders", json={"items": [{"productId": "P1"}]})
    assert response.status_code == 401


def test_owner_can_fetch_order(client, buyer):
    created = place(client, buyer).json()
    response = client.get(f"/api/orders/{created['id']}", headers=bearer(buyer))
    assert response.status_code == 200
    assert response.json() == created


def test_other_users_order_is_not_found(client, buyer, register):
    created = place(client, buyer).json()
    stranger, _ = register("mallory@example.com")
    for path in (f"/api/orders/{created['id']}", f"/api/orders/{created['id']}/invoice.pdf"):
        response = client.get(path, headers=bearer(stranger))
        assert response.status_code == 404
        assert response.json() == {"error": "Order not found"}
    response = client.post(f"/api/orders/{created['id']}/send-invoice", headers=bearer(stranger))
    assert response.status_code == 404


def test_lists_only_own_orders(client, buyer, register):
    mine = place(client, buyer).json()
    other, _ = register("mallory@example.com")
    place(client, other)
    response = client.get("/api/orders", headers=bearer(buyer))
    assert [o["id"] for o in response.json()] == [mine["id"]]


def test_invoice_pdf(client, buyer):
    order = place(client, buyer, shipping=5).json()
    response = client.get(f"/api/orders/{order['id']}/invoice.pdf", headers=bearer(buyer))
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == f'inline; filename="Invoice-{order["id"]}.pdf"'
    assert response.content.startswith(b"%PDF")


def test_send_invoice(client, buyer, outbox):
    order = place(client, buyer).json()
    response = client.post(f"/api/orders/{order['id']}/send-invoice", headers=bearer(buyer))
    assert response.status_code == 200
    assert response.json() == {"message": "Invoice sent successfully"}
    [message] = outbox
    assert message["To"] == "ana@example.com"


def test_send_invoice_needs_an_address_email(client, buyer, outbox):
    order = place(client, buyer, address={"name": "Ana"}).json()
    response = client.post(f"/api/orders/{order['id']}/send-invoice", headers=bearer(buyer))
    assert response.status_code == 400
    assert response.json() == {"error": "No email address provided"}
    assert outbox == []


def test_send_invoice_without_mail_credentials(client, buyer):
    order = place(client, buyer).json()
    app.dependency_overrides[get_mailer] = lambda: Mailer(Settings(email_user="", email_pass=""))
    response = client.post(f"/api/orders/{order['id']}/send-invoice", headers=bearer(buyer))
    assert response.status_code == 500
    assert response.json()["error"].startswith("Email service not configured")


def test_send_invoice_reports_transport_failure(client, buyer, settings):
    def refuse_login(host, port, timeout=None):
        raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

    order = place(client, buyer).json()
    app.dependency_overrides[get_mailer] = lambda: Mailer(settings, smtp_factory=refuse_login)
    response = client.post(f"/api/orders/{order['id']}/send-invoice", headers=bearer(buyer))
    assert response.status_code == 500
    assert response.json() == {"error": "Email authentication failed. Please check email credentials."}


def test_send_invoice_to_header_breaking_address(client, buyer, outbox):
    order = place(client, buyer, address={**ADDRESS, "email": "ana@example.com\r\nBcc: x@evil.test"}).json()
    response = client.post(f"/api/orders/{order['id']}/send-invoice", headers=bearer(buyer))
    assert response.status_code == 500
    assert response.json() == {"error": "Invalid email address. Please check the recipient email."}
    assert outbox == []
