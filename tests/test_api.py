import json

import pytest
from fastapi.testclient import TestClient

from storefront.api import create_app

HOOKS = {
    "new_order_webhook": "https://hooks.example.test/new-order",
    "payment_webhook": "https://hooks.example.test/payment",
    "stock_webhook": "https://hooks.example.test/stock",
    "enabled": True,
}

CUSTOMER = {
    "name": "Kekê",
    "address": "Rua das Flores",
    "number": "42",
    "neighborhood": "Centro",
    "payment_method": "pix",
}


@pytest.fixture
def dispatcher(recorder, make_dispatcher):
    return make_dispatcher(recorder)


@pytest.fixture
def client(app_settings, dispatcher):
    app = create_app(settings=app_settings, dispatcher=dispatcher)
    with TestClient(app) as test_client:
        yield test_client


def test_catalog_is_grouped_by_category(client):
    response = client.get("/api/catalog")
    assert response.status_code == 200
    categories = response.json()["categories"]
    assert list(categories)[0] == "Cervejas"
    assert sum(len(products) for products in categories.values()) == 12


def test_cart_flow(client):
    client.post("/api/cart/items", json={"product_id": "1", "quantity": 2})
    response = client.post("/api/cart/items", json={"product_id": "7"})
    cart = response.json()
    assert cart["total"] == 11.0
    assert cart["item_count"] == 3
    assert [line["quantity"] for line in cart["lines"]] == [2, 1]

    cart = client.put("/api/cart/items/1", json={"quantity": 0}).json()
    assert cart["total"] == 4.0
    assert [line["product"]["id"] for line in cart["lines"]] == ["7"]

    cart = client.delete("/api/cart/items/7").json()
    assert cart["lines"] == []
    assert cart["total"] == 0


def test_unknown_product_is_404(client):
    assert client.post("/api/cart/items", json={"product_id": "999"}).status_code == 404
    assert client.put("/api/cart/items/999", json={"quantity": 1}).status_code == 404


def test_non_positive_add_is_rejected(client):
    assert client.post("/api/cart/items", json={"product_id": "1", "quantity": 0}).status_code == 422


def test_checkout_is_blocked_until_ready(client):
    cart = client.get("/api/cart").json()
    assert cart["checkout_ready"] is False
    assert "cart_empty" in cart["checkout_blockers"]

    response = client.post("/api/checkout")
    assert response.status_code == 409
    assert "cart_empty" in response.json()["blockers"]

    client.post("/api/cart/items", json={"product_id": "1"})
    client.patch("/api/customer", json={"payment_method": "card"})
    response = client.post("/api/checkout")
    assert response.status_code == 409
    assert response.json()["blockers"] == ["address", "number", "neighborhood", "card_type"]


def test_checkout_places_order_and_resets_state(client, recorder, dispatcher):
    client.put("/api/settings/notifications", json=HOOKS)
    client.post("/api/cart/items", json={"product_id": "1", "quantity": 2})
    client.patch("/api/customer", json=CUSTOMER)
    assert client.get("/api/cart").json()["checkout_ready"] is True

    response = client.post("/api/checkout")
    assert response.status_code == 200
    body = response.json()
    assert body["order"]["id"] == "#001"
    assert body["order"]["total"] == 7.0
    assert body["order"]["status"] == "pending"
    assert body["order"]["address"] == "Rua das Flores, 42 - Centro"
    assert "Aguardando comprovante PIX" in body["confirmation"]

    assert client.get("/api/cart").json()["lines"] == []
    customer = client.get("/api/customer").json()
    assert customer["address"] == ""
    assert customer["payment_method"] is None

    messages = client.get("/api/messages").json()
    assert messages[-1]["content"] == body["confirmation"]
    assert messages[-1]["is_bot"] is True

    assert dispatcher.drain(timeout=5)
    actions = sorted(json.loads(request.content)["action"] for request in recorder.requests)
    assert actions == ["new_order", "payment_pending", "product_added_to_cart"]


def test_second_order_gets_next_id(client):
    for expected in ("#001", "#002"):
        client.post("/api/cart/items", json={"product_id": "10"})
        client.patch("/api/customer", json=dict(CUSTOMER, payment_method="cash", change_for="20"))
        assert client.post("/api/checkout").json()["order"]["id"] == expected
    orders = client.get("/api/orders").json()
    assert [order["id"] for order in orders] == ["#001", "#002"]
    assert orders[0]["change_for"] == 20.0


def test_order_lookup_and_status_advance(client):
    client.post("/api/cart/items", json={"product_id": "11"})
    client.patch("/api/customer", json=CUSTOMER)
    client.post("/api/checkout")

    assert client.get("/api/orders/001").json()["status"] == "pending"
    assert client.post("/api/orders/001/advance").json()["status"] == "confirmed"
    assert client.post("/api/orders/001/advance").json()["status"] == "delivered"
    assert client.post("/api/orders/001/advance").status_code == 422
    assert client.get("/api/orders/404").status_code == 404


def test_invalid_change_for_is_rejected(client):
    response = client.patch("/api/customer", json={"payment_method": "cash", "change_for": "muito"})
    assert response.status_code == 422


def test_chat_replies_and_logs_messages(client):
    messages = client.get("/api/messages").json()
    assert len(messages) == 1
    assert "Depósito do Kekê" in messages[0]["content"]

    response = client.post("/api/chat", json={"message": "quero finalizar"})
    assert response.status_code == 200
    body = response.json()
    assert "carrinho está vazio" in body["reply"]
    assert body["user_message"]["is_bot"] is False

    client.post("/api/cart/items", json={"product_id": "1"})
    body = client.post("/api/chat", json={"message": "quero finalizar"}).json()
    assert "checkout" in body["reply"]
    assert len(client.get("/api/messages").json()) == 5


def test_notifications_disabled_by_default(client, recorder, dispatcher):
    settings = client.get("/api/settings/notifications").json()
    assert settings["enabled"] is False

    client.post("/api/cart/items", json={"product_id": "1"})
    assert dispatcher.drain(timeout=5)
    assert recorder.requests == []


def test_saved_settings_are_persisted(client, app_settings):
    saved = client.put("/api/settings/notifications", json=dict(HOOKS, stock_webhook="")).json()
    assert saved["enabled"] is True
    assert saved["stock_webhook"] == ""

    raw = json.loads(app_settings.notification_settings_path.read_text(encoding="utf-8"))
    assert raw["n8n_enabled"] == "true"
    assert raw["n8n_stock_webhook"] == ""


def test_malformed_webhook_url_is_rejected(client):
    response = client.put("/api/settings/notifications", json=dict(HOOKS, stock_webhook="http://[::1/x"))
    assert response.status_code == 422
    response = client.put("/api/settings/notifications", json=dict(HOOKS, payment_webhook="ftp://hooks.example.test"))
    assert response.status_code == 422
    assert client.get("/api/settings/notifications").json()["enabled"] is False


def test_change_for_accepts_a_json_number(client):
    response = client.patch("/api/customer", json={"payment_method": "cash", "change_for": 50})
    assert response.status_code == 200
    assert response.json()["change_for"] == 50.0


def test_zero_quantity_on_unknown_product_is_a_noop(client):
    response = client.put("/api/cart/items/999", json={"quantity": 0})
    assert response.status_code == 200
    assert response.json()["lines"] == []
