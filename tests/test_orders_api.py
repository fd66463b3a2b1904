import copy
import json
from urllib.parse import urlparse

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.core import config
from storefront.core.database import Base, get_db
from storefront.core.rate_limiter import FixedWindowRateLimiter, get_order_rate_limiter
from storefront.main import app
from storefront.models.category import Category
from storefront.models.order import Order
from storefront.models.product import OptionGroup, OptionValue, Product
from storefront.models.restaurant_settings import RestaurantSettings
from storefront.services.catalog import SqlCatalogLookup
from tests.fixtures_data import WEEK_HOURS

ADMIN_TOKEN = "s3cret-admin"


def _order_body(**overrides):
    body = {
        "customerInfo": {"name": "Juan Pérez", "phone": "11 5555-6789"},
        "deliveryMode": "pickup",
        "paymentMethod": "cash",
        "cartItems": [
            {"productId": "empanadas", "quantity": 2, "selectedOptions": [], "clientUnitPrice": 4500, "clientSubtotal": 9000},
            {
                "productId": "burger",
                "quantity": 1,
                "selectedOptions": [{"groupId": "bacon"}],
                "clientUnitPrice": 3500,
                "clientSubtotal": 3500,
            },
        ],
    }
    body.update(overrides)
    return body


@pytest.fixture
def api(monkeypatch):
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session_local()
    db.add(Category(id="cat-1", name="Clásicos", display_order=1))
    db.add(Category(id="cat-2", name="Archivados", display_order=2, is_active=False))
    db.add(Product(id="empanadas", category_id="cat-1", name="Empanadas x6", price=4500))
    burger = Product(id="burger", category_id="cat-1", name="Hamburguesa", price=3000)
    burger.option_groups.append(OptionGroup(id="bacon", name="Extra bacon", kind="add-on", price_delta=500))
    db.add(burger)
    pizza = Product(id="pizza", name="Pizza", price=8000)
    size = OptionGroup(id="size", name="Tamaño", kind="single-choice", required=True)
    size.values.append(OptionValue(label="Chica", price_delta=-1000, position=0))
    size.values.append(OptionValue(label="Grande", price_delta=2000, position=1))
    pizza.option_groups.append(size)
    db.add(pizza)
    db.add(Product(id="flan", name="Flan", price=2000, is_available=False))
    db.add(
        RestaurantSettings(
            id=1,
            name="La Esquina",
            phone="+5491155550000",
            whatsapp_number="+5491155551234",
            delivery_cost=800,
            is_delivery_free=False,
            is_open=True,
            opening_hours={},
            social_media={},
        )
    )
    db.commit()

    limiter = FixedWindowRateLimiter(limit=10, window_seconds=60)
    monkeypatch.setattr(config, "ADMIN_API_TOKEN", ADMIN_TOKEN)
    monkeypatch.setattr("storefront.services.orders.PUBLIC_BASE_URL", "https://tienda.example")
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_order_rate_limiter] = lambda: limiter

    yield TestClient(app), db

    app.dependency_overrides.clear()
    db.close()


def test_create_pickup_order(api):
    client, db = api

    response = client.post("/api/orders", json=_order_body())

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["total"] == 12500
    assert data["orderViewUrl"] == f"https://tienda.example/order-view/{data['orderId']}"
    assert data["estimatedMinutes"] == 15 + 3 * 3
    link = urlparse(data["notificationDeepLink"])
    assert link.netloc == "wa.me"
    assert link.path == "/5491155551234"

    order = db.query(Order).filter(Order.id == data["orderId"]).one()
    assert order.total == 12500
    assert order.customer_phone == "+5491155556789"
    items = json.loads(order.items_json)
    assert [item["product_id"] for item in items] == ["empanadas", "burger"]
    assert items[1]["selected_options"][0]["display_name"] == "Extra bacon"


def test_create_delivery_order_overrides_client_totals(api):
    client, db = api
    body = _order_body(deliveryMode="delivery", deliveryAddress="Av. Corrientes 1234", clientTotal=1)
    body["cartItems"][0]["clientSubtotal"] = 1

    response = client.post("/api/orders", json=body)

    assert response.status_code == 201
    assert response.json()["total"] == 13300
    order = db.query(Order).one()
    assert order.subtotal == 12500
    assert order.delivery_cost == 800
    assert order.delivery_address == "Av. Corrientes 1234"


def test_invalid_phone_returns_field_error_and_persists_nothing(api):
    client, db = api

    response = client.post("/api/orders", json=_order_body(customerInfo={"name": "Juan", "phone": "abc"}))

    assert response.status_code == 400
    assert response.json() == {
        "detail": "El teléfono debe tener entre 8 y 20 caracteres",
        "code": "INVALID_FIELD",
        "field": "customerInfo.phone",
    }
    assert db.query(Order).count() == 0


def test_unknown_and_unavailable_products(api):
    client, _ = api

    unknown = client.post(
        "/api/orders",
        json=_order_body(cartItems=[{"productId": "ghost", "quantity": 1, "selectedOptions": []}]),
    )
    unavailable = client.post(
        "/api/orders",
        json=_order_body(cartItems=[{"productId": "flan", "quantity": 1, "selectedOptions": []}]),
    )

    assert unknown.status_code == 400
    assert unknown.json()["code"] == "UNKNOWN_PRODUCT"
    assert unavailable.status_code == 400
    assert unavailable.json()["code"] == "PRODUCT_UNAVAILABLE"


def test_malformed_body_is_invalid_field(api):
    client, _ = api

    response = client.post(
        "/api/orders",
        json=_order_body(cartItems=[{"productId": "empanadas", "quantity": "muchas"}]),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_FIELD"
    assert response.json()["field"] == "cartItems.0.quantity"


def test_rate_limit_returns_429_with_retry_after(api):
    client, db = api

    for _ in range(10):
        assert client.post("/api/orders", json=_order_body()).status_code == 201

    response = client.post("/api/orders", json=_order_body())

    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMITED"
    assert int(response.headers["Retry-After"]) > 0
    assert db.query(Order).count() == 10


def test_missing_whatsapp_number_still_creates_order(api):
    client, db = api
    settings = db.query(RestaurantSettings).one()
    settings.whatsapp_number = ""
    settings.phone = "sin telefono"
    db.commit()

    response = client.post("/api/orders", json=_order_body())

    assert response.status_code == 201
    assert response.json()["notificationDeepLink"] is None
    assert db.query(Order).count() == 1


def test_public_order_view_masks_phone(api):
    client, _ = api
    order_id = client.post("/api/orders", json=_order_body()).json()["orderId"]

    response = client.get(f"/api/orders/{order_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 12500
    assert data["customer_phone"].endswith("6789")
    assert data["customer_phone"].startswith("*")
    assert len(data["items"]) == 2

    missing = client.get("/api/orders/does-not-exist")
    assert missing.status_code == 404
    assert missing.json()["code"] == "ORDER_NOT_FOUND"


def test_admin_list_requires_token(api):
    client, _ = api
    client.post("/api/orders", json=_order_body())

    assert client.get("/api/orders").status_code == 401
    assert client.get("/api/orders", headers={"X-Admin-Token": "wrong"}).status_code == 401

    response = client.get("/api/orders", headers={"X-Admin-Token": ADMIN_TOKEN})
    assert response.status_code == 200
    assert len(response.json()["orders"]) == 1

    filtered = client.get("/api/orders?status=delivered", headers={"X-Admin-Token": ADMIN_TOKEN})
    assert filtered.json()["orders"] == []


def test_admin_routes_unavailable_without_configured_token(api, monkeypatch):
    client, _ = api
    monkeypatch.setattr(config, "ADMIN_API_TOKEN", "")

    response = client.get("/api/orders", headers={"X-Admin-Token": "anything"})

    assert response.status_code == 503


def test_status_transitions(api):
    client, _ = api
    headers = {"X-Admin-Token": ADMIN_TOKEN}
    order_id = client.post("/api/orders", json=_order_body()).json()["orderId"]

    confirmed = client.patch(f"/api/orders/{order_id}/status", json={"status": "confirmed"}, headers=headers)
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"

    backwards = client.patch(f"/api/orders/{order_id}/status", json={"status": "pending"}, headers=headers)
    assert backwards.status_code == 409
    assert backwards.json()["code"] == "INVALID_STATUS_TRANSITION"

    unknown = client.patch(f"/api/orders/{order_id}/status", json={"status": "lost"}, headers=headers)
    assert unknown.status_code == 400

    cancelled = client.patch(f"/api/orders/{order_id}/status", json={"status": "cancelled"}, headers=headers)
    assert cancelled.json()["status"] == "cancelled"

    again = client.patch(f"/api/orders/{order_id}/status", json={"status": "preparing"}, headers=headers)
    assert again.status_code == 409


def test_status_update_on_missing_order(api):
    client, _ = api

    response = client.patch(
        "/api/orders/nope/status",
        json={"status": "confirmed"},
        headers={"X-Admin-Token": ADMIN_TOKEN},
    )

    assert response.status_code == 404


def test_catalog_endpoints(api):
    client, _ = api

    products = client.get("/api/products").json()
    assert [product["id"] for product in products] == ["empanadas", "burger", "pizza"]
    pizza = next(product for product in products if product["id"] == "pizza")
    assert pizza["option_groups"][0]["values"] == [
        {"label": "Chica", "price_delta": -1000},
        {"label": "Grande", "price_delta": 2000},
    ]

    by_category = client.get("/api/products?category=cat-1").json()
    assert {product["id"] for product in by_category} == {"burger", "empanadas"}

    everything = client.get("/api/products?available=false").json()
    assert "flan" in {product["id"] for product in everything}

    assert client.get("/api/products/burger").json()["option_groups"][0]["kind"] == "add-on"
    assert client.get("/api/products/ghost").status_code == 404

    categories = client.get("/api/categories").json()
    assert [category["id"] for category in categories] == ["cat-1"]


def test_admin_creates_product_with_option_groups(api):
    client, _ = api
    headers = {"X-Admin-Token": ADMIN_TOKEN}
    body = {
        "name": "Milanesa",
        "price": 7000,
        "category_id": "cat-1",
        "option_groups": [
            {
                "name": "Guarnición",
                "kind": "single-choice",
                "required": True,
                "values": [{"label": "Papas"}, {"label": "Ensalada", "price_delta": 200}],
            },
            {"name": "Sin sal", "kind": "removal"},
        ],
    }

    assert client.post("/api/products", json=body).status_code == 401
    response = client.post("/api/products", json=body, headers=headers)

    assert response.status_code == 201
    created = response.json()
    assert [group["kind"] for group in created["option_groups"]] == ["single-choice", "removal"]

    group_id = created["option_groups"][0]["id"]
    order = client.post(
        "/api/orders",
        json=_order_body(
            cartItems=[
                {
                    "productId": created["id"],
                    "quantity": 1,
                    "selectedOptions": [{"groupId": group_id, "value": "Ensalada"}],
                }
            ]
        ),
    )
    assert order.status_code == 201
    assert order.json()["total"] == 7200


def test_admin_product_validation(api):
    client, _ = api
    headers = {"X-Admin-Token": ADMIN_TOKEN}

    no_values = client.post(
        "/api/products",
        json={"name": "X", "price": 100, "option_groups": [{"name": "Tamaño", "kind": "single-choice"}]},
        headers=headers,
    )
    assert no_values.status_code == 400
    assert no_values.json()["field"] == "option_groups"

    bad_kind = client.post(
        "/api/products",
        json={"name": "X", "price": 100, "option_groups": [{"name": "Tamaño", "kind": "combo"}]},
        headers=headers,
    )
    assert bad_kind.status_code == 400

    bad_category = client.post(
        "/api/products",
        json={"name": "X", "price": 100, "category_id": "missing"},
        headers=headers,
    )
    assert bad_category.status_code == 400
    assert bad_category.json()["field"] == "category_id"


def test_admin_product_rejects_labels_repeated_after_trimming(api):
    client, _ = api
    headers = {"X-Admin-Token": ADMIN_TOKEN}
    body = {
        "name": "Rolls",
        "price": 5000,
        "option_groups": [
            {"name": "Salsa", "kind": "multi-choice", "values": [{"label": "Soja"}, {"label": "Soja "}]},
        ],
    }

    response = client.post("/api/products", json=body, headers=headers)

    assert response.status_code == 400
    assert response.json()["field"] == "option_groups"
    products = client.get("/api/products")
    assert products.status_code == 200
    assert "Rolls" not in [product["name"] for product in products.json()]


def test_admin_product_stores_trimmed_labels(api):
    client, _ = api
    headers = {"X-Admin-Token": ADMIN_TOKEN}
    body = {
        "name": "Rolls",
        "price": 5000,
        "option_groups": [
            {"name": " Salsa ", "kind": "multi-choice", "values": [{"label": " Soja"}, {"label": "Teriyaki "}]},
        ],
    }

    created = client.post("/api/products", json=body, headers=headers).json()

    group = created["option_groups"][0]
    assert group["name"] == "Salsa"
    assert [value["label"] for value in group["values"]] == ["Soja", "Teriyaki"]
    order = client.post(
        "/api/orders",
        json=_order_body(
            cartItems=[
                {"productId": created["id"], "quantity": 1, "selectedOptions": [{"groupId": group["id"], "value": "Soja"}]}
            ]
        ),
    )
    assert order.status_code == 201


def test_admin_creates_category(api):
    client, _ = api

    response = client.post(
        "/api/categories",
        json={"name": "Postres", "display_order": 3},
        headers={"X-Admin-Token": ADMIN_TOKEN},
    )

    assert response.status_code == 201
    assert [category["name"] for category in client.get("/api/categories").json()] == ["Clásicos", "Postres"]


def test_settings_read_and_update(api):
    client, _ = api
    headers = {"X-Admin-Token": ADMIN_TOKEN}

    current = client.get("/api/settings").json()
    assert current["name"] == "La Esquina"
    assert current["is_open_now"] is True
    assert current["next_opening"] is None

    body = {
        "name": "  La Esquina 2 ",
        "phone": "11 5555-0000",
        "whatsapp_number": "(011) 5555.1234",
        "delivery_cost": 1000,
        "is_delivery_free": True,
        "is_open": False,
        "opening_hours": WEEK_HOURS,
        "social_media": {"instagram": "@laesquina", "facebook": ""},
    }
    response = client.put("/api/settings", json=body, headers=headers)

    assert response.status_code == 200
    updated = response.json()
    assert updated["name"] == "La Esquina 2"
    assert updated["phone"] == "+5491155550000"
    assert updated["whatsapp_number"] == "+54901155551234"
    assert updated["social_media"] == {"instagram": "@laesquina"}
    assert updated["is_open_now"] is False
    assert updated["next_opening"]


def test_settings_update_validation(api):
    client, _ = api
    headers = {"X-Admin-Token": ADMIN_TOKEN}
    base = {"name": "La Esquina", "phone": "11 5555-0000"}

    bad_phone = client.put("/api/settings", json={**base, "phone": "abc"}, headers=headers)
    assert bad_phone.status_code == 400
    assert bad_phone.json()["field"] == "phone"

    hours = copy.deepcopy(WEEK_HOURS)
    hours["monday"]["open_time"] = "9"
    bad_hours = client.put("/api/settings", json={**base, "opening_hours": hours}, headers=headers)
    assert bad_hours.status_code == 400
    assert bad_hours.json()["field"] == "opening_hours"

    blank_name = client.put("/api/settings", json={**base, "name": "   "}, headers=headers)
    assert blank_name.json()["field"] == "name"


def test_health_and_request_id(api):
    client, _ = api

    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"] == "req-123"


def test_sql_catalog_lookup(api):
    _, db = api
    catalog = SqlCatalogLookup(db)

    available = catalog.get_available_products()
    pizza = catalog.get_product_by_id("pizza")

    assert {product.id for product in available} == {"empanadas", "burger", "pizza"}
    assert catalog.get_product_by_id("ghost") is None
    assert pizza.option_groups[0].required is True
    assert [value.label for value in pizza.option_groups[0].values] == ["Chica", "Grande"]
    assert catalog.get_restaurant_settings().delivery_cost == 800
    assert [category.name for category in catalog.get_active_categories()] == ["Clásicos"]
