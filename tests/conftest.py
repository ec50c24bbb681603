from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest

from storefront_server.auth import AuthManager
from storefront_server.config import Settings
from storefront_server.context import StorefrontContext, build_context
from storefront_server.storefront_client import StorefrontClient

API_URL = "http://store.test/api"

PRODUCTS = [
    {
        "id": "p-drill",
        "sku": "DRL-100",
        "name": "Cordless Drill",
        "slug": "cordless-drill",
        "category_id": "c-tools",
        "description": "18V cordless drill",
        "price": 4500,
        "stock_quantity": 12,
        "images_json": ["https://img.test/drill.png"],
        "category": {"id": "c-tools", "name": "Power Tools", "slug": "power-tools"},
    },
    {
        "id": "p-cement",
        "sku": "CEM-50",
        "name": "Cement 50kg",
        "slug": "cement-50kg",
        "category_id": "c-building",
        "description": "Portland cement",
        "price": 750,
        "stock_quantity": 300,
        "images_json": [],
    },
]


class FakeStoreAPI:
    """In-memory stand-in for the remote store API."""

    def __init__(self) -> None:
        self.products = {p["id"]: p for p in PRODUCTS}
        self.cart_items: list[dict[str, Any]] = []
        self.orders: list[dict[str, Any]] = []
        self.service_requests: list[dict[str, Any]] = []
        self.requests: list[tuple[str, str]] = []
        self.last_bodies: dict[tuple[str, str], Any] = {}
        self.failures: dict[tuple[str, str], tuple[int, Any]] = {}
        self._next_id = 1

    def fail(self, method: str, path: str, status: int = 500, body: Any = None) -> None:
        self.failures[(method, path)] = (status, body if body is not None else {"error": "boom"})

    def calls(self, method: str, path: str) -> int:
        return self.requests.count((method, path))

    def seed_cart(self, product_id: str, quantity: int) -> dict[str, Any]:
        item = {
            "id": f"ci-{self._next_id}",
            "cart_id": "cart-1",
            "product_id": product_id,
            "quantity": quantity,
            "unit_price": self.products[product_id]["price"],
            "product": self.products[product_id],
        }
        self._next_id += 1
        self.cart_items.append(item)
        return item

    def _cart(self) -> dict[str, Any]:
        return {
            "id": "cart-1",
            "items": self.cart_items,
            "total": sum(i["quantity"] * i["unit_price"] for i in self.cart_items),
        }

    def _find_item(self, item_id: str) -> Optional[dict[str, Any]]:
        for item in self.cart_items:
            if item["id"] == item_id:
                return item
        return None

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        method = request.method
        self.requests.append((method, path))
        body = json.loads(request.content) if request.headers.get("content-type") == "application/json" else None
        self.last_bodies[(method, path)] = body

        if (method, path) in self.failures:
            status, error = self.failures[(method, path)]
            return httpx.Response(status, json=error)

        authed = request.headers.get("Authorization") == "Bearer tok-123"
        parts = path.strip("/").split("/")

        if path == "/auth/login" and method == "POST":
            if body["password"] != "secret":
                return httpx.Response(401, json={"error": "Invalid credentials"})
            return httpx.Response(200, json={"data": {
                "user": {"id": "u-1", "email": body["email"], "full_name": "Jane Fundi"},
                "token": "tok-123",
                "refresh_token": "ref-123",
            }})
        if path == "/auth/logout" and method == "POST":
            return httpx.Response(200, json={"message": "Logged out"})

        if path == "/catalog/products" and method == "GET":
            q = request.url.params.get("q", "").lower()
            found = [p for p in PRODUCTS if q in p["name"].lower()]
            return httpx.Response(200, json={"data": {"products": found, "total": len(found), "page": 1, "limit": 20}})
        if parts[:2] == ["catalog", "products"] and len(parts) == 3:
            for p in PRODUCTS:
                if p["slug"] == parts[2]:
                    return httpx.Response(200, json={"data": p})
            return httpx.Response(404, json={"error": "Product not found"})
        if path == "/catalog/categories":
            return httpx.Response(200, json={"data": [
                {"id": "c-tools", "name": "Power Tools", "slug": "power-tools"},
                {"id": "c-building", "name": "Building Materials", "slug": "building-materials"},
            ]})

        if path == "/cart" and method == "GET":
            return httpx.Response(200, json={"data": self._cart()})
        if path == "/cart" and method == "DELETE":
            self.cart_items = []
            return httpx.Response(200, json={"message": "Cart cleared"})
        if path == "/cart/items" and method == "POST":
            for item in self.cart_items:
                if item["product_id"] == body["product_id"]:
                    item["quantity"] += body["quantity"]
                    break
            else:
                if body["product_id"] not in self.products:
                    return httpx.Response(404, json={"error": "Product not found"})
                self.seed_cart(body["product_id"], body["quantity"])
            return httpx.Response(201, json={"message": "Item added to cart"})
        if parts[:2] == ["cart", "items"] and len(parts) == 3:
            item = self._find_item(parts[2])
            if item is None:
                return httpx.Response(404, json={"error": "Cart item not found"})
            if method == "PUT":
                item["quantity"] = body["quantity"]
                return httpx.Response(200, json={"message": "Cart item updated"})
            self.cart_items.remove(item)
            return httpx.Response(200, json={"message": "Item removed"})

        if path == "/checkout/place" and method == "POST":
            if not authed:
                return httpx.Response(401, json={"error": "Unauthorized"})
            order = {
                "id": f"ord-{len(self.orders) + 1}",
                "user_id": "u-1",
                "status": "pending",
                "total": sum(float(i["unit_price"]) * i["quantity"] for i in body["items"]),
                "address_json": body["address"],
                "service_request": body.get("service_request"),
                "placed_at": "2026-10-18T10:00:00Z",
                "items": body["items"],
            }
            self.orders.append(order)
            return httpx.Response(201, json={"data": order})
        if path == "/orders" and method == "GET":
            return httpx.Response(200, json={"data": {"orders": self.orders, "total": len(self.orders)}})
        if parts[0] == "orders" and len(parts) >= 2:
            for order in self.orders:
                if order["id"] == parts[1]:
                    if len(parts) == 3 and parts[2] == "cancel":
                        order["status"] = "cancelled"
                    return httpx.Response(200, json={"data": order})
            return httpx.Response(404, json={"error": "Order not found"})

        if parts[0] == "services" and not authed:
            return httpx.Response(401, json={"error": "User not authenticated"})
        if path == "/services/request" and method == "POST":
            if not body.get("type") or not body.get("location"):
                return httpx.Response(400, json={"error": "Service type and location are required"})
            booking = {
                "id": f"svc-{len(self.service_requests) + 1}",
                "user_id": "u-1",
                "status": "requested",
                "created_at": "2026-10-18T09:00:00Z",
                **body,
            }
            self.service_requests.insert(0, booking)
            return httpx.Response(201, json={"message": "Service request created successfully", "request_id": booking["id"]})
        if path == "/services/requests" and method == "GET":
            return httpx.Response(200, json=self.service_requests)
        if parts[:2] == ["services", "requests"] and len(parts) >= 3:
            for booking in self.service_requests:
                if booking["id"] == parts[2]:
                    if len(parts) == 4 and parts[3] == "accept-quote":
                        booking["status"] = "accepted"
                        return httpx.Response(200, json={"message": "Service quote accepted successfully"})
                    return httpx.Response(200, json=booking)
            return httpx.Response(404, json={"error": "Service request not found"})

        if path == "/upload/file" and method == "POST":
            return httpx.Response(201, json={"message": "Uploaded", "file": {
                "public_id": "hardware/drill", "url": "https://img.test/drill.png", "filename": "drill.png",
            }})

        return httpx.Response(404, json={"error": f"No route for {method} {path}"})


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "STOREFRONT_TOKEN",
        "STOREFRONT_EMAIL",
        "STOREFRONT_PASSWORD",
        "STOREFRONT_API_URL",
        "STOREFRONT_TIMEOUT",
        "STOREFRONT_SESSION_FILE",
        "STOREFRONT_STORAGE_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_api() -> FakeStoreAPI:
    return FakeStoreAPI()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        api_url=API_URL,
        session_file=str(tmp_path / "session.json"),
        storage_file=str(tmp_path / "storage.json"),
    )


@pytest.fixture
def auth_manager(settings: Settings) -> AuthManager:
    return AuthManager(settings.session_file)


@pytest.fixture
def client(fake_api: FakeStoreAPI, auth_manager: AuthManager) -> StorefrontClient:
    client = StorefrontClient(
        auth_manager, base_url=API_URL, transport=httpx.MockTransport(fake_api.handler)
    )
    yield client
    client.close()


@pytest.fixture
def context(fake_api: FakeStoreAPI, settings: Settings) -> StorefrontContext:
    context = build_context(settings, transport=httpx.MockTransport(fake_api.handler))
    yield context
    context.close()
