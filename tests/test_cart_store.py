from __future__ import annotations

from decimal import Decimal

import pytest

from storefront_server.cart_store import CartStore, add_to_cart, can_decrement
from storefront_server.storefront_client import StorefrontAPIError


@pytest.fixture
def store(client) -> CartStore:
    return CartStore(client)


def test_snapshot_is_none_before_load(store: CartStore, fake_api) -> None:
    assert store.get_snapshot() is None
    assert store.item_count == 0
    assert store.total == 0
    assert fake_api.requests == []


def test_load_fetches_cart(store: CartStore, fake_api) -> None:
    fake_api.seed_cart("p-drill", 2)
    fake_api.seed_cart("p-cement", 4)

    cart = store.load()

    assert cart is store.get_snapshot()
    assert [item.product_id for item in cart.items] == ["p-drill", "p-cement"]
    assert store.item_count == 6
    assert store.total == Decimal("12000")
    assert store.loading is False


def test_failed_refresh_leaves_no_snapshot(store: CartStore, fake_api) -> None:
    fake_api.seed_cart("p-drill", 1)
    store.load()
    fake_api.fail("GET", "/cart", 503)

    assert store.refresh() is None
    assert store.get_snapshot() is None


def test_malformed_cart_leaves_no_snapshot(store: CartStore, fake_api) -> None:
    fake_api.fail("GET", "/cart", 200, {"data": {"id": "cart-1", "items": [{"id": "ci-1"}]}})

    assert store.load() is None
    assert store.get_snapshot() is None
    assert store.loading is False


def test_add_item_refetches(store: CartStore, fake_api) -> None:
    store.add_item("p-cement", 3)

    assert fake_api.requests == [("POST", "/cart/items"), ("GET", "/cart")]
    assert fake_api.last_bodies[("POST", "/cart/items")] == {"product_id": "p-cement", "quantity": 3}
    assert store.item_count == 3
    assert store.total == Decimal("2250")


def test_add_item_defaults_to_one(store: CartStore, fake_api) -> None:
    store.add_item("p-drill")
    assert fake_api.last_bodies[("POST", "/cart/items")]["quantity"] == 1


def test_add_item_error_propagates_without_refetch(store: CartStore, fake_api) -> None:
    fake_api.fail("POST", "/cart/items", 409, {"error": "Out of stock"})

    with pytest.raises(StorefrontAPIError, match="Out of stock"):
        store.add_item("p-drill")

    assert fake_api.calls("GET", "/cart") == 0
    assert store.loading is False


def test_update_item_refetches(store: CartStore, fake_api) -> None:
    item = fake_api.seed_cart("p-drill", 1)
    store.load()

    store.update_item(item["id"], 3)

    assert fake_api.last_bodies[("PUT", f"/cart/items/{item['id']}")] == {"quantity": 3}
    assert store.item_count == 3
    assert fake_api.calls("GET", "/cart") == 2


@pytest.mark.parametrize("quantity", [0, -1])
def test_update_item_rejects_quantity_below_one(store: CartStore, fake_api, quantity: int) -> None:
    item = fake_api.seed_cart("p-drill", 1)
    store.load()

    with pytest.raises(ValueError, match="at least 1"):
        store.update_item(item["id"], quantity)

    assert fake_api.calls("PUT", f"/cart/items/{item['id']}") == 0
    assert store.item_count == 1


def test_remove_item_refetches(store: CartStore, fake_api) -> None:
    drill = fake_api.seed_cart("p-drill", 1)
    fake_api.seed_cart("p-cement", 2)
    store.load()

    store.remove_item(drill["id"])

    assert [item.product_id for item in store.items] == ["p-cement"]


def test_remove_unknown_item_propagates(store: CartStore) -> None:
    with pytest.raises(StorefrontAPIError) as excinfo:
        store.remove_item("nope")
    assert excinfo.value.status_code == 404


def test_clear_cart_skips_refetch(store: CartStore, fake_api) -> None:
    fake_api.seed_cart("p-drill", 1)
    store.load()

    store.clear_cart()

    assert store.get_snapshot() is None
    assert store.item_count == 0
    assert fake_api.requests[-1] == ("DELETE", "/cart")
    assert fake_api.calls("GET", "/cart") == 1


def test_clear_cart_failure_keeps_snapshot(store: CartStore, fake_api) -> None:
    fake_api.seed_cart("p-drill", 1)
    store.load()
    fake_api.fail("DELETE", "/cart")

    with pytest.raises(StorefrontAPIError):
        store.clear_cart()

    assert store.item_count == 1


def test_decrement_disabled_at_quantity_one(store: CartStore, fake_api) -> None:
    fake_api.seed_cart("p-drill", 1)
    fake_api.seed_cart("p-cement", 2)
    store.load()

    single, double = store.items
    assert can_decrement(single) is False
    assert can_decrement(double) is True


def test_add_to_cart_uses_override_when_given(store: CartStore, fake_api) -> None:
    calls: list[tuple[str, int]] = []

    add_to_cart(store, "p-drill", 2, on_add_to_cart=lambda pid, qty: calls.append((pid, qty)))

    assert calls == [("p-drill", 2)]
    assert fake_api.requests == []


def test_add_to_cart_falls_back_to_store(store: CartStore, fake_api) -> None:
    add_to_cart(store, "p-drill")

    assert store.item_count == 1
    assert fake_api.calls("POST", "/cart/items") == 1


def test_find_item(store: CartStore, fake_api) -> None:
    item = fake_api.seed_cart("p-drill", 1)
    store.load()

    assert store.find_item(item["id"]).product_id == "p-drill"
    assert store.find_item("missing") is None
