from __future__ import annotations

from decimal import Decimal

import pytest

from storefront_server.cart_store import CartStore
from storefront_server.checkout import CheckoutError, CheckoutSession
from storefront_server.models import Address, AuthCredentials, CheckoutStep
from storefront_server.orders import build_order_request, submit_order
from storefront_server.storefront_client import NotAuthenticatedError, StorefrontAPIError

ADDRESS = Address(street="Kenyatta Rd 4", city="Thika", state="Kiambu", postal_code="01000")


@pytest.fixture
def logged_in(client) -> None:
    client.login(AuthCredentials(email="jane@example.com", password="secret"))


@pytest.fixture
def store(client, fake_api) -> CartStore:
    fake_api.seed_cart("p-drill", 1)
    fake_api.seed_cart("p-cement", 2)
    store = CartStore(client)
    store.load()
    return store


@pytest.fixture
def session() -> CheckoutSession:
    session = CheckoutSession()
    session.set_address(ADDRESS)
    assert session.next()
    session.set_service_request(["installation"], description="Mount the cabinets")
    assert session.next()
    session.set_payment_method("mpesa")
    assert session.next()
    return session


def test_build_order_request(session: CheckoutSession, store: CartStore) -> None:
    request = build_order_request(session, store)

    assert request.address == ADDRESS
    assert request.payment_method == "M-Pesa"
    assert request.service_request.services == ["installation"]
    assert [(i.product_id, i.quantity, i.unit_price) for i in request.items] == [
        ("p-drill", 1, Decimal("4500")),
        ("p-cement", 2, Decimal("750")),
    ]


def test_build_order_request_omits_empty_services(session: CheckoutSession, store: CartStore) -> None:
    session.set_service_request([])
    assert build_order_request(session, store).service_request is None


def test_submit_order_clears_cart_and_confirms(
    logged_in, session: CheckoutSession, store: CartStore, fake_api
) -> None:
    order = submit_order(session, store, store.client)

    assert order.id == "ord-1"
    assert session.is_complete
    assert session.confirmation == order
    assert store.get_snapshot() is None
    assert fake_api.cart_items == []
    sent = fake_api.last_bodies[("POST", "/checkout/place")]
    assert sent["payment_method"] == "M-Pesa"
    assert sent["address"]["city"] == "Thika"
    assert sent["service_request"]["description"] == "Mount the cabinets"


def test_submit_order_failure_stays_on_review(
    logged_in, session: CheckoutSession, store: CartStore, fake_api
) -> None:
    fake_api.fail("POST", "/checkout/place", 422, {"error": "Insufficient stock for Cordless Drill"})

    with pytest.raises(StorefrontAPIError, match="Insufficient stock"):
        submit_order(session, store, store.client)

    assert session.step == CheckoutStep.REVIEW
    assert not session.is_complete
    assert store.item_count == 3
    assert fake_api.calls("DELETE", "/cart") == 0
    assert fake_api.calls("POST", "/checkout/place") == 1
    assert store.loading is False


def test_submit_order_requires_login(session: CheckoutSession, store: CartStore, fake_api) -> None:
    with pytest.raises(NotAuthenticatedError):
        submit_order(session, store, store.client)
    assert fake_api.calls("POST", "/checkout/place") == 0


def test_submit_order_only_from_review(logged_in, store: CartStore) -> None:
    session = CheckoutSession()
    session.set_address(ADDRESS)
    session.set_payment_method("card")

    with pytest.raises(CheckoutError, match="review step"):
        submit_order(session, store, store.client)


def test_submit_order_rejects_empty_cart(logged_in, session: CheckoutSession, client) -> None:
    with pytest.raises(CheckoutError, match="Cart is empty"):
        submit_order(session, CartStore(client), client)


def test_submit_order_rejects_incomplete_address(
    logged_in, session: CheckoutSession, store: CartStore
) -> None:
    session.set_address(ADDRESS.model_copy(update={"postal_code": ""}))
    with pytest.raises(CheckoutError, match="address"):
        submit_order(session, store, store.client)


def test_order_still_confirmed_when_cart_clear_fails(
    logged_in, session: CheckoutSession, store: CartStore, fake_api
) -> None:
    fake_api.fail("DELETE", "/cart")

    order = submit_order(session, store, store.client)

    assert session.confirmation == order
    assert fake_api.calls("GET", "/cart") == 2


def test_placed_order_ends_the_checkout(
    logged_in, session: CheckoutSession, store: CartStore, fake_api
) -> None:
    submit_order(session, store, store.client)
    store.add_item("p-drill", 1)

    with pytest.raises(CheckoutError, match="review step"):
        submit_order(session, store, store.client)

    assert fake_api.calls("POST", "/checkout/place") == 1
    assert session.step == CheckoutStep.ADDRESS
    assert session.address is None
    assert session.payment_method == ""
    assert session.service_request is None
