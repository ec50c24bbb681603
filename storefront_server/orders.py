"""Order placement, the last action of checkout."""

import logging

from .cart_store import CartStore
from .checkout import PAYMENT_METHODS, CheckoutError, CheckoutSession
from .models import CheckoutStep, Order, PlaceOrderItem, PlaceOrderRequest
from .storefront_client import StorefrontAPIError, StorefrontClient

logger = logging.getLogger(__name__)


def build_order_request(session: CheckoutSession, cart_store: CartStore) -> PlaceOrderRequest:
    """
    Assemble the order payload, checking that checkout is ready.

    Raises:
        CheckoutError: if the cart is empty, the address is incomplete or no
            payment method is chosen
    """
    if cart_store.is_empty():
        raise CheckoutError("Cart is empty")
    if session.address is None or not session.address.is_complete():
        raise CheckoutError("Shipping address is incomplete")
    if not session.payment_method:
        raise CheckoutError("No payment method selected")

    return PlaceOrderRequest(
        address=session.address,
        service_request=session.service_request if session.service_requested else None,
        payment_method=PAYMENT_METHODS[session.payment_method],
        items=[
            PlaceOrderItem(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in cart_store.items
        ],
    )


def submit_order(
    session: CheckoutSession, cart_store: CartStore, client: StorefrontClient
) -> Order:
    """
    Place the order, then mark the session confirmed and empty the cart.

    On an API failure the session stays on the review step and the error
    propagates; nothing is retried. If only the cart clear fails, the cart
    is refetched and the order is still returned.
    """
    if session.step != CheckoutStep.REVIEW:
        raise CheckoutError("Orders can only be placed from the review step")

    request = build_order_request(session, cart_store)

    cart_store.loading = True
    try:
        order = client.place_order(request)
    except StorefrontAPIError as e:
        logger.error(f"Failed to place order: {e}")
        raise
    finally:
        cart_store.loading = False

    session.complete(order)
    logger.info(f"✓ Order {order.id} confirmed")

    # The order exists from here on, whatever happens to the cart
    try:
        cart_store.clear_cart()
    except StorefrontAPIError:
        cart_store.refresh()
    return order
