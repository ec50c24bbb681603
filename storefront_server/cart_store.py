"""Client-side cart state synchronized with the store API."""

import logging
from decimal import Decimal
from typing import Callable, Optional

from .models import Cart, CartItem
from .pricing import calculate_subtotal
from .storefront_client import StorefrontAPIError, StorefrontClient

logger = logging.getLogger(__name__)

# Replaces the default add-to-cart behaviour: (product_id, quantity) -> None
AddToCartHandler = Callable[[str, int], None]


class CartStore:
    """
    Holds the last cart snapshot fetched from the API.

    Mutations are never applied locally: each one goes to the API and is
    followed by a full refetch. Overlapping mutations are not serialized.
    """

    def __init__(self, client: StorefrontClient) -> None:
        self.client = client
        self.cart: Optional[Cart] = None
        self.loading = False

    def get_snapshot(self) -> Optional[Cart]:
        """Current cart, or None if not loaded (or the last refresh failed)."""
        return self.cart

    @property
    def items(self) -> list[CartItem]:
        return self.cart.items if self.cart else []

    @property
    def item_count(self) -> int:
        """Total number of units across all items."""
        return sum(item.quantity for item in self.items)

    @property
    def total(self) -> Decimal:
        return calculate_subtotal(self.items)

    def is_empty(self) -> bool:
        return not self.items

    def find_item(self, item_id: str) -> Optional[CartItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def load(self) -> Optional[Cart]:
        """Initial fetch."""
        self.loading = True
        try:
            return self.refresh()
        finally:
            self.loading = False

    def refresh(self) -> Optional[Cart]:
        """Refetch the cart. A failure is logged and leaves no snapshot."""
        try:
            self.cart = self.client.get_cart()
        except StorefrontAPIError as e:
            logger.error(f"Failed to fetch cart: {e}")
            self.cart = None
        return self.cart

    def add_item(self, product_id: str, quantity: int = 1) -> None:
        """Add a product, then resynchronize. API errors propagate."""
        self.loading = True
        try:
            self.client.add_cart_item(product_id, quantity)
            self.refresh()
        except StorefrontAPIError as e:
            logger.error(f"Failed to add item to cart: {e}")
            raise
        finally:
            self.loading = False

    def update_item(self, item_id: str, quantity: int) -> None:
        """
        Set an item's quantity, then resynchronize.

        Quantities below 1 are rejected; use remove_item to drop an item.
        """
        if quantity < 1:
            raise ValueError(f"Quantity must be at least 1, got {quantity}")

        self.loading = True
        try:
            self.client.update_cart_item(item_id, quantity)
            self.refresh()
        except StorefrontAPIError as e:
            logger.error(f"Failed to update cart item: {e}")
            raise
        finally:
            self.loading = False

    def remove_item(self, item_id: str) -> None:
        self.loading = True
        try:
            self.client.remove_cart_item(item_id)
            self.refresh()
        except StorefrontAPIError as e:
            logger.error(f"Failed to remove cart item: {e}")
            raise
        finally:
            self.loading = False

    def clear_cart(self) -> None:
        """Empty the cart. The post-condition is known, so no refetch."""
        self.loading = True
        try:
            self.client.clear_cart()
            self.cart = None
        except StorefrontAPIError as e:
            logger.error(f"Failed to clear cart: {e}")
            raise
        finally:
            self.loading = False


def can_decrement(item: CartItem) -> bool:
    """Whether the quantity of item may be lowered by one."""
    return item.quantity > 1


def add_to_cart(
    store: CartStore,
    product_id: str,
    quantity: int = 1,
    on_add_to_cart: Optional[AddToCartHandler] = None,
) -> None:
    """Add to cart through on_add_to_cart when supplied, else through the store."""
    if on_add_to_cart is not None:
        on_add_to_cart(product_id, quantity)
        return
    store.add_item(product_id, quantity)
