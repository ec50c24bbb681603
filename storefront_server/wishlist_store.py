"""Wishlist kept in local storage."""

import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import TypeAdapter

from .models import Product, WishlistItem, WishlistProduct
from .storage import LocalStorage

logger = logging.getLogger(__name__)

WISHLIST_STORAGE_KEY = "hardware-store-wishlist"

_items_adapter = TypeAdapter(list[WishlistItem])


def generate_wishlist_id() -> str:
    """Millisecond timestamp plus a random suffix; unique enough for one user."""
    return f"wl_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class WishlistStore:
    """
    Saved products, independent of the store API.

    The whole collection is loaded on construction and written back after
    every mutation. Storage failures are logged and otherwise ignored, so
    in-memory state stays authoritative for the session.
    """

    def __init__(self, storage: LocalStorage) -> None:
        self.storage = storage
        self.items: list[WishlistItem] = []
        self._load()

    def _load(self) -> None:
        try:
            raw = self.storage.get_item(WISHLIST_STORAGE_KEY)
            self.items = _items_adapter.validate_json(raw) if raw else []
            logger.info(f"Loaded {len(self.items)} wishlist item(s)")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load wishlist from storage: {e}")
            self.items = []

    def _save(self) -> None:
        try:
            self.storage.set_item(
                WISHLIST_STORAGE_KEY, _items_adapter.dump_json(self.items).decode()
            )
        except (OSError, ValueError) as e:
            logger.error(f"Failed to save wishlist to storage: {e}")

    @property
    def item_count(self) -> int:
        return len(self.items)

    def get_item(self, wishlist_item_id: str) -> Optional[WishlistItem]:
        for item in self.items:
            if item.id == wishlist_item_id:
                return item
        return None

    def add_to_wishlist(
        self, product: Union[Product, WishlistProduct], notes: Optional[str] = None
    ) -> WishlistItem:
        """
        Save a product.

        A product that is already saved gets a fresh timestamp and the new
        notes instead of a second entry.
        """
        snapshot = product if isinstance(product, WishlistProduct) else WishlistProduct.from_product(product)
        now = datetime.now(timezone.utc)

        for index, item in enumerate(self.items):
            if item.product.id == snapshot.id:
                updated = item.model_copy(update={"added_at": now, "notes": notes})
                self.items[index] = updated
                self._save()
                logger.info(f"Updated wishlist entry for product {snapshot.id}")
                return updated

        entry = WishlistItem(
            id=generate_wishlist_id(), product=snapshot, added_at=now, notes=notes
        )
        self.items.append(entry)
        self._save()
        logger.info(f"Added product {snapshot.id} to wishlist")
        return entry

    def remove_from_wishlist(self, product_id: str) -> None:
        """Drop every entry for product_id."""
        self.items = [item for item in self.items if item.product.id != product_id]
        self._save()

    def remove_wishlist_item(self, wishlist_item_id: str) -> None:
        """Drop one entry by its own ID."""
        self.items = [item for item in self.items if item.id != wishlist_item_id]
        self._save()

    def is_in_wishlist(self, product_id: str) -> bool:
        return any(item.product.id == product_id for item in self.items)

    def toggle_wishlist(self, product: Union[Product, WishlistProduct]) -> bool:
        """Add the product if missing, remove it otherwise. Returns the new membership."""
        if self.is_in_wishlist(product.id):
            self.remove_from_wishlist(product.id)
            return False
        self.add_to_wishlist(product)
        return True

    def clear_wishlist(self) -> None:
        self.items = []
        self._save()

    def move_to_cart(self, wishlist_item_id: str) -> Optional[WishlistItem]:
        """
        Remove an entry on its way to the cart and return it.

        Only the wishlist half happens here. Adding the product to the cart
        is left to the caller.
        """
        item = self.get_item(wishlist_item_id)
        if item is None:
            logger.warning(f"Wishlist item {wishlist_item_id} not found")
            return None
        self.remove_wishlist_item(wishlist_item_id)
        return item
