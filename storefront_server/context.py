"""Per-process store objects shared by the MCP and HTTP servers."""

import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from .auth import AuthManager
from .cart_store import CartStore
from .checkout import CheckoutSession
from .config import Settings
from .storage import LocalStorage
from .storefront_client import StorefrontAPIError, StorefrontClient
from .wishlist_store import WishlistStore

logger = logging.getLogger(__name__)


@dataclass
class StorefrontContext:
    settings: Settings
    auth_manager: AuthManager
    client: StorefrontClient
    cart: CartStore
    wishlist: WishlistStore
    checkout: CheckoutSession = field(default_factory=CheckoutSession)

    def ensure_authenticated(self) -> bool:
        """Ensure the client is authenticated, auto-login if credentials are available."""
        if self.auth_manager.is_authenticated():
            return True

        credentials = self.settings.credentials
        if credentials:
            try:
                logger.info("Auto-logging in with configured credentials...")
                self.client.login(credentials)
                logger.info("Auto-login successful")
                return True
            except StorefrontAPIError as e:
                logger.error(f"Auto-login error: {e}")

        return False

    def close(self) -> None:
        self.client.close()


def build_context(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> StorefrontContext:
    """Create the auth manager, API client and stores once for the process."""
    settings = settings or Settings.from_env()

    auth_manager = AuthManager(settings.session_file)
    client = StorefrontClient(
        auth_manager,
        base_url=settings.api_url,
        timeout=settings.timeout,
        transport=transport,
    )
    logger.info(f"Using store API at {client.base_url}")

    if settings.credentials:
        logger.info(f"Credentials loaded from environment for: {settings.email}")
    else:
        logger.warning("No credentials found in environment variables (STOREFRONT_EMAIL, STOREFRONT_PASSWORD)")

    return StorefrontContext(
        settings=settings,
        auth_manager=auth_manager,
        client=client,
        cart=CartStore(client),
        wishlist=WishlistStore(LocalStorage(settings.storage_file)),
    )
