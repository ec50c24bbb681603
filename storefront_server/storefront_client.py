"""Hardware store REST API client."""

import logging
from pathlib import Path
from typing import Any, Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from .auth import AuthManager
from .config import DEFAULT_API_URL
from .models import (
    AuthCredentials,
    Cart,
    Category,
    Order,
    PlaceOrderRequest,
    Product,
    ProductPage,
    RegisterRequest,
    ServiceBooking,
    ServiceBookingRequest,
    UploadedFile,
    User,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class StorefrontAPIError(Exception):
    """An API call failed. The message is suitable for showing to a user."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        field: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.field = field


class NotAuthenticatedError(StorefrontAPIError):
    def __init__(self, action: str) -> None:
        super().__init__(f"Must be authenticated to {action}", status_code=401)


class StorefrontClient:
    """Client for the hardware store API."""

    def __init__(
        self,
        auth_manager: AuthManager,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """
        Initialize the store client.

        Args:
            auth_manager: Authentication manager instance
            base_url: API base URL, e.g. http://localhost:8080/api
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used to stub the API in tests)
        """
        self.auth_manager = auth_manager
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Send a request and unwrap the response envelope.

        Successful responses look like {"data": ..., "message": ...}; the
        "data" member is returned when present, the whole body otherwise.
        """
        headers = dict(kwargs.pop("headers", None) or {})
        token = self.auth_manager.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self.client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"{method} {path} timed out")
            raise StorefrontAPIError("Request timeout", status_code=408) from e
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise StorefrontAPIError(str(e) or "Network error") from e

        body = self._parse_body(response)

        if not response.is_success:
            message = f"HTTP {response.status_code}"
            code = field = None
            if isinstance(body, dict):
                message = body.get("error") or body.get("message") or message
                code = body.get("code")
                field = body.get("field")
            logger.error(f"{method} {path} failed: status={response.status_code}, message={message}")
            raise StorefrontAPIError(
                message, status_code=response.status_code, code=code, field=field
            )

        if isinstance(body, dict) and body.get("data") is not None:
            return body["data"]
        return body

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        content_type = response.headers.get("Content-Type", "")
        if "application/json" in content_type:
            try:
                return response.json()
            except ValueError:
                logger.warning("Response claimed JSON but could not be decoded")
        return response.text

    @staticmethod
    def _message(payload: Any, default: str) -> str:
        if isinstance(payload, dict) and payload.get("message"):
            return str(payload["message"])
        return default

    @staticmethod
    def _parse(model: type[ModelT], data: Any, what: str) -> ModelT:
        """Validate a successful response body; a malformed one is an API error."""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed {what} in API response: {e}")
            raise StorefrontAPIError(f"Malformed {what} in API response") from e

    @classmethod
    def _parse_list(cls, model: type[ModelT], data: Any, what: str) -> list[ModelT]:
        if data is None:
            return []
        if not isinstance(data, list):
            logger.error(f"Expected a list of {what}, got {type(data).__name__}")
            raise StorefrontAPIError(f"Malformed {what} in API response")
        return [cls._parse(model, item, what) for item in data]

    def _require_auth(self, action: str) -> None:
        if not self.auth_manager.is_authenticated():
            logger.error(f"{action.upper()} FAILED: Not authenticated")
            raise NotAuthenticatedError(action)

    # Authentication

    def login(self, credentials: AuthCredentials) -> User:
        """
        Authenticate and persist the issued token.

        Args:
            credentials: User credentials (email and password)

        Returns:
            The logged-in user
        """
        logger.info(f"=== LOGIN: email={credentials.email} ===")
        data = self._request("POST", "/auth/login", json=credentials.model_dump())
        return self._store_auth_response(data)

    def register(self, request: RegisterRequest) -> User:
        """Create an account and persist the issued token."""
        logger.info(f"=== REGISTER: email={request.email} ===")
        data = self._request("POST", "/auth/register", json=request.model_dump(exclude_none=True))
        return self._store_auth_response(data)

    def _store_auth_response(self, data: Any) -> User:
        payload = data if isinstance(data, dict) else {}
        user = self._parse(User, payload.get("user"), "user")
        token = payload.get("token")
        if not token:
            raise StorefrontAPIError("Authentication response did not include a token")
        self.auth_manager.save_session(
            token=token,
            refresh_token=payload.get("refresh_token"),
            user_id=user.id,
            user_email=user.email,
        )
        logger.info(f"Authenticated as {user.email}")
        return user

    def logout(self) -> None:
        """Logout and clear the local session."""
        if self.auth_manager.is_authenticated():
            try:
                self._request("POST", "/auth/logout")
            except StorefrontAPIError as e:
                logger.warning(f"Logout request failed, clearing session anyway: {e}")

        self.auth_manager.clear_session()
        logger.info("Logged out successfully")

    def get_current_user(self) -> User:
        """Fetch the account behind the current token."""
        self._require_auth("view account")
        return self._parse(User, self._request("GET", "/auth/me"), "user")

    def request_password_reset(self, email: str) -> str:
        logger.info(f"=== PASSWORD RESET REQUEST: email={email} ===")
        payload = self._request("POST", "/auth/password/reset", json={"email": email})
        return self._message(payload, "Password reset email sent")

    def reset_password(self, token: str, password: str) -> str:
        payload = self._request(
            "POST", "/auth/password/reset/confirm", json={"token": token, "password": password}
        )
        return self._message(payload, "Password has been reset")

    # Catalog

    def search_products(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        sort: Optional[str] = None,
    ) -> ProductPage:
        """
        Search the catalog.

        Args:
            query: Free-text search term
            category: Category slug filter
            page: 1-based page number
            limit: Page size
            sort: One of price_asc, price_desc, name, newest

        Returns:
            A page of products
        """
        logger.info(f"=== SEARCH: query='{query}', category={category}, page={page} ===")
        params = {"q": query, "category": category, "page": page, "limit": limit, "sort": sort}
        data = self._request(
            "GET",
            "/catalog/products",
            params={k: v for k, v in params.items() if v is not None},
        )
        result = self._parse(ProductPage, data, "product page")
        logger.info(f"Found {result.total} products")
        return result

    def get_product(self, slug: str) -> Product:
        """Get product details by slug."""
        data = self._request("GET", f"/catalog/products/{quote(slug, safe='')}")
        return self._parse(Product, data, "product")

    def get_categories(self) -> list[Category]:
        data = self._request("GET", "/catalog/categories")
        return self._parse_list(Category, data, "categories")

    def get_featured_products(self, limit: int = 8) -> list[Product]:
        data = self._request("GET", "/products/featured", params={"limit": limit})
        return self._parse_list(Product, data, "featured products")

    # Cart

    def get_cart(self) -> Cart:
        """
        Get current shopping cart contents.

        Returns:
            Cart as stored by the API
        """
        logger.info("=== GET CART ===")
        cart = self._parse(Cart, self._request("GET", "/cart"), "cart")
        logger.info(f"Cart: items={len(cart.items)}, total={cart.total}")
        return cart

    def add_cart_item(self, product_id: str, quantity: int = 1) -> str:
        """
        Add a product to the cart.

        Args:
            product_id: Product ID
            quantity: Quantity to add

        Returns:
            Confirmation message from the API
        """
        logger.info(f"=== ADD TO CART: product_id={product_id}, quantity={quantity} ===")
        payload = self._request(
            "POST", "/cart/items", json={"product_id": product_id, "quantity": quantity}
        )
        logger.info("ADD TO CART SUCCESS")
        return self._message(payload, "Item added to cart")

    def update_cart_item(self, item_id: str, quantity: int) -> str:
        """
        Set the quantity of a cart item.

        Args:
            item_id: Cart item ID (not the product ID)
            quantity: New quantity
        """
        logger.info(f"=== UPDATE CART: item_id={item_id}, new_quantity={quantity} ===")
        payload = self._request(
            "PUT", f"/cart/items/{quote(item_id, safe='')}", json={"quantity": quantity}
        )
        logger.info("UPDATE CART SUCCESS")
        return self._message(payload, "Cart item updated")

    def remove_cart_item(self, item_id: str) -> str:
        logger.info(f"=== REMOVE FROM CART: item_id={item_id} ===")
        payload = self._request("DELETE", f"/cart/items/{quote(item_id, safe='')}")
        logger.info("REMOVE FROM CART SUCCESS")
        return self._message(payload, "Item removed from cart")

    def clear_cart(self) -> str:
        logger.info("=== CLEAR CART ===")
        payload = self._request("DELETE", "/cart")
        return self._message(payload, "Cart cleared")

    # Orders

    def place_order(self, request: PlaceOrderRequest) -> Order:
        """
        Place an order.

        Args:
            request: Address, optional service request, payment method and items

        Returns:
            The created order
        """
        logger.info(
            f"=== PLACE ORDER: items={len(request.items)}, payment={request.payment_method} ==="
        )
        self._require_auth("place orders")
        data = self._request("POST", "/checkout/place", json=request.model_dump(mode="json"))
        order = self._parse(Order, data, "order")
        logger.info(f"Order {order.id} placed, status={order.status}")
        return order

    def get_orders(self, page: int = 1, limit: int = 10) -> list[Order]:
        """
        Get the user's orders.

        Args:
            page: 1-based page number
            limit: Page size

        Returns:
            List of orders
        """
        logger.info("=== GET ORDERS ===")
        self._require_auth("view orders")
        data = self._request("GET", "/orders", params={"page": page, "limit": limit})
        raw_orders = data.get("orders", []) if isinstance(data, dict) else data or []
        orders = self._parse_list(Order, raw_orders, "orders")
        logger.info(f"Found {len(orders)} orders")
        return orders

    def get_order(self, order_id: str) -> Order:
        logger.info(f"=== GET ORDER DETAILS: order_id={order_id} ===")
        self._require_auth("view orders")
        data = self._request("GET", f"/orders/{quote(order_id, safe='')}")
        return self._parse(Order, data, "order")

    def cancel_order(self, order_id: str) -> Order:
        logger.info(f"=== CANCEL ORDER: order_id={order_id} ===")
        self._require_auth("cancel orders")
        data = self._request("POST", f"/orders/{quote(order_id, safe='')}/cancel")
        return self._parse(Order, data, "order")

    # Service requests

    def request_service(self, request: ServiceBookingRequest) -> str:
        """
        Book an on-site service (transport, installation, cutting, consultation).

        Args:
            request: Service type, location and optional details

        Returns:
            ID of the created service request
        """
        logger.info(f"=== REQUEST SERVICE: type={request.type}, location={request.location} ===")
        self._require_auth("request services")
        payload = self._request(
            "POST", "/services/request", json=request.model_dump(exclude_none=True)
        )
        request_id = payload.get("request_id") if isinstance(payload, dict) else None
        if not request_id:
            raise StorefrontAPIError("Service request response did not include a request ID")
        logger.info(f"Service request {request_id} created")
        return str(request_id)

    def get_service_requests(self) -> list[ServiceBooking]:
        """Get the user's service requests, newest first."""
        logger.info("=== GET SERVICE REQUESTS ===")
        self._require_auth("view service requests")
        data = self._request("GET", "/services/requests")
        return self._parse_list(ServiceBooking, data, "service requests")

    def get_service_request(self, request_id: str) -> ServiceBooking:
        self._require_auth("view service requests")
        data = self._request("GET", f"/services/requests/{quote(request_id, safe='')}")
        return self._parse(ServiceBooking, data, "service request")

    def accept_quote(self, request_id: str, quote_id: Optional[str] = None) -> str:
        """Accept the quote the store issued for a service request."""
        logger.info(f"=== ACCEPT QUOTE: request_id={request_id} ===")
        self._require_auth("accept quotes")
        payload = self._request(
            "POST",
            f"/services/requests/{quote(request_id, safe='')}/accept-quote",
            json={"quote_id": quote_id} if quote_id else {},
        )
        return self._message(payload, "Service quote accepted")

    # Uploads

    def upload_file(self, path: str, folder: Optional[str] = None) -> UploadedFile:
        """
        Upload a product image.

        Args:
            path: Local file path
            folder: Optional destination folder on the storage service

        Returns:
            Metadata of the stored file
        """
        logger.info(f"=== UPLOAD: path={path}, folder={folder} ===")
        file_path = Path(path)
        data = {"folder": folder} if folder else None
        with open(file_path, "rb") as f:
            payload = self._request(
                "POST", "/upload/file", files={"file": (file_path.name, f)}, data=data
            )
        file_info = payload.get("file") if isinstance(payload, dict) else None
        return self._parse(UploadedFile, file_info, "uploaded file")

    def delete_file(self, public_id: str) -> None:
        logger.info(f"=== DELETE UPLOAD: public_id={public_id} ===")
        self._request("DELETE", f"/upload/file/{quote(public_id, safe='')}")

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()
