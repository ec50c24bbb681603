"""HTTP server exposing the storefront stores as a REST API."""

import logging
from contextlib import asynccontextmanager
from typing import NoReturn, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from .checkout import CheckoutError
from .context import StorefrontContext, build_context
from .models import Address, AuthCredentials, ServiceBookingRequest
from .orders import submit_order
from .pricing import SERVICE_CATALOG
from .storefront_client import NotAuthenticatedError, StorefrontAPIError

logger = logging.getLogger("storefront-http-server")

VERSION = "0.1.0"


def _raise_http_error(e: Exception) -> NoReturn:
    if isinstance(e, NotAuthenticatedError):
        raise HTTPException(status_code=401, detail=str(e)) from e

    if isinstance(e, StorefrontAPIError):
        status = e.status_code if e.status_code and 400 <= e.status_code < 600 else 502
        raise HTTPException(status_code=status, detail=e.message) from e

    if isinstance(e, (CheckoutError, ValueError)):
        raise HTTPException(status_code=400, detail=str(e)) from e

    logger.error(f"Unexpected error: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Internal Server Error") from e


def get_context(request: Request) -> StorefrontContext:
    return request.app.state.context


def _require_auth(context: StorefrontContext) -> None:
    if not context.ensure_authenticated():
        raise HTTPException(status_code=401, detail="Not authenticated")


# Request/Response Models
class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    success: bool
    message: str


class SearchRequest(BaseModel):
    query: Optional[str] = None
    category: Optional[str] = None
    page: int = 1
    limit: int = 20
    sort: Optional[str] = None


class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)


class UpdateCartRequest(BaseModel):
    item_id: str
    quantity: int


class RemoveFromCartRequest(BaseModel):
    item_id: str


class WishlistAddRequest(BaseModel):
    slug: str
    notes: Optional[str] = None


class WishlistProductRequest(BaseModel):
    product_id: str


class WishlistItemRequest(BaseModel):
    wishlist_item_id: str


class ServicesRequest(BaseModel):
    services: list[str] = Field(default_factory=list)
    description: str = ""
    urgency: str = "normal"


class PaymentRequest(BaseModel):
    method: str


class OrdersRequest(BaseModel):
    page: int = 1
    limit: int = 10


class AcceptQuoteRequest(BaseModel):
    quote_id: Optional[str] = None


def create_app(context: Optional[StorefrontContext] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        context: Store objects to serve. Built from the environment at
            startup when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown."""
        owns_context = getattr(app.state, "context", None) is None
        if owns_context:
            logger.info("Starting Storefront HTTP Server...")
            app.state.context = build_context()

        yield

        if owns_context:
            logger.info("Shutting down Storefront HTTP Server...")
            app.state.context.close()

    app = FastAPI(
        title="Storefront MCP Server",
        description="HTTP API for the hardware store cart, wishlist and checkout",
        version=VERSION,
        lifespan=lifespan,
    )
    if context is not None:
        app.state.context = context

    @app.get("/")
    def root(context: StorefrontContext = Depends(get_context)):
        """Root endpoint with API information."""
        return {
            "name": "Storefront MCP Server",
            "version": VERSION,
            "api_url": context.client.base_url,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "auth": ["POST /auth/login", "POST /auth/logout", "GET /auth/status"],
                "products": ["POST /products/search", "GET /products/{slug}", "GET /categories"],
                "cart": ["GET /cart", "POST /cart/add", "POST /cart/update", "POST /cart/remove", "POST /cart/clear"],
                "wishlist": [
                    "GET /wishlist",
                    "POST /wishlist/add",
                    "POST /wishlist/remove",
                    "POST /wishlist/toggle",
                    "POST /wishlist/move-to-cart",
                ],
                "checkout": [
                    "GET /checkout",
                    "POST /checkout/address",
                    "POST /checkout/services",
                    "POST /checkout/payment",
                    "POST /checkout/next",
                    "POST /checkout/back",
                    "POST /checkout/place",
                    "POST /checkout/reset",
                ],
                "orders": ["POST /orders", "GET /orders/{order_id}", "POST /orders/{order_id}/cancel"],
                "services": [
                    "GET /services",
                    "POST /services/request",
                    "GET /services/requests",
                    "GET /services/requests/{request_id}",
                    "POST /services/requests/{request_id}/accept-quote",
                ],
            },
            "authenticated": context.auth_manager.is_authenticated(),
        }

    @app.get("/health")
    def health_check(context: StorefrontContext = Depends(get_context)):
        """Health check endpoint."""
        return {
            "status": "healthy",
            "authenticated": context.auth_manager.is_authenticated(),
        }

    # Authentication endpoints
    @app.post("/auth/login", response_model=LoginResponse)
    def login(request: LoginRequest, context: StorefrontContext = Depends(get_context)):
        """Login to the store."""
        try:
            user = context.client.login(AuthCredentials(email=request.email, password=request.password))
        except StorefrontAPIError as e:
            logger.warning(f"Login failed: {e}")
            return LoginResponse(success=False, message=e.message)
        context.cart.refresh()
        return LoginResponse(success=True, message=f"Successfully logged in as {user.email}")

    @app.post("/auth/logout")
    def logout(context: StorefrontContext = Depends(get_context)):
        context.client.logout()
        context.checkout.reset()
        return {"success": True, "message": "Successfully logged out"}

    @app.get("/auth/status")
    def auth_status(context: StorefrontContext = Depends(get_context)):
        """Get authentication status."""
        authenticated = context.auth_manager.is_authenticated()
        return {
            "authenticated": authenticated,
            "email": context.auth_manager.session.user_email if authenticated else None,
        }

    # Catalog endpoints
    @app.post("/products/search")
    def search_products(request: SearchRequest, context: StorefrontContext = Depends(get_context)):
        """Search the catalog."""
        try:
            result = context.client.search_products(**request.model_dump())
        except Exception as e:
            _raise_http_error(e)
        return result.model_dump(mode="json")

    @app.get("/products/{slug}")
    def get_product(slug: str, context: StorefrontContext = Depends(get_context)):
        try:
            product = context.client.get_product(slug)
        except Exception as e:
            _raise_http_error(e)
        data = product.model_dump(mode="json")
        data["in_wishlist"] = context.wishlist.is_in_wishlist(product.id)
        return data

    @app.get("/categories")
    def get_categories(context: StorefrontContext = Depends(get_context)):
        try:
            categories = context.client.get_categories()
        except Exception as e:
            _raise_http_error(e)
        return {"count": len(categories), "categories": [c.model_dump() for c in categories]}

    @app.get("/services")
    def list_services():
        return {
            "services": [
                {"id": service_id, **{k: str(v) if k == "price" else v for k, v in service.items()}}
                for service_id, service in SERVICE_CATALOG.items()
            ]
        }

    # Cart endpoints
    def _cart_response(context: StorefrontContext) -> dict:
        cart = context.cart.get_snapshot()
        return {
            "cart": cart.model_dump(mode="json") if cart else None,
            "item_count": context.cart.item_count,
            "total": str(context.cart.total),
        }

    @app.get("/cart")
    def get_cart(context: StorefrontContext = Depends(get_context)):
        """Get current shopping cart."""
        context.cart.load()
        return _cart_response(context)

    @app.post("/cart/add")
    def add_to_cart(request: AddToCartRequest, context: StorefrontContext = Depends(get_context)):
        """Add a product to the cart."""
        try:
            context.cart.add_item(request.product_id, request.quantity)
        except Exception as e:
            _raise_http_error(e)
        return _cart_response(context)

    @app.post("/cart/update")
    def update_cart(request: UpdateCartRequest, context: StorefrontContext = Depends(get_context)):
        """Update item quantity in cart."""
        try:
            context.cart.update_item(request.item_id, request.quantity)
        except Exception as e:
            _raise_http_error(e)
        return _cart_response(context)

    @app.post("/cart/remove")
    def remove_from_cart(request: RemoveFromCartRequest, context: StorefrontContext = Depends(get_context)):
        try:
            context.cart.remove_item(request.item_id)
        except Exception as e:
            _raise_http_error(e)
        return _cart_response(context)

    @app.post("/cart/clear")
    def clear_cart(context: StorefrontContext = Depends(get_context)):
        try:
            context.cart.clear_cart()
        except Exception as e:
            _raise_http_error(e)
        return _cart_response(context)

    # Wishlist endpoints
    def _wishlist_response(context: StorefrontContext) -> dict:
        return {
            "count": context.wishlist.item_count,
            "items": [item.model_dump(mode="json") for item in context.wishlist.items],
        }

    @app.get("/wishlist")
    def get_wishlist(context: StorefrontContext = Depends(get_context)):
        return _wishlist_response(context)

    @app.post("/wishlist/add")
    def add_to_wishlist(request: WishlistAddRequest, context: StorefrontContext = Depends(get_context)):
        try:
            product = context.client.get_product(request.slug)
        except Exception as e:
            _raise_http_error(e)
        context.wishlist.add_to_wishlist(product, request.notes)
        return _wishlist_response(context)

    @app.post("/wishlist/remove")
    def remove_from_wishlist(request: WishlistProductRequest, context: StorefrontContext = Depends(get_context)):
        context.wishlist.remove_from_wishlist(request.product_id)
        return _wishlist_response(context)

    @app.post("/wishlist/toggle")
    def toggle_wishlist(request: WishlistAddRequest, context: StorefrontContext = Depends(get_context)):
        try:
            product = context.client.get_product(request.slug)
        except Exception as e:
            _raise_http_error(e)
        in_wishlist = context.wishlist.toggle_wishlist(product)
        return {"in_wishlist": in_wishlist, **_wishlist_response(context)}

    @app.post("/wishlist/move-to-cart")
    def move_to_cart(request: WishlistItemRequest, context: StorefrontContext = Depends(get_context)):
        """Remove an entry from the wishlist; the cart is left untouched."""
        entry = context.wishlist.move_to_cart(request.wishlist_item_id)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Wishlist item {request.wishlist_item_id} not found")
        return {"removed": entry.model_dump(mode="json"), **_wishlist_response(context)}

    # Checkout endpoints
    def _checkout_response(context: StorefrontContext) -> dict:
        if context.cart.get_snapshot() is None:
            context.cart.load()
        return context.checkout.summary(context.cart)

    @app.get("/checkout")
    def get_checkout(context: StorefrontContext = Depends(get_context)):
        return _checkout_response(context)

    @app.post("/checkout/address")
    def set_address(address: Address, context: StorefrontContext = Depends(get_context)):
        context.checkout.set_address(address)
        return _checkout_response(context)

    @app.post("/checkout/services")
    def set_services(request: ServicesRequest, context: StorefrontContext = Depends(get_context)):
        try:
            context.checkout.set_service_request(request.services, request.description, request.urgency)
        except Exception as e:
            _raise_http_error(e)
        return _checkout_response(context)

    @app.post("/checkout/payment")
    def set_payment(request: PaymentRequest, context: StorefrontContext = Depends(get_context)):
        try:
            context.checkout.set_payment_method(request.method)
        except Exception as e:
            _raise_http_error(e)
        return _checkout_response(context)

    @app.post("/checkout/next")
    def checkout_next(context: StorefrontContext = Depends(get_context)):
        advanced = context.checkout.next()
        return {"advanced": advanced, **_checkout_response(context)}

    @app.post("/checkout/back")
    def checkout_back(context: StorefrontContext = Depends(get_context)):
        moved = context.checkout.back()
        return {"moved": moved, **_checkout_response(context)}

    @app.post("/checkout/reset")
    def checkout_reset(context: StorefrontContext = Depends(get_context)):
        context.checkout.reset()
        return _checkout_response(context)

    @app.post("/checkout/place")
    def place_order(context: StorefrontContext = Depends(get_context)):
        """Place the order from the review step."""
        _require_auth(context)
        if context.cart.get_snapshot() is None:
            context.cart.load()
        try:
            order = submit_order(context.checkout, context.cart, context.client)
        except Exception as e:
            _raise_http_error(e)
        return {"success": True, "order": order.model_dump(mode="json")}

    # Order endpoints
    @app.post("/orders")
    def get_orders(request: OrdersRequest, context: StorefrontContext = Depends(get_context)):
        """Get user's orders."""
        _require_auth(context)
        try:
            orders = context.client.get_orders(page=request.page, limit=request.limit)
        except Exception as e:
            _raise_http_error(e)
        return {"count": len(orders), "orders": [o.model_dump(mode="json") for o in orders]}

    @app.get("/orders/{order_id}")
    def get_order_details(order_id: str, context: StorefrontContext = Depends(get_context)):
        """Get detailed information for a specific order."""
        _require_auth(context)
        try:
            order = context.client.get_order(order_id)
        except Exception as e:
            _raise_http_error(e)
        return order.model_dump(mode="json")

    @app.post("/orders/{order_id}/cancel")
    def cancel_order(order_id: str, context: StorefrontContext = Depends(get_context)):
        _require_auth(context)
        try:
            order = context.client.cancel_order(order_id)
        except Exception as e:
            _raise_http_error(e)
        return order.model_dump(mode="json")

    # Service request endpoints
    @app.post("/services/request")
    def request_service(request: ServiceBookingRequest, context: StorefrontContext = Depends(get_context)):
        """Book an on-site service outside of an order."""
        _require_auth(context)
        try:
            request_id = context.client.request_service(request)
        except Exception as e:
            _raise_http_error(e)
        return {"success": True, "request_id": request_id}

    @app.get("/services/requests")
    def get_service_requests(context: StorefrontContext = Depends(get_context)):
        _require_auth(context)
        try:
            bookings = context.client.get_service_requests()
        except Exception as e:
            _raise_http_error(e)
        return {"count": len(bookings), "requests": [b.model_dump(mode="json") for b in bookings]}

    @app.get("/services/requests/{request_id}")
    def get_service_request(request_id: str, context: StorefrontContext = Depends(get_context)):
        _require_auth(context)
        try:
            booking = context.client.get_service_request(request_id)
        except Exception as e:
            _raise_http_error(e)
        return booking.model_dump(mode="json")

    @app.post("/services/requests/{request_id}/accept-quote")
    def accept_service_quote(
        request_id: str,
        request: AcceptQuoteRequest,
        context: StorefrontContext = Depends(get_context),
    ):
        _require_auth(context)
        try:
            message = context.client.accept_quote(request_id, request.quote_id)
        except Exception as e:
            _raise_http_error(e)
        return {"success": True, "message": message}

    return app


app = create_app()


def run_http_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """
    Run the HTTP server.

    Args:
        host: Host to bind to (default: 0.0.0.0)
        port: Port to bind to (default: 8000)
        reload: Enable hot reloading (default: False)
    """
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    logger.info(f"Starting server on {host}:{port} (reload={'enabled' if reload else 'disabled'})")

    if reload:
        uvicorn.run(
            "storefront_server.http_server:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["storefront_server"],
            log_level="info",
        )
    else:
        uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run_http_server(reload=True)
