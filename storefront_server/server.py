"""MCP Server for the hardware store."""

import asyncio
import json
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.types import Resource, Tool, TextContent
from pydantic import AnyUrl

from .checkout import PAYMENT_METHODS, CheckoutError
from .context import StorefrontContext, build_context
from .models import (
    SERVICE_BOOKING_TYPES,
    SERVICE_URGENCIES,
    Address,
    AuthCredentials,
    Cart,
    CheckoutStep,
    Order,
    ServiceBooking,
    ServiceBookingRequest,
)
from .orders import submit_order
from .pricing import SERVICE_CATALOG, format_price
from .storefront_client import StorefrontAPIError

logger = logging.getLogger("storefront-mcp-server")

NOT_AUTHENTICATED = (
    "Error: Not authenticated. Please configure STOREFRONT_EMAIL and STOREFRONT_PASSWORD "
    "in the MCP settings or use the store_login tool."
)

TOOLS = [
    Tool(
        name="store_login",
        description="Authenticate with the store. Uses credentials from environment (STOREFRONT_EMAIL, STOREFRONT_PASSWORD) if not provided.",
        inputSchema={
            "type": "object",
            "properties": {
                "email": {"type": "string", "description": "Account email (optional if configured)"},
                "password": {"type": "string", "description": "Account password (optional if configured)"},
            },
        },
    ),
    Tool(
        name="store_logout",
        description="Logout and clear the saved session",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="store_search_products",
        description="Search the catalog by name and/or category",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search term"},
                "category": {"type": "string", "description": "Category slug"},
                "page": {"type": "integer", "description": "Page number (default: 1)", "default": 1},
                "sort": {
                    "type": "string",
                    "enum": ["price_asc", "price_desc", "name", "newest"],
                    "description": "Sort order",
                },
            },
        },
    ),
    Tool(
        name="store_get_product",
        description="Get full details of a product by its slug",
        inputSchema={
            "type": "object",
            "properties": {"slug": {"type": "string", "description": "Product slug"}},
            "required": ["slug"],
        },
    ),
    Tool(
        name="store_list_categories",
        description="List product categories",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="store_get_cart",
        description="Get current shopping cart contents with all items and total",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="store_add_to_cart",
        description="Add a product to the shopping cart",
        inputSchema={
            "type": "object",
            "properties": {
                "product_id": {"type": "string", "description": "Product ID to add"},
                "quantity": {"type": "integer", "description": "Quantity to add (default: 1)", "default": 1},
            },
            "required": ["product_id"],
        },
    ),
    Tool(
        name="store_update_cart_quantity",
        description="Set the quantity of a cart item (minimum 1; use store_remove_from_cart to remove)",
        inputSchema={
            "type": "object",
            "properties": {
                "item_id": {"type": "string", "description": "Cart item ID (from store_get_cart)"},
                "quantity": {"type": "integer", "description": "New quantity", "minimum": 1},
            },
            "required": ["item_id", "quantity"],
        },
    ),
    Tool(
        name="store_remove_from_cart",
        description="Remove an item from the shopping cart",
        inputSchema={
            "type": "object",
            "properties": {"item_id": {"type": "string", "description": "Cart item ID to remove"}},
            "required": ["item_id"],
        },
    ),
    Tool(
        name="store_clear_cart",
        description="Remove every item from the shopping cart",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="store_get_wishlist",
        description="List saved wishlist products",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="store_add_to_wishlist",
        description="Save a product to the wishlist (updates notes if already saved)",
        inputSchema={
            "type": "object",
            "properties": {
                "slug": {"type": "string", "description": "Product slug"},
                "notes": {"type": "string", "description": "Optional note"},
            },
            "required": ["slug"],
        },
    ),
    Tool(
        name="store_remove_from_wishlist",
        description="Remove a product from the wishlist",
        inputSchema={
            "type": "object",
            "properties": {"product_id": {"type": "string", "description": "Product ID to remove"}},
            "required": ["product_id"],
        },
    ),
    Tool(
        name="store_move_wishlist_item_to_cart",
        description="Take an entry off the wishlist so it can be added to the cart. Does not add it to the cart; call store_add_to_cart with the returned product ID.",
        inputSchema={
            "type": "object",
            "properties": {"wishlist_item_id": {"type": "string", "description": "Wishlist entry ID"}},
            "required": ["wishlist_item_id"],
        },
    ),
    Tool(
        name="store_list_services",
        description="List the add-on services that can be requested at checkout",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="store_checkout_status",
        description="Show the current checkout step, collected details and price breakdown",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="store_checkout_set_address",
        description="Set the shipping address for checkout",
        inputSchema={
            "type": "object",
            "properties": {
                "street": {"type": "string"},
                "city": {"type": "string"},
                "state": {"type": "string", "description": "State or county"},
                "postal_code": {"type": "string"},
                "country": {"type": "string", "default": "Kenya"},
            },
            "required": ["street", "city", "state", "postal_code"],
        },
    ),
    Tool(
        name="store_checkout_set_services",
        description="Choose add-on services for the order (empty list for none)",
        inputSchema={
            "type": "object",
            "properties": {
                "services": {
                    "type": "array",
                    "items": {"type": "string", "enum": list(SERVICE_CATALOG)},
                },
                "description": {"type": "string", "description": "Additional requirements"},
                "urgency": {"type": "string", "default": "normal"},
            },
            "required": ["services"],
        },
    ),
    Tool(
        name="store_checkout_set_payment",
        description="Choose the payment method",
        inputSchema={
            "type": "object",
            "properties": {"method": {"type": "string", "enum": list(PAYMENT_METHODS)}},
            "required": ["method"],
        },
    ),
    Tool(
        name="store_checkout_next",
        description="Continue to the next checkout step if the current one is complete",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="store_checkout_back",
        description="Go back to the previous checkout step",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="store_place_order",
        description="Place the order from the review step",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="store_get_orders",
        description="Get the user's orders",
        inputSchema={
            "type": "object",
            "properties": {"page": {"type": "integer", "default": 1}},
        },
    ),
    Tool(
        name="store_get_order_details",
        description="Get detailed information for a specific order, including all items",
        inputSchema={
            "type": "object",
            "properties": {"order_id": {"type": "string", "description": "Order ID"}},
            "required": ["order_id"],
        },
    ),
    Tool(
        name="store_cancel_order",
        description="Cancel a pending order",
        inputSchema={
            "type": "object",
            "properties": {"order_id": {"type": "string", "description": "Order ID"}},
            "required": ["order_id"],
        },
    ),
    Tool(
        name="store_request_service",
        description="Book an on-site service (transport, installation, cutting or consultation) outside of an order",
        inputSchema={
            "type": "object",
            "properties": {
                "type": {
                    "type": "string",
                    "enum": list(SERVICE_BOOKING_TYPES),
                    "description": "Service type",
                },
                "location": {"type": "string", "description": "Full address where the service is needed"},
                "description": {"type": "string", "description": "What needs to be done"},
                "urgency": {
                    "type": "string",
                    "enum": list(SERVICE_URGENCIES),
                    "description": "standard (3-5 days), priority (1-2 days) or emergency (same day)",
                    "default": "standard",
                },
                "requested_date": {"type": "string", "description": "Preferred date (YYYY-MM-DD)"},
                "instructions": {"type": "string", "description": "Access or other instructions"},
            },
            "required": ["type", "location"],
        },
    ),
    Tool(
        name="store_get_service_requests",
        description="List your service requests and their status",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="store_get_service_request",
        description="Get the status and quote of one service request",
        inputSchema={
            "type": "object",
            "properties": {"request_id": {"type": "string", "description": "Service request ID"}},
            "required": ["request_id"],
        },
    ),
    Tool(
        name="store_accept_service_quote",
        description="Accept the quote issued for a service request",
        inputSchema={
            "type": "object",
            "properties": {
                "request_id": {"type": "string", "description": "Service request ID"},
                "quote_id": {"type": "string", "description": "Quote ID, if the store issued one"},
            },
            "required": ["request_id"],
        },
    ),
]

AUTHENTICATED_TOOLS = {
    "store_place_order",
    "store_get_orders",
    "store_get_order_details",
    "store_cancel_order",
    "store_request_service",
    "store_get_service_requests",
    "store_get_service_request",
    "store_accept_service_quote",
}


def _text(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


def format_cart(cart: Optional[Cart]) -> str:
    if cart is None or not cart.items:
        return "Your cart is empty"

    item_count = sum(item.quantity for item in cart.items)
    result_lines = [f"Shopping Cart ({item_count} items):\n"]
    for i, item in enumerate(cart.items, 1):
        name = item.product.name if item.product else "Unknown Product"
        result_lines.append(f"\n{i}. {name}")
        result_lines.append(f"   Item ID: {item.id}")
        result_lines.append(f"   Product ID: {item.product_id}")
        result_lines.append(f"   Price: {format_price(item.unit_price)} x {item.quantity}")
        result_lines.append(f"   Subtotal: {format_price(item.subtotal)}")

    result_lines.append(f"\n{'='*50}")
    result_lines.append(f"Total: {format_price(sum(i.subtotal for i in cart.items))}")
    return "\n".join(result_lines)


def format_order(order: Order) -> str:
    result_lines = [f"Order #{order.id}"]
    result_lines.append(f"Status: {order.status}")
    if order.placed_at:
        result_lines.append(f"Date: {order.placed_at.strftime('%Y-%m-%d %H:%M')}")
    result_lines.append(f"Total: {format_price(order.total)}")
    if order.address_json:
        a = order.address_json
        result_lines.append(
            f"Delivery Address: {a.street}, {a.city}, {a.state} {a.postal_code}, {a.country}"
        )
    if order.service_request:
        result_lines.append(f"Services: {', '.join(order.service_request.services)}")
    if order.items:
        result_lines.append(f"Items ({len(order.items)}):")
        for item in order.items:
            name = item.product.name if item.product else item.product_id
            result_lines.append(
                f"  - {name} x{item.quantity} ({format_price(item.unit_price * item.quantity)})"
            )
    return "\n".join(result_lines)


def format_service_booking(booking: ServiceBooking) -> str:
    result_lines = [f"Service request {booking.id}: {booking.type}"]
    result_lines.append(f"Status: {booking.status.replace('_', ' ')}")
    result_lines.append(f"Location: {booking.location}")
    if booking.requested_date:
        result_lines.append(f"Requested date: {booking.requested_date}")
    if booking.quote_amount is not None:
        result_lines.append(f"Quote: {format_price(booking.quote_amount)}")
    if booking.scheduled_date:
        result_lines.append(f"Scheduled: {booking.scheduled_date}")
    return "\n".join(result_lines)


def format_checkout(context: StorefrontContext) -> str:
    session = context.checkout
    if session.is_complete:
        return "Order placed!\n\n" + format_order(session.confirmation)

    pricing = session.pricing(context.cart)
    result_lines = [f"Checkout step {int(session.step)}/4: {session.step.name.title()}"]

    if session.address:
        a = session.address
        result_lines.append(f"Address: {a.street}, {a.city}, {a.state} {a.postal_code}, {a.country}")
    else:
        result_lines.append("Address: not set")

    if session.service_requested:
        result_lines.append(f"Services: {', '.join(session.service_request.services)}")
    else:
        result_lines.append("Services: none")

    result_lines.append(
        f"Payment: {PAYMENT_METHODS[session.payment_method] if session.payment_method else 'not set'}"
    )
    result_lines.append(f"\nItems: {context.cart.item_count}")
    result_lines.append(f"Subtotal: {format_price(pricing.subtotal)}")
    result_lines.append(
        f"Shipping: {'Free' if pricing.shipping == 0 else format_price(pricing.shipping)}"
    )
    if session.service_requested:
        result_lines.append(f"Service Charge: {format_price(pricing.service_charge)}")
    result_lines.append(f"VAT (16%): {format_price(pricing.tax)}")
    result_lines.append(f"Total: {format_price(pricing.total)}")
    return "\n".join(result_lines)


def _ensure_cart_loaded(context: StorefrontContext) -> None:
    if context.cart.get_snapshot() is None:
        context.cart.load()


async def handle_tool(context: StorefrontContext, name: str, arguments: Any) -> list[TextContent]:
    """Run one tool call against the store context."""
    arguments = arguments or {}
    try:
        if name in AUTHENTICATED_TOOLS and not context.ensure_authenticated():
            return _text(NOT_AUTHENTICATED)

        if name == "store_login":
            credentials = context.settings.credentials
            email = arguments.get("email") or (credentials.email if credentials else None)
            password = arguments.get("password") or (credentials.password if credentials else None)
            if not email or not password:
                return _text(
                    "Error: No credentials provided and STOREFRONT_EMAIL/STOREFRONT_PASSWORD not configured."
                )

            user = context.client.login(AuthCredentials(email=email, password=password))
            # A fresh login may attach a different cart
            context.cart.refresh()
            return _text(f"Successfully logged in as {user.email}")

        elif name == "store_logout":
            context.client.logout()
            context.checkout.reset()
            return _text("Successfully logged out")

        elif name == "store_search_products":
            result = context.client.search_products(
                query=arguments.get("query"),
                category=arguments.get("category"),
                page=arguments.get("page", 1),
                sort=arguments.get("sort"),
            )
            if not result.products:
                return _text(f"No products found for: {arguments.get('query') or arguments.get('category')}")

            result_lines = [f"Found {result.total} product(s), page {result.page}:\n"]
            for i, product in enumerate(result.products, 1):
                result_lines.append(f"\n{i}. {product.name}")
                result_lines.append(f"   ID: {product.id}")
                result_lines.append(f"   Slug: {product.slug}")
                result_lines.append(f"   Price: {format_price(product.price)}")
                result_lines.append(
                    f"   In stock: {product.stock_quantity if product.stock_quantity > 0 else 'No'}"
                )
                if context.wishlist.is_in_wishlist(product.id):
                    result_lines.append("   ♥ In wishlist")
            return _text("\n".join(result_lines))

        elif name == "store_get_product":
            product = context.client.get_product(arguments["slug"])
            result_lines = [product.name, f"ID: {product.id}", f"SKU: {product.sku}"]
            result_lines.append(f"Price: {format_price(product.price)}")
            result_lines.append(f"Stock: {product.stock_quantity}")
            if product.category:
                result_lines.append(f"Category: {product.category.name}")
            if product.brand:
                result_lines.append(f"Brand: {product.brand}")
            if product.description:
                result_lines.append(f"\n{product.description}")
            return _text("\n".join(result_lines))

        elif name == "store_list_categories":
            categories = context.client.get_categories()
            if not categories:
                return _text("No categories found")
            return _text("\n".join(f"- {c.name} ({c.slug})" for c in categories))

        elif name == "store_get_cart":
            context.cart.load()
            return _text(format_cart(context.cart.get_snapshot()))

        elif name == "store_add_to_cart":
            product_id = arguments["product_id"]
            quantity = arguments.get("quantity", 1)
            context.cart.add_item(product_id, quantity)
            return _text(
                f"Successfully added product {product_id} (quantity: {quantity}) to cart. "
                f"Cart now has {context.cart.item_count} item(s)."
            )

        elif name == "store_update_cart_quantity":
            item_id = arguments["item_id"]
            quantity = arguments["quantity"]
            context.cart.update_item(item_id, quantity)
            return _text(f"Successfully updated item {item_id} to quantity {quantity}")

        elif name == "store_remove_from_cart":
            item_id = arguments["item_id"]
            context.cart.remove_item(item_id)
            return _text(f"Successfully removed item {item_id} from cart")

        elif name == "store_clear_cart":
            context.cart.clear_cart()
            return _text("Cart cleared")

        elif name == "store_get_wishlist":
            items = context.wishlist.items
            if not items:
                return _text("Your wishlist is empty")
            result_lines = [f"Wishlist ({len(items)} items):\n"]
            for i, item in enumerate(items, 1):
                result_lines.append(f"\n{i}. {item.product.name}")
                result_lines.append(f"   Wishlist ID: {item.id}")
                result_lines.append(f"   Product ID: {item.product.id}")
                result_lines.append(f"   Price: {format_price(item.product.price)}")
                result_lines.append(f"   Added: {item.added_at.strftime('%Y-%m-%d %H:%M')}")
                if item.notes:
                    result_lines.append(f"   Notes: {item.notes}")
            return _text("\n".join(result_lines))

        elif name == "store_add_to_wishlist":
            product = context.client.get_product(arguments["slug"])
            entry = context.wishlist.add_to_wishlist(product, arguments.get("notes"))
            return _text(f"Saved {product.name} to wishlist (entry {entry.id})")

        elif name == "store_remove_from_wishlist":
            product_id = arguments["product_id"]
            if not context.wishlist.is_in_wishlist(product_id):
                return _text(f"Product {product_id} is not in the wishlist")
            context.wishlist.remove_from_wishlist(product_id)
            return _text(f"Removed product {product_id} from wishlist")

        elif name == "store_move_wishlist_item_to_cart":
            entry = context.wishlist.move_to_cart(arguments["wishlist_item_id"])
            if entry is None:
                return _text(f"Wishlist item {arguments['wishlist_item_id']} not found")
            return _text(
                f"Removed {entry.product.name} from wishlist. "
                f"Add it with store_add_to_cart using product ID {entry.product.id}."
            )

        elif name == "store_list_services":
            result_lines = ["Available services:"]
            for service_id, service in SERVICE_CATALOG.items():
                result_lines.append(
                    f"- {service_id}: {service['name']} (from {format_price(service['price'])}) - {service['description']}"
                )
            return _text("\n".join(result_lines))

        elif name == "store_checkout_status":
            _ensure_cart_loaded(context)
            return _text(format_checkout(context))

        elif name == "store_checkout_set_address":
            context.checkout.set_address(
                Address(
                    street=arguments["street"],
                    city=arguments["city"],
                    state=arguments["state"],
                    postal_code=arguments["postal_code"],
                    country=arguments.get("country") or "Kenya",
                )
            )
            return _text("Shipping address saved")

        elif name == "store_checkout_set_services":
            context.checkout.set_service_request(
                arguments.get("services") or [],
                description=arguments.get("description", ""),
                urgency=arguments.get("urgency", "normal"),
            )
            if context.checkout.service_requested:
                return _text(f"Services selected: {', '.join(context.checkout.service_request.services)}")
            return _text("No services selected")

        elif name == "store_checkout_set_payment":
            context.checkout.set_payment_method(arguments["method"])
            return _text(f"Payment method set to {PAYMENT_METHODS[arguments['method']]}")

        elif name == "store_checkout_next":
            _ensure_cart_loaded(context)
            if context.cart.is_empty():
                return _text("Your cart is empty. Add items before checking out.")
            if not context.checkout.next():
                if context.checkout.step == CheckoutStep.REVIEW:
                    return _text("Already at the review step. Use store_place_order to finish.")
                return _text(
                    f"Cannot continue: the {context.checkout.step.name.lower()} step is incomplete"
                )
            return _text(format_checkout(context))

        elif name == "store_checkout_back":
            context.checkout.back()
            return _text(format_checkout(context))

        elif name == "store_place_order":
            _ensure_cart_loaded(context)
            order = submit_order(context.checkout, context.cart, context.client)
            return _text("Order placed successfully!\n\n" + format_order(order))

        elif name == "store_get_orders":
            orders = context.client.get_orders(page=arguments.get("page", 1))
            if not orders:
                return _text("No orders found")
            result_lines = [f"Found {len(orders)} order(s):"]
            for i, order in enumerate(orders, 1):
                result_lines.append(f"\n{i}. " + format_order(order))
            return _text("\n".join(result_lines))

        elif name == "store_get_order_details":
            order = context.client.get_order(arguments["order_id"])
            return _text("Order Details:\n\n" + format_order(order))

        elif name == "store_cancel_order":
            order = context.client.cancel_order(arguments["order_id"])
            return _text(f"Order {order.id} is now {order.status}")

        elif name == "store_request_service":
            details = {"urgency": arguments.get("urgency") or "standard"}
            if arguments.get("description"):
                details["description"] = arguments["description"]
            request_id = context.client.request_service(
                ServiceBookingRequest(
                    type=arguments["type"],
                    location=arguments["location"],
                    details=details,
                    requested_date=arguments.get("requested_date"),
                    instructions=arguments.get("instructions"),
                )
            )
            return _text(
                f"Service request {request_id} submitted. The store will contact you with a quote."
            )

        elif name == "store_get_service_requests":
            bookings = context.client.get_service_requests()
            if not bookings:
                return _text("No service requests found")
            result_lines = [f"Found {len(bookings)} service request(s):"]
            for i, booking in enumerate(bookings, 1):
                result_lines.append(f"\n{i}. " + format_service_booking(booking))
            return _text("\n".join(result_lines))

        elif name == "store_get_service_request":
            booking = context.client.get_service_request(arguments["request_id"])
            return _text(format_service_booking(booking))

        elif name == "store_accept_service_quote":
            message = context.client.accept_quote(arguments["request_id"], arguments.get("quote_id"))
            return _text(message)

        else:
            return _text(f"Unknown tool: {name}")

    except (StorefrontAPIError, CheckoutError, ValueError) as e:
        logger.warning(f"Tool {name} failed: {e}")
        return _text(f"Error: {e}")
    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return _text(f"Error: {str(e)}")


def create_server(context: StorefrontContext) -> Server:
    """Build an MCP server bound to context."""
    app = Server("storefront-mcp-server")

    @app.list_resources()
    async def list_resources() -> list[Resource]:
        """List available resources."""
        resources = [
            Resource(
                uri=AnyUrl("storefront://cart"),
                name="Shopping Cart",
                mimeType="application/json",
                description="Current shopping cart contents",
            ),
            Resource(
                uri=AnyUrl("storefront://wishlist"),
                name="Wishlist",
                mimeType="application/json",
                description="Saved products",
            ),
        ]
        if context.auth_manager.is_authenticated():
            resources.append(
                Resource(
                    uri=AnyUrl("storefront://orders"),
                    name="Orders",
                    mimeType="application/json",
                    description="User's orders",
                )
            )
        return resources

    @app.read_resource()
    async def read_resource(uri: AnyUrl) -> str:
        """Read a resource by URI."""
        uri_str = str(uri)

        if uri_str == "storefront://cart":
            cart = context.cart.load()
            return cart.model_dump_json(indent=2) if cart else json.dumps(None)

        elif uri_str == "storefront://wishlist":
            return json.dumps(
                [item.model_dump(mode="json") for item in context.wishlist.items], indent=2
            )

        elif uri_str == "storefront://orders":
            if not context.auth_manager.is_authenticated():
                return "Error: Not authenticated. Please login first."
            orders = context.client.get_orders()
            return json.dumps([order.model_dump(mode="json") for order in orders], indent=2)

        raise ValueError(f"Unknown resource: {uri}")

    @app.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return TOOLS

    @app.call_tool()
    async def call_tool(name: str, arguments: Any) -> list[TextContent]:
        """Handle tool calls."""
        return await handle_tool(context, name, arguments)

    return app


async def main() -> None:
    """Main entry point for the MCP server."""
    logging.basicConfig(level=logging.INFO)

    context = build_context()
    app = create_server(context)

    logger.info("Starting Storefront MCP Server...")

    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        context.close()


if __name__ == "__main__":
    asyncio.run(main())
