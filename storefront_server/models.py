"""Data models for the hardware store API and local state."""

from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


SERVICE_IDS = ("installation", "delivery", "consultation", "maintenance")

# Standalone service requests, booked outside checkout
SERVICE_BOOKING_TYPES = ("transport", "installation", "cutting", "consultation")
SERVICE_URGENCIES = ("standard", "priority", "emergency")


class Category(BaseModel):
    """Represents a product category."""

    id: str
    name: str
    slug: str = ""


class Product(BaseModel):
    """Represents a product from the catalog."""

    id: str = Field(description="Product ID")
    sku: str = Field(default="", description="Stock keeping unit")
    name: str = Field(description="Product name")
    slug: str = Field(default="", description="URL slug")
    category_id: Optional[str] = Field(None, description="Category ID")
    description: str = Field(default="", description="Product description")
    price: Decimal = Field(default=Decimal("0"), description="Product price in KES")
    stock_quantity: int = Field(default=0, description="Units in stock")
    images_json: list[str] = Field(default_factory=list, description="Product image URLs")
    category: Optional[Category] = Field(None, description="Embedded category")
    brand: Optional[str] = Field(None, description="Product brand")
    rating: Optional[float] = Field(None, description="Average rating")


class ProductPage(BaseModel):
    """A page of product search results."""

    products: list[Product] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20


class CartItem(BaseModel):
    """Represents an item in the shopping cart."""

    id: str
    cart_id: str = ""
    product_id: str
    quantity: int = Field(ge=1, description="Quantity of the product")
    unit_price: Decimal = Field(ge=0, description="Unit price at time of adding")
    product: Optional[Product] = None

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart(BaseModel):
    """Represents the shopping cart as reported by the API."""

    id: str = ""
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    items: list[CartItem] = Field(default_factory=list, description="Cart items")
    total: Decimal = Field(default=Decimal("0"), description="Total reported by the API")


class Address(BaseModel):
    """Shipping address collected during checkout."""

    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "Kenya"

    def is_complete(self) -> bool:
        """Street, city, state and postal code must all be filled in."""
        return all(
            value.strip()
            for value in (self.street, self.city, self.state, self.postal_code)
        )


class ServiceRequest(BaseModel):
    """Optional add-on services attached to an order."""

    services: list[str] = Field(default_factory=list)
    description: str = ""
    urgency: str = "normal"

    @field_validator("services")
    @classmethod
    def _known_services(cls, services: list[str]) -> list[str]:
        unknown = [s for s in services if s not in SERVICE_IDS]
        if unknown:
            raise ValueError(f"Unknown service(s): {', '.join(unknown)}")
        # Keep selection order, drop repeats
        return list(dict.fromkeys(services))


class ServiceBookingRequest(BaseModel):
    """A standalone request for an on-site service, outside of any order."""

    type: str = Field(description="One of SERVICE_BOOKING_TYPES")
    location: str = Field(description="Where the work is to be done")
    details: dict[str, Any] = Field(default_factory=dict)
    requested_date: Optional[str] = Field(None, description="Preferred date, YYYY-MM-DD")
    instructions: Optional[str] = None

    @field_validator("type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        if value not in SERVICE_BOOKING_TYPES:
            raise ValueError(
                f"Unknown service type {value!r}. Expected one of: {', '.join(SERVICE_BOOKING_TYPES)}"
            )
        return value

    @field_validator("location")
    @classmethod
    def _location_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Service location is required")
        return value.strip()

    @field_validator("details")
    @classmethod
    def _known_urgency(cls, details: dict[str, Any]) -> dict[str, Any]:
        urgency = details.get("urgency")
        if urgency is not None and urgency not in SERVICE_URGENCIES:
            raise ValueError(
                f"Unknown urgency {urgency!r}. Expected one of: {', '.join(SERVICE_URGENCIES)}"
            )
        return details


class ServiceBooking(BaseModel):
    """A service request as tracked by the store, with its status and quote."""

    id: str
    user_id: Optional[str] = None
    type: str
    details: Optional[dict[str, Any]] = None
    location: str = ""
    requested_date: Optional[str] = None
    instructions: Optional[str] = None
    status: str = "requested"
    quote_amount: Optional[Decimal] = None
    scheduled_date: Optional[str] = None
    created_at: Optional[datetime] = None


class WishlistProduct(BaseModel):
    """Product snapshot stored with a wishlist entry."""

    id: str
    name: str
    price: Decimal = Decimal("0")
    stock_quantity: int = 0
    category: Optional[str] = None
    brand: Optional[str] = None
    rating: Optional[float] = None
    slug: str = ""
    image: Optional[str] = None

    @classmethod
    def from_product(cls, product: Product) -> "WishlistProduct":
        return cls(
            id=product.id,
            name=product.name,
            price=product.price,
            stock_quantity=product.stock_quantity,
            category=product.category.name if product.category else product.category_id,
            brand=product.brand,
            rating=product.rating,
            slug=product.slug,
            image=product.images_json[0] if product.images_json else None,
        )


class WishlistItem(BaseModel):
    """Represents a saved wishlist entry."""

    id: str
    product: WishlistProduct
    added_at: datetime
    notes: Optional[str] = None


class CheckoutStep(IntEnum):
    """Stages of the checkout flow."""

    ADDRESS = 1
    SERVICES = 2
    PAYMENT = 3
    REVIEW = 4


class PriceBreakdown(BaseModel):
    """Derived checkout pricing."""

    subtotal: Decimal
    shipping: Decimal
    service_charge: Decimal
    tax: Decimal
    total: Decimal


class OrderItem(BaseModel):
    """Represents an item in an order."""

    id: str = ""
    order_id: str = ""
    product_id: str
    quantity: int
    unit_price: Decimal
    product: Optional[Product] = None


class Order(BaseModel):
    """Represents a placed order."""

    id: str = Field(description="Order ID")
    user_id: Optional[str] = None
    total: Decimal = Field(default=Decimal("0"), description="Order total value")
    status: str = Field(default="pending", description="Order status")
    address_json: Optional[Address] = Field(None, description="Delivery address")
    service_request: Optional[ServiceRequest] = None
    placed_at: Optional[datetime] = None
    items: list[OrderItem] = Field(default_factory=list, description="Order items")


class PlaceOrderItem(BaseModel):
    product_id: str
    quantity: int
    unit_price: Decimal


class PlaceOrderRequest(BaseModel):
    """Payload sent to the order placement endpoint."""

    address: Address
    service_request: Optional[ServiceRequest] = None
    payment_method: str
    items: list[PlaceOrderItem] = Field(default_factory=list)


class User(BaseModel):
    """Represents a store account."""

    id: str
    email: str
    full_name: str = ""
    phone: Optional[str] = None
    role: str = "customer"
    created_at: Optional[datetime] = None


class AuthCredentials(BaseModel):
    """Authentication credentials."""

    email: str
    password: str


class RegisterRequest(BaseModel):
    """Account registration payload."""

    email: str
    password: str
    full_name: str
    phone: Optional[str] = None


class SessionData(BaseModel):
    """Session data for authenticated user."""

    token: Optional[str] = Field(None, description="Bearer token")
    refresh_token: Optional[str] = Field(None, description="Refresh token")
    user_id: Optional[str] = Field(None, description="User ID")
    user_email: Optional[str] = Field(None, description="User email")
    is_authenticated: bool = Field(default=False, description="Authentication status")


class UploadedFile(BaseModel):
    """File stored by the upload endpoint."""

    public_id: str
    url: str
    secure_url: str = ""
    format: str = ""
    width: int = 0
    height: int = 0
    bytes: int = 0
    filename: str = ""
    size: int = 0
