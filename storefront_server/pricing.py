"""Checkout pricing rules."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

from .models import CartItem, PriceBreakdown

FREE_SHIPPING_THRESHOLD = Decimal("5000")
SHIPPING_FEE = Decimal("500")
SERVICE_CHARGE = Decimal("1000")
VAT_RATE = Decimal("0.16")

CENTS = Decimal("0.01")

# Indicative prices shown next to each add-on service. Checkout itself
# charges the flat SERVICE_CHARGE whatever the selection.
SERVICE_CATALOG = {
    "installation": {
        "name": "Installation Service",
        "price": Decimal("1500"),
        "description": "Professional installation of purchased items",
    },
    "delivery": {
        "name": "Express Delivery",
        "price": Decimal("800"),
        "description": "Same-day or next-day delivery",
    },
    "consultation": {
        "name": "Technical Consultation",
        "price": Decimal("500"),
        "description": "Expert advice on your project",
    },
    "maintenance": {
        "name": "Maintenance Service",
        "price": Decimal("1200"),
        "description": "Regular maintenance and repairs",
    },
}

Amount = Union[Decimal, int, str]


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_subtotal(items: Iterable[CartItem]) -> Decimal:
    """Sum of quantity x unit price over the cart."""
    return sum((item.unit_price * item.quantity for item in items), Decimal("0"))


def calculate_shipping(subtotal: Amount) -> Decimal:
    subtotal = Decimal(subtotal)
    return Decimal("0") if subtotal >= FREE_SHIPPING_THRESHOLD else SHIPPING_FEE


def calculate_pricing(subtotal: Amount, service_requested: bool = False) -> PriceBreakdown:
    """
    Derive the checkout price breakdown.

    Shipping is free from FREE_SHIPPING_THRESHOLD upwards, any service
    request adds a flat SERVICE_CHARGE, and VAT applies to the subtotal
    plus the service charge (never to shipping). Amounts are exact;
    rounding to cents happens only in format_price.

    Args:
        subtotal: Cart subtotal; assumed non-negative
        service_requested: Whether at least one add-on service was selected

    Returns:
        The full breakdown
    """
    subtotal = Decimal(subtotal)
    shipping = calculate_shipping(subtotal)
    service_charge = SERVICE_CHARGE if service_requested else Decimal("0")
    tax = (subtotal + service_charge) * VAT_RATE

    return PriceBreakdown(
        subtotal=subtotal,
        shipping=shipping,
        service_charge=service_charge,
        tax=tax,
        total=subtotal + shipping + service_charge + tax,
    )


def format_price(amount: Amount) -> str:
    """Format an amount as Kenyan Shillings, e.g. "KSh 1,234.56"."""
    return f"KSh {_money(Decimal(amount)):,.2f}"
