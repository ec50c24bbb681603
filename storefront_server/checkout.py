"""Checkout session: step flow and collected order details."""

import logging
from typing import Optional

from .cart_store import CartStore
from .models import Address, CheckoutStep, Order, PriceBreakdown, ServiceRequest
from .pricing import calculate_pricing

logger = logging.getLogger(__name__)

# Form value -> label expected by the order API
PAYMENT_METHODS = {
    "mpesa": "M-Pesa",
    "card": "Card",
    "bank": "Bank",
}


class CheckoutError(Exception):
    """Order cannot be placed from the current checkout state."""


class CheckoutSession:
    """
    Linear Address -> Services -> Payment -> Review flow.

    Moving forward requires the current step to validate; moving back is
    always allowed. A failed validation just keeps the current step.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.step = CheckoutStep.ADDRESS
        self.address: Optional[Address] = None
        self.service_request: Optional[ServiceRequest] = None
        self.payment_method = ""
        self.confirmation: Optional[Order] = None

    def complete(self, order: Order) -> None:
        """
        Record a placed order and start the flow over.

        The confirmation is kept for the success view until the next
        checkout begins. Placing again requires walking back to Review.
        """
        self.reset()
        self.confirmation = order

    @property
    def is_complete(self) -> bool:
        """An order has been placed from this session."""
        return self.confirmation is not None

    @property
    def service_requested(self) -> bool:
        return self.service_request is not None and bool(self.service_request.services)

    def set_address(self, address: Address) -> None:
        self.confirmation = None
        self.address = address

    def set_service_request(
        self,
        services: list[str],
        description: str = "",
        urgency: str = "normal",
    ) -> None:
        """Record selected services; an empty selection clears the request."""
        self.confirmation = None
        if not services:
            self.service_request = None
            return
        self.service_request = ServiceRequest(
            services=services, description=description, urgency=urgency
        )

    def set_payment_method(self, method: str) -> None:
        if method not in PAYMENT_METHODS:
            raise ValueError(
                f"Unknown payment method {method!r}. Expected one of: {', '.join(PAYMENT_METHODS)}"
            )
        self.confirmation = None
        self.payment_method = method

    def step_is_valid(self, step: Optional[CheckoutStep] = None) -> bool:
        """Whether the given step (default: current) has what it needs."""
        step = self.step if step is None else step
        if step == CheckoutStep.ADDRESS:
            return self.address is not None and self.address.is_complete()
        if step == CheckoutStep.PAYMENT:
            return bool(self.payment_method)
        return True

    def next(self) -> bool:
        """Advance one step. Returns False if nothing changed."""
        if self.step == CheckoutStep.REVIEW:
            return False
        if not self.step_is_valid():
            logger.debug(f"Checkout step {self.step.name} incomplete, staying")
            return False
        self.step = CheckoutStep(self.step + 1)
        logger.info(f"Checkout advanced to {self.step.name}")
        return True

    def back(self) -> bool:
        """Go back one step. Returns False if already on the first step."""
        if self.step == CheckoutStep.ADDRESS:
            return False
        self.step = CheckoutStep(self.step - 1)
        return True

    def pricing(self, cart_store: CartStore) -> PriceBreakdown:
        """Recomputed from the current cart and selections on every call."""
        return calculate_pricing(cart_store.total, self.service_requested)

    def summary(self, cart_store: CartStore) -> dict:
        return {
            "step": int(self.step),
            "step_name": self.step.name.lower(),
            "address": self.address.model_dump() if self.address else None,
            "service_request": self.service_request.model_dump() if self.service_request else None,
            "payment_method": self.payment_method or None,
            "pricing": self.pricing(cart_store).model_dump(mode="json"),
            "confirmation": self.confirmation.model_dump(mode="json") if self.confirmation else None,
        }
