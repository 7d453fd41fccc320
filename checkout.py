"""Checkout flow as an explicit state machine.

    BROWSING -> CART -> ADDRESS_ENTRY <-> ADDRESS_VALID -> PAYMENT_PENDING
        -> PAYMENT_CONFIRMED -> ORDER_RECORDED -> BROWSING

Payment is simulated: the shopper says they paid and we believe them, so there
is no failure branch. After an order is recorded the confirmation stays up for
`display_delay` seconds, then the machine drops back to BROWSING the next time
its state is read. The deadline is a timestamp, not a timer thread, so a
torn-down machine never changes state behind the caller's back.
"""

import enum
import logging
import time
from typing import Any, Callable, Optional

from pydantic import ValidationError

from orders import CheckoutError, OrderRecorder
from schemas import PAYMENT_METHODS, Address, Order, PaymentMethod, is_complete_address
import settings

logger = logging.getLogger(__name__)


class InvalidTransition(CheckoutError):
    def __init__(self, action: str, state: "CheckoutState"):
        self.action = action
        self.state = state
        super().__init__(f"cannot {action} while in {state.value}")


class CheckoutState(str, enum.Enum):
    BROWSING = "browsing"
    CART = "cart"
    ADDRESS_ENTRY = "address_entry"
    ADDRESS_VALID = "address_valid"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_CONFIRMED = "payment_confirmed"
    ORDER_RECORDED = "order_recorded"


class CheckoutMachine:
    def __init__(self, recorder: OrderRecorder, display_delay: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.recorder = recorder
        self.cart = recorder.cart
        self.display_delay = settings.ORDER_DISPLAY_DELAY if display_delay is None else display_delay
        self.clock = clock
        self._state = CheckoutState.BROWSING
        self._reset_at: Optional[float] = None
        self.address = Address()
        self.payment_address: Optional[Address] = None
        self.payment_method: PaymentMethod = "UPI"
        self.last_order: Optional[Order] = None

    @property
    def state(self) -> CheckoutState:
        if self._reset_at is not None and self.clock() >= self._reset_at:
            self._reset()
        return self._state

    @property
    def can_proceed(self) -> bool:
        return self.state == CheckoutState.ADDRESS_VALID

    def _require(self, action: str, *allowed: CheckoutState):
        state = self.state
        if state not in allowed:
            raise InvalidTransition(action, state)
        return state

    def _reset(self):
        self._reset_at = None
        self._state = CheckoutState.BROWSING
        self.address = Address()
        self.payment_address = None
        self.payment_method = "UPI"

    def view_cart(self) -> CheckoutState:
        state = self._require(
            "view cart", CheckoutState.BROWSING, CheckoutState.CART, CheckoutState.PAYMENT_CONFIRMED
        )
        if state == CheckoutState.PAYMENT_CONFIRMED:
            # only reachable after a failed order write
            self._reset()
        self._state = CheckoutState.CART
        return self._state

    def begin_checkout(self) -> CheckoutState:
        self._require("begin checkout", CheckoutState.CART)
        if self.cart.is_empty():
            self._state = CheckoutState.BROWSING
        else:
            self._state = CheckoutState.ADDRESS_ENTRY
        return self._state

    def update_address(self, address: Any) -> CheckoutState:
        self._require("edit address", CheckoutState.ADDRESS_ENTRY, CheckoutState.ADDRESS_VALID)
        if self.cart.is_empty():
            self._reset()
            return self._state
        if not isinstance(address, Address):
            try:
                address = Address.model_validate(address)
            except ValidationError:
                self._state = CheckoutState.ADDRESS_ENTRY
                return self._state
        self.address = address
        if is_complete_address(address):
            self._state = CheckoutState.ADDRESS_VALID
        else:
            self._state = CheckoutState.ADDRESS_ENTRY
        return self._state

    def proceed_to_payment(self) -> CheckoutState:
        self._require("proceed to payment", CheckoutState.ADDRESS_VALID)
        if self.cart.is_empty():
            self._reset()
            return self._state
        self.payment_address = self.address.model_copy()
        self._state = CheckoutState.PAYMENT_PENDING
        return self._state

    def select_payment_method(self, method: str) -> PaymentMethod:
        self._require("choose payment method", CheckoutState.PAYMENT_PENDING)
        if method not in PAYMENT_METHODS:
            raise CheckoutError(f"unknown payment method {method!r}")
        self.payment_method = method
        return self.payment_method

    def confirm_payment(self) -> Order:
        self._require("confirm payment", CheckoutState.PAYMENT_PENDING)
        if self.cart.is_empty():
            self._reset()
            raise CheckoutError("cart is empty")
        self._state = CheckoutState.PAYMENT_CONFIRMED
        # a failed write leaves us in PAYMENT_CONFIRMED with the cart intact, until view_cart() or teardown()
        order = self.recorder.record(self.payment_address, self.payment_method)
        self.last_order = order
        self._state = CheckoutState.ORDER_RECORDED
        self._reset_at = self.clock() + self.display_delay
        logger.debug("Order %s confirmed, resetting in %ss", order.id, self.display_delay)
        return order

    def back(self) -> CheckoutState:
        state = self._require(
            "go back",
            CheckoutState.ADDRESS_ENTRY,
            CheckoutState.ADDRESS_VALID,
            CheckoutState.PAYMENT_PENDING,
        )
        if state == CheckoutState.PAYMENT_PENDING:
            self._state = CheckoutState.ADDRESS_VALID
        else:
            self._state = CheckoutState.CART
        return self._state

    def teardown(self):
        self._reset()
