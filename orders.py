import json
import logging
import threading
import time
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError

from cart import CartManager
from database import ORDERS_KEY, PAYMENTS_KEY, KeyValueStore, dump_json, load_json
from schemas import Address, Order, OrderItem, PaymentMethod, PaymentRecord, is_complete_address

logger = logging.getLogger(__name__)


class CheckoutError(Exception):
    """Checkout cannot go ahead in the current state."""


class StampSource:
    """Epoch-millisecond stamps that never repeat within a process."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            stamp = int(self.clock() * 1000)
            if stamp <= self._last:
                stamp = self._last + 1
            self._last = stamp
            return stamp


_stamps = StampSource()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def load_orders(store: KeyValueStore) -> List[Order]:
    raw = load_json(store, ORDERS_KEY, [])
    if not isinstance(raw, list):
        logger.debug("Stored orders are not a list, reading as empty")
        return []
    orders = []
    for entry in raw:
        try:
            orders.append(Order.model_validate(entry))
        except ValidationError:
            logger.debug("Skipping unreadable order record")
    return orders


def load_payments(store: KeyValueStore) -> List[PaymentRecord]:
    raw = load_json(store, PAYMENTS_KEY, [])
    if not isinstance(raw, list):
        logger.debug("Stored payments are not a list, reading as empty")
        return []
    payments = []
    for entry in raw:
        try:
            payments.append(PaymentRecord.model_validate(entry))
        except ValidationError:
            logger.debug("Skipping unreadable payment record")
    return payments


def find_order(store: KeyValueStore, order_id: str) -> Optional[Order]:
    for order in load_orders(store):
        if order.id == order_id:
            return order
    return None


class OrderRecorder:
    """Turns the current cart into an Order and appends it to "orders_v2".

    The append is load, append, store. Two recorders sharing one store must
    not run at the same time or one of the orders is lost.
    """

    def __init__(self, cart: CartManager, store: Optional[KeyValueStore] = None,
                 stamps: StampSource = _stamps, now: Callable[[], datetime] = _utcnow):
        self.cart = cart
        self.store = store if store is not None else cart.store
        self.stamps = stamps
        self.now = now

    def build(self, address: Address, payment_method: PaymentMethod) -> Order:
        if self.cart.is_empty():
            raise CheckoutError("cart is empty")
        if not is_complete_address(address):
            raise CheckoutError("delivery address is incomplete")
        if not isinstance(address, Address):
            address = Address.model_validate(address)
        items = tuple(
            OrderItem(
                id=line.product.id,
                name=line.product.name,
                desc=line.product.description,
                price=line.product.price,
                qty=line.qty,
            )
            for line in self.cart.lines()
        )
        stamp = self.stamps.next()
        return Order(
            id=f"ord_{stamp}",
            items=items,
            total=sum(it.price * it.qty for it in items),
            address=address,
            paymentMethod=payment_method,
            paymentId=f"pay_{stamp}",
            status="completed",
            createdAt=self.now().isoformat(),
        )

    def record(self, address: Address, payment_method: PaymentMethod = "UPI") -> Order:
        order = self.build(address, payment_method)
        raw = load_json(self.store, ORDERS_KEY, [])
        if not isinstance(raw, list):
            raw = []
        raw.append(order.model_dump(mode="json"))
        # StorageError propagates; the cart is only cleared once the order is stored
        dump_json(self.store, ORDERS_KEY, raw)
        logger.info("Recorded order %s (%d items, total %.2f)", order.id, len(order.items), order.total)
        self.cart.clear()
        return order


def export_order(order: Order) -> Tuple[str, str]:
    return f"order_{order.id}.json", json.dumps(order.model_dump(mode="json"), indent=2, ensure_ascii=False)


def export_payments(payments: List[PaymentRecord], today: Optional[date] = None) -> Tuple[str, str]:
    today = today or _utcnow().date()
    body = json.dumps([p.model_dump(mode="json") for p in payments], indent=2, ensure_ascii=False)
    return f"all_payments_{today.isoformat()}.json", body
