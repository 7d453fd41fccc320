import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from database import CART_KEY, KeyValueStore, dump_json, load_json
from pricing import calc_total, item_count
from schemas import CartLine, Product

logger = logging.getLogger(__name__)


def _restore(store: KeyValueStore) -> Dict[str, CartLine]:
    raw = load_json(store, CART_KEY, {})
    if not isinstance(raw, dict):
        logger.debug("Stored cart is not a mapping, starting empty")
        return {}
    try:
        cart = {pid: CartLine.model_validate(line) for pid, line in raw.items()}
    except ValidationError:
        logger.debug("Stored cart failed validation, starting empty")
        return {}
    # keys must agree with the embedded product
    return {line.product.id: line for line in cart.values()}


class CartManager:
    """Owns the shopper's cart and mirrors it to the store after every change.

    None of the mutations raise on odd input: quantities are coerced to int
    and a line whose quantity would drop to zero or below is removed instead
    of stored. A product or quantity that cannot be read leaves the cart
    untouched.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._cart: Dict[str, CartLine] = _restore(store)

    @property
    def cart(self) -> Dict[str, CartLine]:
        return dict(self._cart)

    def _persist(self):
        dump_json(self.store, CART_KEY, self.snapshot())

    def add(self, product: Any, qty: int = 1):
        try:
            if not isinstance(product, Product):
                product = Product.model_validate(product)
            qty = int(qty)
        except (TypeError, ValueError, OverflowError):
            logger.debug("Ignoring add of unreadable product or quantity %r", qty)
            return
        line = self._cart.get(product.id)
        new_qty = line.qty + qty if line else qty
        if new_qty <= 0:
            self._cart.pop(product.id, None)
        elif line:
            self._cart[product.id] = line.model_copy(update={"qty": new_qty})
        else:
            self._cart[product.id] = CartLine(product=product, qty=new_qty)
        self._persist()

    def set_qty(self, product_id: str, qty: int):
        line = self._cart.get(product_id)
        if line is None:
            return
        try:
            qty = max(0, int(qty))
        except (TypeError, ValueError, OverflowError):
            logger.debug("Ignoring unreadable quantity %r for %s", qty, product_id)
            return
        if qty == 0:
            del self._cart[product_id]
        else:
            self._cart[product_id] = line.model_copy(update={"qty": qty})
        self._persist()

    def remove(self, product_id: str):
        self._cart.pop(product_id, None)
        self._persist()

    def clear(self):
        self._cart = {}
        self._persist()

    def lines(self) -> List[CartLine]:
        return list(self._cart.values())

    def is_empty(self) -> bool:
        return not self._cart

    def total(self) -> float:
        return calc_total(self._cart)

    def item_count(self) -> int:
        return item_count(self._cart)

    def snapshot(self) -> Dict[str, dict]:
        return {pid: line.model_dump() for pid, line in self._cart.items()}
