from typing import Dict

from schemas import CartLine

CURRENCY_SYMBOL = "₹"


def calc_total(cart: Dict[str, CartLine]) -> float:
    return sum(line.product.price * line.qty for line in cart.values())


def item_count(cart: Dict[str, CartLine]) -> int:
    return sum(line.qty for line in cart.values())


def currency(amount: float) -> str:
    """Format an amount for display, e.g. 1299 -> "₹1299.00"."""
    return f"{CURRENCY_SYMBOL}{amount:.2f}"
