"""
Storefront Schemas

Pydantic models for everything the storefront keeps in its key-value store.
Field names match the stored JSON exactly (camelCase), so a record written by
one version of the app can be read back by another:
- CartLine      -> values of "cart_v2"
- Order         -> entries of "orders_v2"
- PaymentRecord -> entries of "payments_v2"
"""

import math
import re
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

PaymentMethod = Literal["UPI", "Card"]
OrderStatus = Literal["completed"]

PAYMENT_METHODS: Tuple[str, ...] = ("UPI", "Card")

_MOBILE_RE = re.compile(r"[0-9]{10}")
_PINCODE_RE = re.compile(r"[0-9]{6}")


class Product(BaseModel):
    """
    Catalog product, supplied by the catalog source
    """
    id: str = Field(..., min_length=1, description="Unique product id")
    name: str = Field("", description="Display name")
    price: float = Field(..., ge=0, description="Unit price in rupees")
    image: Optional[str] = Field(None, description="Image reference")
    description: str = Field("", description="Short description")


class CartLine(BaseModel):
    """
    Cart line
    Store key: "cart_v2" (mapping of product id to line)
    """
    product: Product = Field(..., description="Product snapshot taken when first added")
    qty: int = Field(..., ge=1, description="Quantity, always positive")


class Address(BaseModel):
    """
    Delivery address as typed into the checkout form. Every field defaults to
    empty so half-filled forms still parse; use is_complete_address to decide
    whether checkout may proceed.
    """
    model_config = ConfigDict(frozen=True)

    name: str = ""
    doorNo: str = ""
    street: str = ""
    area: str = ""
    district: str = ""
    pincode: str = Field("", description="6 digit postal code")
    mobile: str = Field("", description="10 digit mobile number")
    landmark: Optional[str] = None

    def is_complete(self) -> bool:
        required = (self.name, self.doorNo, self.street, self.area, self.district, self.pincode, self.mobile)
        if not all(required):
            return False
        return bool(_MOBILE_RE.fullmatch(self.mobile)) and bool(_PINCODE_RE.fullmatch(self.pincode))


def is_complete_address(address: Any) -> bool:
    """True when `address` (an Address or a mapping) may be used for checkout."""
    if isinstance(address, Address):
        return address.is_complete()
    if not isinstance(address, dict):
        return False
    try:
        return Address.model_validate(address).is_complete()
    except ValidationError:
        return False


class OrderItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    desc: str = ""
    price: float = Field(..., ge=0)
    qty: int = Field(..., ge=1)


class Order(BaseModel):
    """
    Completed order, immutable once built
    Store key: "orders_v2"
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Order id, ord_<epoch ms>")
    items: Tuple[OrderItem, ...] = Field(..., description="Cart snapshot at checkout")
    total: float = Field(..., ge=0, description="Sum of price * qty over items")
    address: Address
    paymentMethod: PaymentMethod = "UPI"
    paymentId: str = Field(..., description="Payment id, pay_<epoch ms>")
    status: OrderStatus = "completed"
    createdAt: str = Field(..., description="ISO-8601 creation time")

    @model_validator(mode="after")
    def _total_matches_items(self):
        expected = sum(it.price * it.qty for it in self.items)
        if not math.isclose(self.total, expected, rel_tol=1e-9, abs_tol=1e-6):
            raise ValueError(f"total {self.total} does not match items ({expected})")
        return self


class PaymentRecord(BaseModel):
    """
    Payment record written by an external payment collaborator
    Store key: "payments_v2"
    """
    paymentId: str
    orderId: str = ""
    amount: float = 0
    status: str = ""
    method: str = ""
    timestamp: str = ""
    customerInfo: Optional[Dict[str, Any]] = None
