import logging
import time
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field

from cart import CartManager
from catalog import CatalogProvider
from checkout import CheckoutMachine, CheckoutState
from database import KeyValueStore, MongoStore, StorageError, get_store
from orders import CheckoutError, OrderRecorder, export_order, export_payments, find_order, load_orders, load_payments
from pricing import currency
from schemas import Address, PaymentMethod, Product
import settings

logger = logging.getLogger(__name__)


class Shop:
    """Everything one shopper profile needs, wired around a single store."""

    def __init__(self, store: KeyValueStore, catalog: Optional[CatalogProvider] = None,
                 display_delay: Optional[float] = None, clock=time.monotonic):
        self.store = store
        self.catalog = catalog or CatalogProvider()
        self.cart = CartManager(store)
        self.recorder = OrderRecorder(self.cart, store)
        self.checkout = CheckoutMachine(self.recorder, display_delay=display_delay, clock=clock)
        self._products: Dict[str, Product] = {}

    def products(self) -> List[Product]:
        products = self.catalog.list_products()
        self._products = {p.id: p for p in products}
        return products

    def product(self, product_id: str) -> Optional[Product]:
        if not self._products:
            self.products()
        return self._products.get(product_id)


_shop: Optional[Shop] = None


def get_shop() -> Shop:
    global _shop
    if _shop is None:
        _shop = Shop(get_store())
    return _shop


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.LOG_LEVEL)
    yield
    if _shop is not None:
        _shop.checkout.teardown()


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request bodies
class AddToCartRequest(BaseModel):
    productId: str
    qty: int = Field(1, description="Quantity to add")


class SetQtyRequest(BaseModel):
    qty: int


class PaymentMethodRequest(BaseModel):
    method: PaymentMethod


def cart_view(shop: Shop) -> dict:
    total = shop.cart.total()
    return {
        "items": [line.model_dump() for line in shop.cart.lines()],
        "count": shop.cart.item_count(),
        "total": total,
        "totalDisplay": currency(total),
    }


def checkout_view(shop: Shop) -> dict:
    machine = shop.checkout
    return {
        "state": machine.state.value,
        "canProceed": machine.can_proceed,
        "address": machine.address.model_dump(),
        "paymentMethod": machine.payment_method,
        "total": shop.cart.total(),
        "lastOrder": machine.last_order.model_dump(mode="json") if machine.last_order else None,
    }


def attachment(filename: str, body: str) -> Response:
    return Response(
        content=body,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/")
def read_root():
    return {"message": "Storefront API running"}


@app.get("/test")
def test_store(shop: Shop = Depends(get_shop)):
    response = {
        "backend": "✅ Running",
        "store": type(shop.store).__name__,
        "connection_status": "Not Connected",
        "keys": [],
    }
    try:
        response["keys"] = shop.store.keys()[:10]
        response["connection_status"] = "Connected" if isinstance(shop.store, MongoStore) else "In memory"
    except Exception as e:
        response["connection_status"] = f"❌ Error: {str(e)[:50]}"
    return response


# Catalog
@app.get("/products")
def list_products(shop: Shop = Depends(get_shop)):
    return [{**p.model_dump(), "priceDisplay": currency(p.price)} for p in shop.products()]


# Cart
@app.get("/cart")
def get_cart(shop: Shop = Depends(get_shop)):
    return cart_view(shop)


@app.post("/cart", status_code=201)
def add_to_cart(body: AddToCartRequest, shop: Shop = Depends(get_shop)):
    product = shop.product(body.productId)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    shop.cart.add(product, body.qty)
    return cart_view(shop)


@app.put("/cart/{product_id}")
def set_cart_qty(product_id: str, body: SetQtyRequest, shop: Shop = Depends(get_shop)):
    shop.cart.set_qty(product_id, body.qty)
    return cart_view(shop)


@app.delete("/cart/{product_id}")
def remove_from_cart(product_id: str, shop: Shop = Depends(get_shop)):
    shop.cart.remove(product_id)
    return cart_view(shop)


@app.delete("/cart")
def clear_cart(shop: Shop = Depends(get_shop)):
    shop.cart.clear()
    return cart_view(shop)


# Checkout
@app.get("/checkout")
def get_checkout(shop: Shop = Depends(get_shop)):
    return checkout_view(shop)


@app.post("/checkout/start")
def start_checkout(shop: Shop = Depends(get_shop)):
    try:
        if shop.checkout.state in (CheckoutState.BROWSING, CheckoutState.PAYMENT_CONFIRMED):
            shop.checkout.view_cart()
        shop.checkout.begin_checkout()
    except CheckoutError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return checkout_view(shop)


@app.post("/checkout/address")
def update_address(address: Address, shop: Shop = Depends(get_shop)):
    try:
        shop.checkout.update_address(address)
    except CheckoutError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return checkout_view(shop)


@app.post("/checkout/proceed")
def proceed_to_payment(shop: Shop = Depends(get_shop)):
    try:
        shop.checkout.proceed_to_payment()
    except CheckoutError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return checkout_view(shop)


@app.post("/checkout/reset")
def reset_checkout(shop: Shop = Depends(get_shop)):
    shop.checkout.teardown()
    return checkout_view(shop)


@app.post("/checkout/back")
def checkout_back(shop: Shop = Depends(get_shop)):
    try:
        shop.checkout.back()
    except CheckoutError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return checkout_view(shop)


# Payment
@app.post("/payment/method")
def choose_payment_method(body: PaymentMethodRequest, shop: Shop = Depends(get_shop)):
    try:
        shop.checkout.select_payment_method(body.method)
    except CheckoutError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return checkout_view(shop)


@app.post("/payment/confirm", status_code=201)
def confirm_payment(shop: Shop = Depends(get_shop)):
    try:
        order = shop.checkout.confirm_payment()
    except CheckoutError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError as e:
        logger.error("Order could not be stored: %s", e)
        raise HTTPException(status_code=507, detail="Order could not be stored")
    return {"order": order.model_dump(mode="json"), "totalDisplay": currency(order.total)}


# Admin
@app.get("/admin/orders")
def admin_orders(shop: Shop = Depends(get_shop)):
    return [o.model_dump(mode="json") for o in load_orders(shop.store)]


@app.get("/admin/orders/{order_id}/export")
def export_admin_order(order_id: str, shop: Shop = Depends(get_shop)):
    order = find_order(shop.store, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return attachment(*export_order(order))


@app.get("/admin/payments")
def admin_payments(shop: Shop = Depends(get_shop)):
    return [p.model_dump(mode="json") for p in load_payments(shop.store)]


@app.get("/admin/payments/export")
def export_admin_payments(shop: Shop = Depends(get_shop)):
    return attachment(*export_payments(load_payments(shop.store)))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
